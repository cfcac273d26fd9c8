import logging

import pytest

@pytest.fixture(autouse=True)
def restore_root_log_level():
    root = logging.getLogger()
    level = root.level
    yield
    root.setLevel(level)

@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    outcome = yield
    report = outcome.get_result()
    if report.when == "call":
        print(f"TEST: {item.name} - {'PASSED' if report.passed else 'FAILED'}")
