# calculator.py

"""
Overview of Implementation Approach
-----------------------------------
This file implements a line-oriented calculator with variables. A single line of input is read and
treated as a stream of statements separated by ';'. Each statement is either a plain expression, a
declaration ('let name = expression') or the quit command ('q').

The evaluator is a recursive descent parser that computes values while it parses (there is no AST).
Three mutually recursive levels (primary, term, expression) pull tokens from a TokenStream. When a
level reads an operator it does not own, it pushes the token back into the stream's one-slot buffer
so the caller can see it. Variables live in a SymbolTable owned by the session.

Modules, Classes, and Functions Implemented
-------------------------------------------
- Error classes: CalculatorError and its token/parse/eval subclasses
- Tokenizer: TokenKind, Token, CharSource, TokenStream
- Variables: SymbolTable
- Evaluator: apply_operator, Evaluator
- Session: SessionState, StatementResult, Session
- Entry point: build_arg_parser, configure_logging, main()
"""

import argparse
import logging
import math
import os
import string
import sys
from dataclasses import dataclass
from typing import Dict, List, Optional, TextIO

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENTRY_PROMPT = 'Enter an expression: '
PROMPT = '> '
RESULT = '= '

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR')
LOG_LEVEL_ENV = 'CALCULATOR_LOG_LEVEL'

EXIT_OK = 0
EXIT_UNEXPECTED = 1


# ---------------------------
# Error Classes
# ---------------------------

class CalculatorError(Exception):
    """Base class for calculator errors. All of them are recoverable by the session."""
    pass

class TokenError(CalculatorError):
    """Raised by the token stream."""
    pass

class ParseError(CalculatorError):
    """Raised when the input does not follow the grammar."""
    pass

class EvalError(CalculatorError):
    """Raised when a well-formed expression cannot be evaluated."""
    pass

class BadToken(TokenError):
    def __init__(self, char: str = ''):
        self.char = char
        super().__init__("Bad token")

class BufferFull(TokenError):
    """Raised by TokenStream.putback() when a token is already buffered."""
    def __init__(self):
        super().__init__("putback() into a full buffer")

class ExpectedCloseParen(ParseError):
    def __init__(self):
        super().__init__("')' expected")

class PrimaryExpected(ParseError):
    def __init__(self):
        super().__init__("primary expected")

class NameExpectedInDeclaration(ParseError):
    def __init__(self):
        super().__init__("Name expected in declaration")

class MissingEquals(ParseError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"= missing in declaration of {name}")

class UndefinedVariable(EvalError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Undefined variable: {name}")

class DivideByZero(EvalError):
    def __init__(self):
        super().__init__("divide by zero")


# ---------------------------
# Tokenizer
# ---------------------------

class TokenKind:
    """
    Enumeration of token kinds.
    Punctuation and operators use their own character as kind.
    """
    NUMBER = '8'
    NAME = 'a'
    LET = 'L'
    QUIT = 'q'
    PRINT = ';'
    END = ''
    LPAREN = '('
    RPAREN = ')'
    PLUS = '+'
    MINUS = '-'
    MUL = '*'
    DIV = '/'
    MOD = '%'
    ASSIGN = '='

SYMBOLS = frozenset('();q+-*/%=')
DIGITS = frozenset(string.digits)
LETTERS = frozenset(string.ascii_letters)
LET_KEYWORD = 'let'


@dataclass(frozen=True)
class Token:
    """One lexical unit. Only NUMBER tokens carry a value and only NAME tokens carry a name."""
    kind: str
    value: float = 0.0
    name: str = ''

    def __repr__(self) -> str:
        if self.kind == TokenKind.NUMBER:
            return f"Token(NUMBER, {self.value!r})"
        if self.kind == TokenKind.NAME:
            return f"Token(NAME, {self.name!r})"
        if self.kind == TokenKind.LET:
            return "Token(LET)"
        if self.kind == TokenKind.END:
            return "Token(END)"
        return f"Token({self.kind!r})"


class CharSource:
    """
    Cursor over the input line with single character pushback.
    get() returns '' once the text is exhausted.
    """
    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def get(self) -> str:
        if self.pos >= len(self.text):
            return ''
        ch = self.text[self.pos]
        self.pos += 1
        return ch

    def putback(self, ch: str) -> None:
        # '' is what get() returns at the end, nothing was consumed
        if ch:
            self.pos -= 1

    def get_nonblank(self) -> str:
        """Skip whitespace and return the next character ('' at the end)."""
        ch = self.get()
        while ch and ch.isspace():
            ch = self.get()
        return ch

    def rest(self) -> str:
        return self.text[self.pos:]


class TokenStream:
    """
    Produces tokens from a CharSource and allows one token to be pushed back.
    """
    def __init__(self, text: str):
        self.source = CharSource(text)
        self.buffer: Optional[Token] = None

    @property
    def full(self) -> bool:
        return self.buffer is not None

    def get(self) -> Token:
        """
        Returns the buffered token if there is one, otherwise reads the next token from the source.
        """
        if self.buffer is not None:
            token = self.buffer
            self.buffer = None
            return token

        ch = self.source.get_nonblank()
        if not ch:
            token = Token(TokenKind.END)
        elif ch in SYMBOLS:
            token = Token(ch)
        elif ch == '.' or ch in DIGITS:
            token = self._read_number(ch)
        elif ch in LETTERS:
            token = self._read_word(ch)
        else:
            raise BadToken(ch)
        logger.debug(f"Read {token!r}")
        return token

    def _read_number(self, first: str) -> Token:
        """Digits with at most one decimal point, converted with float()."""
        chars = [first]
        seen_dot = first == '.'
        ch = self.source.get()
        while ch and (ch in DIGITS or (ch == '.' and not seen_dot)):
            seen_dot = seen_dot or ch == '.'
            chars.append(ch)
            ch = self.source.get()
        self.source.putback(ch)
        literal = ''.join(chars)
        try:
            return Token(TokenKind.NUMBER, value=float(literal))
        except ValueError:
            raise BadToken(literal)

    def _read_word(self, first: str) -> Token:
        chars = [first]
        ch = self.source.get()
        while ch and (ch in LETTERS or ch in DIGITS):
            chars.append(ch)
            ch = self.source.get()
        self.source.putback(ch)
        word = ''.join(chars)
        if word == LET_KEYWORD:
            return Token(TokenKind.LET)
        return Token(TokenKind.NAME, name=word)

    def putback(self, token: Token) -> None:
        if self.buffer is not None:
            raise BufferFull()
        logger.debug(f"Put back {token!r}")
        self.buffer = token

    def ignore(self, kind: str) -> None:
        """
        Discards input up to and including the next character equal to kind.
        A buffered token of that kind counts as found.
        """
        if self.buffer is not None and self.buffer.kind == kind:
            self.buffer = None
            return
        self.buffer = None

        ch = self.source.get_nonblank()
        while ch and ch != kind:
            ch = self.source.get_nonblank()
        logger.debug(f"Ignored input up to {kind!r}, {len(self.source.rest())} characters left")

    def at_end(self) -> bool:
        """
        True when no statement is left: nothing but whitespace and print terminators remain.
        Nothing is consumed.
        """
        if self.buffer is not None and self.buffer.kind not in (TokenKind.END, TokenKind.PRINT):
            return False
        return not self.source.rest().replace(TokenKind.PRINT, ' ').strip()


# ---------------------------
# Variables
# ---------------------------

class SymbolTable:
    """
    Maps variable names to their current values.
    """
    def __init__(self, values: Optional[Dict[str, float]] = None):
        self._values: Dict[str, float] = dict(values or {})

    def declare(self, name: str, value: float) -> float:
        """Creates or overwrites name. Returns the stored value."""
        self._values[name] = value
        logger.debug(f"Declared {name} = {value!r}")
        return value

    def lookup(self, name: str) -> float:
        try:
            return self._values[name]
        except KeyError:
            raise UndefinedVariable(name) from None

    def __len__(self) -> int:
        return len(self._values)

    def items(self) -> List[tuple]:
        return sorted(self._values.items())


# ---------------------------
# Evaluator
# ---------------------------

def apply_operator(op: str, left: float, right: float) -> float:
    """
    Applies a binary arithmetic operator. Division and remainder by exactly zero raise DivideByZero.
    """
    if op == TokenKind.PLUS:
        return left + right
    elif op == TokenKind.MINUS:
        return left - right
    elif op == TokenKind.MUL:
        return left * right
    elif op == TokenKind.DIV:
        if right == 0:
            raise DivideByZero()
        return left / right
    elif op == TokenKind.MOD:
        if right == 0:
            raise DivideByZero()
        # C fmod of an infinite dividend is NaN, math.fmod raises instead
        if math.isinf(left):
            return math.nan
        return math.fmod(left, right)
    raise ValueError(f"Unknown operator: {op!r}")


class Evaluator:
    """
    Recursive descent evaluator. Values are computed while parsing.
    Grammar:
        expression : term (('+'|'-'|'*'|'/'|'%') term)*
        term       : primary (('*'|'/'|'%') primary)*
        primary    : '(' expression ')' | NUMBER | '-' primary | NAME

    The multiplicative operators are accepted at the expression level too, where they combine the
    running total with the next term.
    """
    TERM_OPERATORS = (TokenKind.MUL, TokenKind.DIV, TokenKind.MOD)
    EXPRESSION_OPERATORS = (TokenKind.PLUS, TokenKind.MINUS) + TERM_OPERATORS

    def __init__(self, stream: TokenStream, symbols: SymbolTable):
        self.stream = stream
        self.symbols = symbols

    def primary(self) -> float:
        token = self.stream.get()
        if token.kind == TokenKind.LPAREN:
            value = self.expression()
            if self.stream.get().kind != TokenKind.RPAREN:
                raise ExpectedCloseParen()
            return value
        elif token.kind == TokenKind.NUMBER:
            return token.value
        elif token.kind == TokenKind.MINUS:
            return -self.primary()
        elif token.kind == TokenKind.NAME:
            return self.symbols.lookup(token.name)
        raise PrimaryExpected()

    def term(self) -> float:
        left = self.primary()
        while True:
            token = self.stream.get()
            if token.kind not in self.TERM_OPERATORS:
                self.stream.putback(token)
                return left
            left = apply_operator(token.kind, left, self.primary())

    def expression(self) -> float:
        left = self.term()
        while True:
            token = self.stream.get()
            if token.kind not in self.EXPRESSION_OPERATORS:
                self.stream.putback(token)
                return left
            left = apply_operator(token.kind, left, self.term())

    def declaration(self) -> str:
        """
        Handles the part of 'let name = expression' after 'let'.
        Returns the text to report.
        """
        token = self.stream.get()
        if token.kind != TokenKind.NAME:
            raise NameExpectedInDeclaration()
        name = token.name
        if self.stream.get().kind != TokenKind.ASSIGN:
            raise MissingEquals(name)
        value = self.symbols.declare(name, self.expression())
        return f"{name} = {format_number(value)}"


def format_number(value: float) -> str:
    """Six significant digits, integral values without a decimal point."""
    return f"{value:g}"


# ---------------------------
# Session
# ---------------------------

class SessionState:
    """Enumeration of session states."""
    RUNNING = 'RUNNING'
    EXHAUSTED = 'EXHAUSTED'
    QUIT = 'QUIT'
    FAILED = 'FAILED'


@dataclass
class StatementResult:
    """
    Outcome of one statement: the text to print, a quit request, or the error that stopped it.
    """
    text: Optional[str] = None
    quit: bool = False
    error: Optional[CalculatorError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Session:
    """
    Runs the statements of one input line against a symbol table.
    Evaluation stops at the first error; the rest of the line is discarded up to the next ';'.
    """
    def __init__(self, text: str, symbols: Optional[SymbolTable] = None,
                 out: Optional[TextIO] = None, err: Optional[TextIO] = None):
        self.stream = TokenStream(text)
        self.symbols = symbols if symbols is not None else SymbolTable()
        self.evaluator = Evaluator(self.stream, self.symbols)
        self.out = out
        self.err = err
        self.state = SessionState.RUNNING

    def run_statement(self) -> StatementResult:
        """
        Evaluates one statement. Calculator errors are returned, anything else propagates.
        """
        try:
            token = self.stream.get()
            while token.kind == TokenKind.PRINT:
                token = self.stream.get()

            if token.kind == TokenKind.QUIT:
                return StatementResult(quit=True)
            if token.kind == TokenKind.LET:
                return StatementResult(text=self.evaluator.declaration())

            self.stream.putback(token)
            return StatementResult(text=format_number(self.evaluator.expression()))
        except CalculatorError as e:
            return StatementResult(error=e)

    def run(self) -> str:
        """
        Main loop. Returns the final session state.
        """
        out = self.out if self.out is not None else sys.stdout
        err = self.err if self.err is not None else sys.stderr
        while self.state == SessionState.RUNNING:
            if self.stream.at_end():
                self._set_state(SessionState.EXHAUSTED)
                break

            print(PROMPT, end='', file=out)
            result = self.run_statement()

            if result.quit:
                self._set_state(SessionState.QUIT)
            elif result.ok:
                print(f"{RESULT}{result.text}", file=out)
            else:
                self._report(result.error, err)
                self.stream.ignore(TokenKind.PRINT)
                self._set_state(SessionState.FAILED)
        logger.debug(f"Session ended with {len(self.symbols)} variable(s): {self._listing()}")
        return self.state

    def _listing(self) -> str:
        return ', '.join(f"{name} = {format_number(value)}" for name, value in self.symbols.items())

    def _report(self, error: CalculatorError, err: TextIO) -> None:
        if isinstance(error, BufferFull):
            logger.error(f"Token stream invariant violated: {error}")
        else:
            logger.debug(f"Statement failed with {type(error).__name__}: {error}")
        print(error, file=err)

    def _set_state(self, state: str) -> None:
        logger.debug(f"Session {self.state} -> {state}")
        self.state = state


# ---------------------------
# Main Entry Point
# ---------------------------

def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='let-calculator',
        description="Evaluate a line of arithmetic statements with 'let' variables.",
    )
    parser.add_argument(
        "-e", "--expression",
        type=str,
        help="Line to evaluate instead of reading one from standard input.",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        help=f"Logging level (default: ${LOG_LEVEL_ENV} or WARNING).",
    )
    return parser


def configure_logging(level_name: Optional[str]) -> int:
    """
    Configures the root logger. Unknown level names fall back to WARNING.
    Returns the numeric level in use.
    """
    name = (level_name or 'WARNING').upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)
    if name not in LOG_LEVELS:
        logger.warning(f"Unknown log level {level_name!r}, using WARNING")
    return level


def read_line() -> str:
    try:
        return input(ENTRY_PROMPT)
    except (EOFError, KeyboardInterrupt):
        print()  # Newline for clean exit
        return ''


def main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point for the calculator. Returns the process exit code.
    """
    load_dotenv()
    args = build_arg_parser().parse_args(argv)
    configure_logging(args.log_level or os.getenv(LOG_LEVEL_ENV))

    line = args.expression if args.expression is not None else read_line()
    try:
        state = Session(line).run()
    except Exception as e:
        logger.error("Unexpected failure while evaluating input", exc_info=True)
        print(f"Unexpected error: {type(e).__name__}", file=sys.stderr)
        return EXIT_UNEXPECTED
    logger.info(f"Session ended in state {state}")
    return EXIT_OK


if __name__ == '__main__':
    sys.exit(main())
