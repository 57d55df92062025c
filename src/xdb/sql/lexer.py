"""
Tokenizer for the XDB statement dialect.

Operators are matched longest-first from a fixed table, so `>=` is
never read as `>` followed by `=`.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from xdb.errors import StatementSyntaxError

# Longest first.
OPERATORS: tuple[str, ...] = (">=", "<=", "!=", "<>", "=", ">", "<")
PUNCTUATION = frozenset("(),*;.")

_WORD_START = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ_")
_WORD_CHARS = _WORD_START | frozenset("0123456789$")


class TokenType(str, Enum):
    """Kinds of token."""

    WORD = "word"
    IDENTIFIER = "identifier"
    NUMBER = "number"
    STRING = "string"
    BLOB = "blob"
    OPERATOR = "operator"
    PUNCTUATION = "punctuation"
    EOF = "eof"


@dataclass(frozen=True)
class Token:
    """
    A lexed token.

    Attributes:
        type: Token kind
        text: Source text of the token
        position: Offset of the token in the statement
        value: Decoded value for strings, blobs and quoted identifiers
    """

    type: TokenType
    text: str
    position: int
    value: Any = None

    @property
    def upper(self) -> str:
        return self.text.upper()

    def is_word(self, *words: str) -> bool:
        """True if this is a bare word matching one of `words` (any case)."""
        return self.type == TokenType.WORD and self.upper in words

    def is_punct(self, char: str) -> bool:
        return self.type == TokenType.PUNCTUATION and self.text == char


def tokenize(sql: str) -> list[Token]:
    """
    Split a statement into tokens.

    Args:
        sql: Statement text

    Returns:
        Tokens, always ending with an EOF token

    Raises:
        StatementSyntaxError: On unterminated quotes or stray characters
    """
    tokens: list[Token] = []
    i = 0
    n = len(sql)

    while i < n:
        ch = sql[i]

        if ch.isspace():
            i += 1
            continue

        # Line comment
        if sql.startswith("--", i):
            end = sql.find("\n", i)
            i = n if end == -1 else end + 1
            continue

        if ch in ("X", "x") and i + 1 < n and sql[i + 1] == "'":
            text, end = _read_quoted(sql, i + 1, "'")
            try:
                blob = bytes.fromhex(text)
            except ValueError as e:
                raise StatementSyntaxError(
                    message=f"Invalid hex literal at position {i}",
                    statement=sql,
                    position=i,
                ) from e
            tokens.append(Token(TokenType.BLOB, sql[i:end], i, blob))
            i = end
            continue

        if ch == "'":
            text, end = _read_quoted(sql, i, "'")
            tokens.append(Token(TokenType.STRING, sql[i:end], i, text))
            i = end
            continue

        if ch in ('"', "`"):
            text, end = _read_quoted(sql, i, ch)
            tokens.append(Token(TokenType.IDENTIFIER, sql[i:end], i, text))
            i = end
            continue

        if ch == "[":
            end = sql.find("]", i + 1)
            if end == -1:
                raise StatementSyntaxError(
                    message=f"Unterminated identifier at position {i}",
                    statement=sql,
                    position=i,
                )
            tokens.append(Token(TokenType.IDENTIFIER, sql[i : end + 1], i, sql[i + 1 : end]))
            i = end + 1
            continue

        number_end = _match_number(sql, i)
        if number_end is not None:
            tokens.append(Token(TokenType.NUMBER, sql[i:number_end], i))
            i = number_end
            continue

        if ch in _WORD_START:
            j = i + 1
            while j < n and sql[j] in _WORD_CHARS:
                j += 1
            tokens.append(Token(TokenType.WORD, sql[i:j], i))
            i = j
            continue

        for op in OPERATORS:
            if sql.startswith(op, i):
                tokens.append(Token(TokenType.OPERATOR, op, i))
                i += len(op)
                break
        else:
            if ch in PUNCTUATION:
                tokens.append(Token(TokenType.PUNCTUATION, ch, i))
                i += 1
                continue
            raise StatementSyntaxError(
                message=f"Unexpected character {ch!r} at position {i}",
                statement=sql,
                position=i,
            )

    tokens.append(Token(TokenType.EOF, "", n))
    return tokens


def _read_quoted(sql: str, start: int, quote: str) -> tuple[str, int]:
    """Read a quoted run starting at `start`; doubled quotes escape."""
    parts: list[str] = []
    i = start + 1
    n = len(sql)
    while i < n:
        ch = sql[i]
        if ch == quote:
            if i + 1 < n and sql[i + 1] == quote:
                parts.append(quote)
                i += 2
                continue
            return "".join(parts), i + 1
        parts.append(ch)
        i += 1
    raise StatementSyntaxError(
        message=f"Unterminated quoted text at position {start}",
        statement=sql,
        position=start,
    )


def _match_number(sql: str, i: int) -> int | None:
    """Return the end offset of a number starting at `i`, if any."""
    n = len(sql)
    j = i
    if j < n and sql[j] in "+-":
        j += 1
    start_digits = j
    while j < n and sql[j].isdigit():
        j += 1
    int_digits = j - start_digits
    frac_digits = 0
    if j < n and sql[j] == "." and (int_digits or (j + 1 < n and sql[j + 1].isdigit())):
        j += 1
        k = j
        while j < n and sql[j].isdigit():
            j += 1
        frac_digits = j - k
    if int_digits == 0 and frac_digits == 0:
        return None
    if j < n and sql[j] in "eE":
        k = j + 1
        if k < n and sql[k] in "+-":
            k += 1
        if k < n and sql[k].isdigit():
            while k < n and sql[k].isdigit():
                k += 1
            j = k
    # A number glued to a word (e.g. "1abc") is not a number.
    if j < n and sql[j] in _WORD_START:
        return None
    return j
