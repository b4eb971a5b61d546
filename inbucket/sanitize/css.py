"""Sanitising of inline CSS style declarations."""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum


class TokenType(Enum):
    """Kinds of CSS token; each value is the name used in diagnostics."""

    ERROR = "error"
    EOF = "EOF"
    IDENT = "IDENT"
    AT_KEYWORD = "ATKEYWORD"
    STRING = "STRING"
    HASH = "HASH"
    NUMBER = "NUMBER"
    PERCENTAGE = "PERCENTAGE"
    DIMENSION = "DIMENSION"
    URI = "URI"
    UNICODE_RANGE = "UNICODE-RANGE"
    CDO = "CDO"
    CDC = "CDC"
    S = "S"
    COMMENT = "COMMENT"
    FUNCTION = "FUNCTION"
    INCLUDES = "INCLUDES"
    DASH_MATCH = "DASHMATCH"
    PREFIX_MATCH = "PREFIXMATCH"
    SUFFIX_MATCH = "SUFFIXMATCH"
    SUBSTRING_MATCH = "SUBSTRINGMATCH"
    CHAR = "CHAR"
    BOM = "BOM"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Token:
    """One CSS token and the text it was read from."""

    type: TokenType
    value: str


_ESC = r"(?:\\[0-9a-fA-F]{1,6}[ \t\r\n\f]?|\\[^\n\r\f0-9a-fA-F])"
_NMSTART = rf"(?:[_a-zA-Z\u0080-\uffff]|{_ESC})"
_NMCHAR = rf"(?:[_a-zA-Z0-9\-\u0080-\uffff]|{_ESC})"
_IDENT = rf"-?{_NMSTART}{_NMCHAR}*"
_NAME = rf"{_NMCHAR}+"
_NUM = r"[+-]?(?:[0-9]*\.[0-9]+|[0-9]+)"
_STRING = r'"(?:[^"\\\n\r\f]|\\.|\\\n)*"|\'(?:[^\'\\\n\r\f]|\\.|\\\n)*\''
_URL_BODY = r"(?:[^\s\"'()\\]|" + _ESC + r")*"

_PATTERNS: list[tuple[TokenType, str]] = [
    (TokenType.BOM, "\ufeff"),
    (TokenType.COMMENT, r"/\*[^*]*\*+(?:[^/*][^*]*\*+)*/"),
    (TokenType.S, r"[ \t\r\n\f]+"),
    (TokenType.STRING, _STRING),
    (TokenType.URI, rf"[uU][rR][lL]\([ \t\r\n\f]*(?:{_STRING}|{_URL_BODY})[ \t\r\n\f]*\)"),
    (TokenType.UNICODE_RANGE, r"[uU]\+[0-9A-Fa-f?]{1,6}(?:-[0-9A-Fa-f]{1,6})?"),
    (TokenType.CDO, r"<!--"),
    (TokenType.CDC, r"-->"),
    (TokenType.FUNCTION, rf"{_IDENT}\("),
    (TokenType.DIMENSION, rf"{_NUM}{_IDENT}"),
    (TokenType.PERCENTAGE, rf"{_NUM}%"),
    (TokenType.NUMBER, _NUM),
    (TokenType.IDENT, _IDENT),
    (TokenType.AT_KEYWORD, rf"@{_IDENT}"),
    (TokenType.HASH, rf"#{_NAME}"),
    (TokenType.INCLUDES, r"~="),
    (TokenType.DASH_MATCH, r"\|="),
    (TokenType.PREFIX_MATCH, r"\^="),
    (TokenType.SUFFIX_MATCH, r"\$="),
    (TokenType.SUBSTRING_MATCH, r"\*="),
]

_COMPILED = [(t, re.compile(p)) for t, p in _PATTERNS]
_UNTERMINATED = re.compile(r"/\*|[\"']")


def tokenize(text: str) -> Iterator[Token]:
    """Yield the tokens of ``text``, ending with an EOF or ERROR token."""
    pos = 0
    while pos < len(text):
        for kind, pattern in _COMPILED:
            m = pattern.match(text, pos)
            if m:
                yield Token(kind, m.group())
                pos = m.end()
                break
        else:
            if _UNTERMINATED.match(text, pos):
                yield Token(TokenType.ERROR, text[pos:])
                return
            yield Token(TokenType.CHAR, text[pos])
            pos += 1
    yield Token(TokenType.EOF, "")


ALLOWED_PROPERTIES = frozenset({
    "align", "background-color", "border", "border-bottom", "border-left",
    "border-radius", "border-right", "border-top", "box-sizing", "clear",
    "color", "content", "display", "font-family", "font-size", "font-weight",
    "height", "line-height", "margin", "margin-bottom", "margin-left",
    "margin-right", "margin-top", "max-height", "max-width", "overflow",
    "padding", "padding-bottom", "padding-left", "padding-right", "padding-top",
    "table-layout", "text-align", "text-decoration", "text-shadow",
    "vertical-align", "width", "word-break",
})


def _is_semicolon(token: Token) -> bool:
    return token.type is TokenType.CHAR and token.value == ";"


def sanitize_style(text: str) -> str:
    """Keep only declarations of allowed properties; return "" on a scan error."""
    out: list[str] = []
    state = "start"
    for token in tokenize(text):
        if token.type is TokenType.EOF:
            break
        if token.type is TokenType.ERROR:
            return ""
        if state == "start":
            if token.type is TokenType.IDENT:
                if token.value.lower() in ALLOWED_PROPERTIES:
                    out.append(token.value)
                    state = "valid"
                else:
                    state = "eat"
            elif token.type is not TokenType.S:
                out.append(f"/*{token.type}*/")
                state = "eat"
        elif state == "eat":
            if _is_semicolon(token):
                state = "start"
        else:
            out.append(token.value)
            if _is_semicolon(token):
                state = "start"
    return "".join(out)