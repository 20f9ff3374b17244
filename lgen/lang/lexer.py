"""Lexical analyzer (tokenizer) for the lgen template language.

Converts source text into a stream of tokens. The lexer is mode based:
``#`` switches into template-name mode and ``-`` into template-body mode,
both of which return to the default mode at the end of the line.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import List, Optional

from ..errors import LGSyntaxError


class TokenType(Enum):
    """Token types for the template language."""

    # Default mode
    HASH = auto()
    DASH = auto()

    # Template-name mode
    IDENTIFIER = auto()
    DOT = auto()
    OPEN_PARENTHESIS = auto()
    CLOSE_PARENTHESIS = auto()
    COMMA = auto()

    # Template-body mode keywords
    IF = auto()
    ELSEIF = auto()
    ELSE = auto()

    # Template-body mode content
    WS = auto()
    MULTI_LINE_TEXT = auto()
    ESCAPE_CHARACTER = auto()
    INVALID_ESCAPE = auto()
    EXPRESSION = auto()
    TEMPLATE_REF = auto()
    TEXT_SEPARATOR = auto()
    TEXT = auto()

    # Special
    NEWLINE = auto()
    EOF = auto()


class LexerMode(Enum):
    DEFAULT = auto()
    TEMPLATE_NAME = auto()
    TEMPLATE_BODY = auto()


@dataclass(frozen=True)
class Token:
    """A single token with position information."""

    type: TokenType
    value: str
    line: int
    column: int

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"


KEYWORDS = {
    "if": TokenType.IF,
    "elseif": TokenType.ELSEIF,
    "else": TokenType.ELSE,
}

CONTENT_TOKENS = frozenset(
    {
        TokenType.MULTI_LINE_TEXT,
        TokenType.ESCAPE_CHARACTER,
        TokenType.INVALID_ESCAPE,
        TokenType.EXPRESSION,
        TokenType.TEMPLATE_REF,
        TokenType.TEXT_SEPARATOR,
        TokenType.TEXT,
    }
)

TEXT_SEPARATORS = frozenset(" \t\r\n{}[]()")
ESCAPABLE = frozenset("{[\\rtn]}")

_WHITESPACE_RE = re.compile(r"[ \t]+")
_NEWLINE_RE = re.compile(r"\r?\n")
_IDENTIFIER_RE = re.compile(r"\w[\w-]*")
_KEYWORD_RE = re.compile(r"(elseif|else|if)[ \t]*:", re.IGNORECASE)
_EXPRESSION_RE = re.compile(r"\{(?:\\.|[^\r\n{}\\])*\}")
_TEXT_RE = re.compile(r"(?:(?!```)[^ \t\r\n{}\[\]()\\])+")
_MULTI_LINE_DELIMITER = "```"

_NAME_PUNCTUATION = {
    ".": TokenType.DOT,
    "(": TokenType.OPEN_PARENTHESIS,
    ")": TokenType.CLOSE_PARENTHESIS,
    ",": TokenType.COMMA,
}


class Lexer:
    """Tokenizer for template-language source."""

    def __init__(self, source: str, path: str = ""):
        self.source = source
        self.path = path
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: List[Token] = []

        self.mode = LexerMode.DEFAULT
        # Leading whitespace after a dash is layout, not content.
        self.ignore_ws = True
        # if:/elseif:/else: only count as keywords right after a dash.
        self.expect_if_else = False

    def error(self, message: str, *, code: str = "INVALID_TOKEN") -> LGSyntaxError:
        return LGSyntaxError(
            message,
            path=self.path or None,
            line=self.line,
            column=self.column,
            code=code,
        )

    def peek(self, offset: int = 0) -> Optional[str]:
        pos = self.pos + offset
        if pos < len(self.source):
            return self.source[pos]
        return None

    def consume(self, length: int) -> str:
        """Consume ``length`` characters, keeping line/column in step."""
        text = self.source[self.pos:self.pos + length]
        for char in text:
            if char == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
        self.pos += length
        return text

    def emit(self, token_type: TokenType, length: int) -> Token:
        line, column = self.line, self.column
        token = Token(token_type, self.consume(length), line, column)
        self.tokens.append(token)
        return token

    def tokenize(self) -> List[Token]:
        """Tokenize the entire source."""
        while self.pos < len(self.source):
            if self.mode is LexerMode.DEFAULT:
                self._lex_default()
            elif self.mode is LexerMode.TEMPLATE_NAME:
                self._lex_template_name()
            else:
                self._lex_template_body()

        self.tokens.append(Token(TokenType.EOF, "", self.line, self.column))
        return self.tokens

    def _lex_default(self) -> None:
        char = self.peek()

        if char in (" ", "\t", "\r", "\n"):
            self.consume(1)
            return

        if char in (">", "$"):
            self.consume(self._line_length())
            return

        if char == "#":
            self.emit(TokenType.HASH, 1)
            self.mode = LexerMode.TEMPLATE_NAME
            return

        if char == "-":
            self.emit(TokenType.DASH, 1)
            self.expect_if_else = True
            self.ignore_ws = True
            self.mode = LexerMode.TEMPLATE_BODY
            return

        raise self.error(
            f"Unexpected character {char!r}; lines must start with '#', '-', '>' or '$'"
        )

    def _lex_template_name(self) -> None:
        char = self.peek()

        newline = _NEWLINE_RE.match(self.source, self.pos)
        if newline:
            self.emit(TokenType.NEWLINE, newline.end() - self.pos)
            self.mode = LexerMode.DEFAULT
            return

        if char in (" ", "\t", "\r"):
            self.consume(1)
            return

        if char in _NAME_PUNCTUATION:
            self.emit(_NAME_PUNCTUATION[char], 1)
            return

        if char == ";":
            raise self.error(
                "Semicolons are not allowed in a template declaration",
                code="INVALID_SEPARATOR",
            )

        identifier = _IDENTIFIER_RE.match(self.source, self.pos)
        if identifier:
            self.emit(TokenType.IDENTIFIER, identifier.end() - self.pos)
            return

        raise self.error(f"Unexpected character {char!r} in template declaration")

    def _lex_template_body(self) -> None:
        char = self.peek()

        whitespace = _WHITESPACE_RE.match(self.source, self.pos)
        if whitespace:
            length = whitespace.end() - self.pos
            if self.ignore_ws:
                self.consume(length)
            else:
                self.emit(TokenType.WS, length)
            return

        newline = _NEWLINE_RE.match(self.source, self.pos)
        if newline:
            self.emit(TokenType.NEWLINE, newline.end() - self.pos)
            self.ignore_ws = True
            self.mode = LexerMode.DEFAULT
            return

        if self.expect_if_else and self._lex_keyword():
            return

        token_type, length = self._match_content(char)
        self.emit(token_type, length)
        self.ignore_ws = False
        self.expect_if_else = False

    def _lex_keyword(self) -> bool:
        keyword = _KEYWORD_RE.match(self.source, self.pos)
        if not keyword:
            return False
        text = _TEXT_RE.match(self.source, self.pos)
        text_length = text.end() - self.pos if text else 0
        length = keyword.end() - self.pos
        # Longest match wins; on a tie the keyword wins.
        if length < text_length:
            return False
        self.emit(KEYWORDS[keyword.group(1).lower()], length)
        self.ignore_ws = True
        return True

    def _match_content(self, char: str):
        if self.source.startswith(_MULTI_LINE_DELIMITER, self.pos):
            end = self.source.find(_MULTI_LINE_DELIMITER, self.pos + len(_MULTI_LINE_DELIMITER))
            if end >= 0:
                return TokenType.MULTI_LINE_TEXT, end + len(_MULTI_LINE_DELIMITER) - self.pos

        if char == "\\":
            following = self.peek(1)
            if following is not None and following in ESCAPABLE:
                return TokenType.ESCAPE_CHARACTER, 2
            if following is None or following in ("\r", "\n"):
                return TokenType.INVALID_ESCAPE, 1
            return TokenType.INVALID_ESCAPE, 2

        if char == "{":
            expression = _EXPRESSION_RE.match(self.source, self.pos)
            if expression:
                return TokenType.EXPRESSION, expression.end() - self.pos

        if char == "[":
            length = self._template_ref_length()
            if length:
                return TokenType.TEMPLATE_REF, length

        if char in TEXT_SEPARATORS:
            return TokenType.TEXT_SEPARATOR, 1

        text = _TEXT_RE.match(self.source, self.pos)
        if text:
            return TokenType.TEXT, text.end() - self.pos
        # Unclosed ``` is plain text, one backtick at a time.
        return TokenType.TEXT, 1

    def _template_ref_length(self) -> int:
        """Length of a balanced ``[...]`` span on the current line, or 0."""
        depth = 0
        index = self.pos
        while index < len(self.source):
            char = self.source[index]
            if char in ("\r", "\n"):
                return 0
            if char == "[":
                depth += 1
            elif char == "]":
                depth -= 1
                if depth == 0:
                    return index + 1 - self.pos
            index += 1
        return 0

    def _line_length(self) -> int:
        end = self.pos
        while end < len(self.source) and self.source[end] not in ("\r", "\n"):
            end += 1
        return end - self.pos


def tokenize(source: str, path: str = "") -> List[Token]:
    """Tokenize template-language source."""
    lexer = Lexer(source, path)
    return lexer.tokenize()


__all__ = ["Token", "TokenType", "LexerMode", "Lexer", "tokenize", "KEYWORDS", "CONTENT_TOKENS"]
