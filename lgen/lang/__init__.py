"""Template-language front end: lexer and parser.

Public API:
    tokenize(source, path) -> List[Token]
    parse_templates(source, source_label) -> List[Template]
"""

from .lexer import Lexer, LexerMode, Token, TokenType, tokenize
from .parser import TemplateParser, parse_templates

__all__ = [
    "Lexer",
    "LexerMode",
    "Token",
    "TokenType",
    "tokenize",
    "TemplateParser",
    "parse_templates",
]
