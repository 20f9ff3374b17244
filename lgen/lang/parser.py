"""Recursive descent parser for the lgen template language.

Groups the lexer's token stream into :class:`~lgen.templates.Template`
definitions, each carrying a normal or conditional body tree.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from ..ast import (
    ConditionalBody,
    ConditionRule,
    Fragment,
    FragmentKind,
    NormalBody,
    StringTemplate,
    TemplateBody,
)
from ..errors import LGSyntaxError
from ..templates import Template
from .lexer import Token, TokenType, tokenize

_FRAGMENT_KINDS = {
    TokenType.TEXT: FragmentKind.TEXT,
    TokenType.WS: FragmentKind.WHITESPACE,
    TokenType.TEXT_SEPARATOR: FragmentKind.TEXT_SEPARATOR,
    TokenType.ESCAPE_CHARACTER: FragmentKind.ESCAPE,
    TokenType.INVALID_ESCAPE: FragmentKind.INVALID_ESCAPE,
    TokenType.EXPRESSION: FragmentKind.EXPRESSION,
    TokenType.TEMPLATE_REF: FragmentKind.TEMPLATE_REF,
    TokenType.MULTI_LINE_TEXT: FragmentKind.MULTI_LINE,
}

_CONDITION_KEYWORDS = (TokenType.IF, TokenType.ELSEIF, TokenType.ELSE)

# A body line as read from the token stream: the keyword token for condition
# lines (None otherwise), the content tokens, and the dash token.
_BodyLine = Tuple[Optional[Token], List[Token], Token]


class TemplateParser:
    """Parser turning template-language source into templates."""

    def __init__(self, source: str, *, source_label: str = "inline"):
        self.source = source
        self.source_label = source_label
        self.tokens = tokenize(source, source_label)
        self.pos = 0

    # Token management

    def current(self) -> Token:
        return self.tokens[self.pos]

    def advance(self) -> Token:
        token = self.current()
        if token.type is not TokenType.EOF:
            self.pos += 1
        return token

    def match(self, *types: TokenType) -> bool:
        return self.current().type in types

    def expect(self, *types: TokenType) -> Token:
        token = self.current()
        if token.type not in types:
            expected = " or ".join(t.name.lower().replace("_", " ") for t in types)
            found = token.type.name.lower().replace("_", " ")
            raise self.error(f"Expected {expected}, found {found}", token)
        return self.advance()

    def error(self, message: str, token: Token, *, code: str = "SYNTAX_ERROR", hint: Optional[str] = None) -> LGSyntaxError:
        return LGSyntaxError(
            message,
            path=self.source_label,
            line=token.line,
            column=token.column,
            code=code,
            hint=hint,
        )

    # Grammar

    def parse(self) -> List[Template]:
        """Parse every template definition in the source."""
        templates: List[Template] = []
        while not self.match(TokenType.EOF):
            if self.match(TokenType.DASH):
                raise self.error(
                    "Template body line appears before any template declaration",
                    self.current(),
                    code="ORPHAN_BODY",
                    hint="Start the document with a '#name' line.",
                )
            templates.append(self._parse_definition())
        return templates

    def _parse_definition(self) -> Template:
        hash_token = self.expect(TokenType.HASH)
        name = self._parse_template_name()
        parameters: Tuple[str, ...] = ()
        if self.match(TokenType.OPEN_PARENTHESIS):
            parameters = self._parse_parameters()
        if not self.match(TokenType.EOF):
            self.expect(TokenType.NEWLINE)

        lines: List[_BodyLine] = []
        while self.match(TokenType.DASH):
            lines.append(self._read_body_line())

        if not lines:
            raise self.error(
                f"Template '{name}' has no body",
                hash_token,
                code="EMPTY_BODY",
                hint="Add at least one '- ...' line after the declaration.",
            )

        return Template(
            name=name,
            parameters=parameters,
            body=self._build_body(name, lines),
            source=self.source_label,
            line=hash_token.line,
        )

    def _parse_template_name(self) -> str:
        parts = [self.expect(TokenType.IDENTIFIER).value]
        while self.match(TokenType.DOT):
            self.advance()
            parts.append(self.expect(TokenType.IDENTIFIER).value)
        return ".".join(parts)

    def _parse_parameters(self) -> Tuple[str, ...]:
        self.expect(TokenType.OPEN_PARENTHESIS)
        parameters: List[str] = []
        if self.match(TokenType.IDENTIFIER):
            parameters.append(self.advance().value)
            while self.match(TokenType.COMMA):
                self.advance()
                parameters.append(self.expect(TokenType.IDENTIFIER).value)
        self.expect(TokenType.CLOSE_PARENTHESIS)
        return tuple(parameters)

    def _read_body_line(self) -> _BodyLine:
        dash = self.expect(TokenType.DASH)
        keyword: Optional[Token] = None
        if self.match(*_CONDITION_KEYWORDS):
            keyword = self.advance()
        content: List[Token] = []
        while not self.match(TokenType.NEWLINE, TokenType.EOF):
            token = self.advance()
            if token.type in _CONDITION_KEYWORDS:
                # A keyword repeated after the first one is plain text.
                content.append(Token(TokenType.TEXT, token.value, token.line, token.column))
            else:
                content.append(token)
        if self.match(TokenType.NEWLINE):
            self.advance()
        return keyword, content, dash

    def _build_body(self, name: str, lines: List[_BodyLine]) -> TemplateBody:
        first_keyword = next((index for index, line in enumerate(lines) if line[0] is not None), None)
        if first_keyword is None:
            return NormalBody(alternatives=tuple(self._string_template(content, dash) for _, content, dash in lines))
        if first_keyword > 0:
            raise self.error(
                f"Template '{name}' mixes plain alternatives with conditional branches",
                lines[first_keyword][2],
                code="MIXED_BODY",
                hint="Put every alternative under an IF/ELSEIF/ELSE branch.",
            )

        rules: List[ConditionRule] = []
        keyword_token: Optional[Token] = None
        keyword_content: List[Token] = []
        alternatives: List[StringTemplate] = []
        for keyword, content, dash in lines:
            if keyword is None:
                alternatives.append(self._string_template(content, dash))
                continue
            if keyword_token is not None:
                rules.append(self._condition_rule(keyword_token, keyword_content, alternatives))
            keyword_token, keyword_content, alternatives = keyword, content, []
        if keyword_token is not None:
            rules.append(self._condition_rule(keyword_token, keyword_content, alternatives))
        return ConditionalBody(rules=tuple(rules))

    def _condition_rule(
        self,
        keyword: Token,
        content: List[Token],
        alternatives: List[StringTemplate],
    ) -> ConditionRule:
        condition: Optional[str] = None
        if keyword.type is not TokenType.ELSE:
            expression = next((token for token in content if token.type is TokenType.EXPRESSION), None)
            if expression is None:
                raise self.error(
                    f"{keyword.type.name} branch requires a {{condition}} expression",
                    keyword,
                    code="MISSING_CONDITION",
                )
            condition = expression.value
        body = NormalBody(alternatives=tuple(alternatives)) if alternatives else None
        return ConditionRule(
            keyword=keyword.type.name,
            condition=condition,
            body=body,
            line=keyword.line,
        )

    @staticmethod
    def _string_template(content: List[Token], dash: Token) -> StringTemplate:
        fragments = tuple(
            Fragment(kind=_FRAGMENT_KINDS[token.type], text=token.value, line=token.line, column=token.column)
            for token in content
        )
        return StringTemplate(fragments=fragments, line=dash.line)


def parse_templates(source: str, source_label: str = "inline") -> List[Template]:
    """Parse template-language source into a list of templates."""
    return TemplateParser(source, source_label=source_label).parse()


__all__ = ["TemplateParser", "parse_templates"]
