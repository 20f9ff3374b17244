from __future__ import annotations

import textwrap

import pytest

from lgen.ast import ConditionalBody, FragmentKind, NormalBody
from lgen.errors import LGSyntaxError
from lgen.lang import parse_templates


def _parse(source: str):
    return parse_templates(textwrap.dedent(source).lstrip("\n"), source_label="doc.lg")


def test_declaration_with_parameters() -> None:
    (template,) = _parse(
        """
        #greet(name, title)
        - Hello, {title} {name}!
        """
    )

    assert template.name == "greet"
    assert template.parameters == ("name", "title")
    assert template.source == "doc.lg"
    assert template.line == 1
    assert template.signature == "greet(name, title)"


def test_declaration_without_parameters() -> None:
    (template,) = _parse(
        """
        #farewell
        - Bye
        """
    )
    assert template.parameters == ()
    assert template.signature == "farewell"


def test_empty_parameter_list() -> None:
    (template,) = _parse("#ping()\n- pong\n")
    assert template.parameters == ()


def test_dotted_template_name() -> None:
    (template,) = _parse("#weather.report\n- sunny\n")
    assert template.name == "weather.report"


def test_normal_body_alternatives_and_fragments() -> None:
    (template,) = _parse(
        """
        #greet(name)
        - Hello, {name}!
        - Hi [title(name)]
        - ```Dear @{name}```
        """
    )

    assert isinstance(template.body, NormalBody)
    first, second, third = template.body.alternatives
    assert [fragment.kind for fragment in first.fragments] == [
        FragmentKind.TEXT,
        FragmentKind.WHITESPACE,
        FragmentKind.EXPRESSION,
        FragmentKind.TEXT,
    ]
    assert first.source_text == "Hello, {name}!"
    assert second.fragments[-1].kind is FragmentKind.TEMPLATE_REF
    assert third.fragments[0].kind is FragmentKind.MULTI_LINE
    assert [alternative.line for alternative in template.body.alternatives] == [2, 3, 4]


def test_multiple_templates_in_one_document() -> None:
    templates = _parse(
        """
        > greetings
        #hello
        - hello

        #bye
        - bye
        - see you
        """
    )

    assert [template.name for template in templates] == ["hello", "bye"]
    assert [template.line for template in templates] == [2, 5]
    assert len(templates[1].body.alternatives) == 2


def test_conditional_body_structure() -> None:
    (template,) = _parse(
        """
        #weather(temp)
        - IF: {temp > 30}
            - hot
            - scorching
        - ELSEIF: {temp > 10}
            - mild
        - ELSE:
            - cold
        """
    )

    assert isinstance(template.body, ConditionalBody)
    assert template.is_conditional
    rules = template.body.rules
    assert [rule.keyword for rule in rules] == ["IF", "ELSEIF", "ELSE"]
    assert [rule.condition for rule in rules] == ["{temp > 30}", "{temp > 10}", None]
    assert rules[2].is_else
    assert [len(rule.body.alternatives) for rule in rules] == [2, 1, 1]


def test_condition_line_uses_first_expression() -> None:
    (template,) = _parse(
        """
        #t
        - IF: when {a} and {b}
            - yes
        """
    )
    assert template.body.rules[0].condition == "{a}"


def test_conditional_rule_without_lines_keeps_empty_body() -> None:
    (template,) = _parse(
        """
        #t
        - IF: {flag}
        - ELSE:
            - fallback
        """
    )
    assert template.body.rules[0].body is None
    assert template.body.rules[1].body is not None


def test_mixed_body_is_rejected() -> None:
    with pytest.raises(LGSyntaxError) as exc_info:
        _parse(
            """
            #t
            - plain
            - IF: {x}
                - branch
            """
        )
    assert exc_info.value.code == "MIXED_BODY"
    assert exc_info.value.line == 3


def test_if_without_condition_is_rejected() -> None:
    with pytest.raises(LGSyntaxError) as exc_info:
        _parse(
            """
            #t
            - IF:
                - branch
            """
        )
    assert exc_info.value.code == "MISSING_CONDITION"


def test_template_without_body_is_rejected() -> None:
    with pytest.raises(LGSyntaxError) as exc_info:
        _parse(
            """
            #empty
            #full
            - text
            """
        )
    assert exc_info.value.code == "EMPTY_BODY"
    assert "empty" in exc_info.value.message


def test_body_before_declaration_is_rejected() -> None:
    with pytest.raises(LGSyntaxError) as exc_info:
        _parse("- orphan\n#t\n- text\n")
    assert exc_info.value.code == "ORPHAN_BODY"


@pytest.mark.parametrize(
    "bad_line",
    [
        "#t(a b)",
        "#t(a,)",
        "#t.",
        "#(a)",
    ],
)
def test_malformed_declarations_raise(bad_line: str) -> None:
    with pytest.raises(LGSyntaxError) as exc_info:
        _parse(f"{bad_line}\n- text\n")
    assert exc_info.value.path == "doc.lg"
