from __future__ import annotations

import pytest

from lgen import DuplicateTemplateError, Template, TemplateMap, parse_templates


def test_template_map_lookup() -> None:
    templates = parse_templates("#a\n- one\n#b(x)\n- two\n", source_label="a.lg")
    template_map = TemplateMap(templates)

    assert len(template_map) == 2
    assert list(template_map) == ["a", "b"]
    assert template_map["b"].parameters == ("x",)
    assert "c" not in template_map
    assert template_map.templates == tuple(templates)


def test_duplicate_names_fail_construction() -> None:
    first = parse_templates("#greet\n- hi\n", source_label="one.lg")
    second = parse_templates("\n\n#greet\n- hello\n", source_label="two.lg")

    with pytest.raises(DuplicateTemplateError) as exc_info:
        TemplateMap(first + second)

    error = exc_info.value
    assert error.template_name == "greet"
    assert error.sources == ("one.lg:1", "two.lg:3")
    assert error.code == "DUPLICATE_TEMPLATE"
    assert "defined more than once" in error.format()


def test_template_is_immutable() -> None:
    template = Template(name="t")
    with pytest.raises(AttributeError):
        template.name = "other"  # type: ignore[misc]


def test_template_map_is_read_only() -> None:
    template_map = TemplateMap([Template(name="t")])
    with pytest.raises(TypeError):
        template_map["u"] = Template(name="u")  # type: ignore[index]
