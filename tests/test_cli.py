"""Tests for the lgen command line interface."""

import json
import logging

import pytest

from lgen import __version__
from lgen.cli import EXIT_ERROR, EXIT_USAGE, main
from lgen.observability import get_logger

DOCUMENT = """\
> sample templates
#greet(name)
- Hello, {name}!

#weather(temp)
- IF: {temp > 30}
    - hot
- ELSE:
    - fine

#pick
- a
- b
- c
- d

#silent
- IF: {false}
    - never
"""


@pytest.fixture(autouse=True)
def isolated_cli(tmp_path, monkeypatch):
    """Run every command from an empty directory with a clean lgen logger."""
    monkeypatch.chdir(tmp_path)
    for name in ("LGEN_SEED", "LGEN_LOG_LEVEL", "LGEN_ENCODING"):
        monkeypatch.delenv(name, raising=False)
    lgen_logger = get_logger()
    handlers = list(lgen_logger.handlers)
    level = lgen_logger.level
    yield
    for handler in list(lgen_logger.handlers):
        if handler not in handlers:
            lgen_logger.removeHandler(handler)
    lgen_logger.setLevel(level)


@pytest.fixture
def document(tmp_path):
    path = tmp_path / "sample.lg"
    path.write_text(DOCUMENT, encoding="utf-8")
    return path


def test_render_with_scope(document, capsys):
    code = main(["render", str(document), "greet", "--scope", json.dumps({"name": "Ada"})])
    assert code == 0
    assert capsys.readouterr().out == "Hello, Ada!\n"


def test_render_with_scope_file(document, tmp_path, capsys):
    scope_file = tmp_path / "scope.json"
    scope_file.write_text('{"temp": 40}', encoding="utf-8")
    assert main(["render", str(document), "weather", "--scope-file", str(scope_file)]) == 0
    assert capsys.readouterr().out.strip() == "hot"


def test_render_output_is_not_markup(tmp_path, capsys):
    doc = tmp_path / "markup.lg"
    doc.write_text("#t\n- \\[bold\\]x\\[/bold\\]\n", encoding="utf-8")
    assert main(["render", str(doc), "t"]) == 0
    assert capsys.readouterr().out.strip() == "[bold]x[/bold]"


def test_render_seed_is_repeatable(document, capsys):
    outputs = []
    for _ in range(3):
        assert main(["render", str(document), "pick", "--seed", "11"]) == 0
        outputs.append(capsys.readouterr().out)
    assert len(set(outputs)) == 1


def test_render_unmatched_conditional_prints_nothing(document, capsys):
    assert main(["render", str(document), "silent"]) == 0
    assert capsys.readouterr().out == ""


def test_render_directory(tmp_path, document, capsys):
    assert main(["render", str(tmp_path), "greet", "--scope", '{"name": "Bo"}']) == 0
    assert "Hello, Bo!" in capsys.readouterr().out


def test_unknown_template_exits_with_error(document, capsys):
    assert main(["render", str(document), "nope"]) == EXIT_ERROR
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "[nope] not found" in captured.err
    assert "TEMPLATE_NOT_FOUND" in captured.err


def test_syntax_error_reports_location(tmp_path, capsys):
    doc = tmp_path / "broken.lg"
    doc.write_text("#t\n- ok\nstray\n", encoding="utf-8")
    assert main(["render", str(doc), "t"]) == EXIT_ERROR
    assert f"{doc}:3:1" in capsys.readouterr().err


def test_invalid_scope_json_is_usage_error(document, capsys):
    assert main(["render", str(document), "greet", "--scope", "{name"]) == EXIT_USAGE
    assert "--scope is not valid JSON" in capsys.readouterr().err


def test_missing_document_exits_with_error(tmp_path, capsys):
    assert main(["render", str(tmp_path / "absent.lg"), "t"]) == EXIT_ERROR
    assert "absent.lg" in capsys.readouterr().err


def test_seed_from_config_file(tmp_path, document, capsys):
    (tmp_path / "lgen.toml").write_text("[lgen]\nseed = 5\n", encoding="utf-8")
    main(["render", str(document), "pick"])
    from_config = capsys.readouterr().out
    main(["render", str(document), "pick", "--seed", "5"])
    assert capsys.readouterr().out == from_config


def test_functions_module_from_config(tmp_path, monkeypatch, capsys):
    (tmp_path / "lgen_helpers.py").write_text("def shout(text):\n    return text.upper()\n", encoding="utf-8")
    (tmp_path / "lgen.toml").write_text('[lgen]\nfunctions_module = "lgen_helpers"\n', encoding="utf-8")
    (tmp_path / "fn.lg").write_text("#t\n- {shout('hey')}\n", encoding="utf-8")
    monkeypatch.syspath_prepend(str(tmp_path))

    assert main(["render", "fn.lg", "t"]) == 0
    assert capsys.readouterr().out.strip() == "HEY"


def test_list_templates(document, capsys):
    assert main(["list", str(document)]) == 0
    out = capsys.readouterr().out
    for name in ("greet", "weather", "pick", "silent"):
        assert name in out
    assert "conditional" in out


def test_log_level_option_configures_logger(document):
    main(["--log-level", "debug", "render", str(document), "greet", "--scope", '{"name": "x"}'])
    assert get_logger().level == logging.DEBUG


def test_version(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(["--version"])
    assert exc_info.value.code == 0
    assert __version__ in capsys.readouterr().out


def test_config_that_is_not_an_object_exits_with_error(tmp_path, document, capsys):
    (tmp_path / ".lgenrc").write_text("[1, 2]", encoding="utf-8")
    assert main(["render", str(document), "greet", "--scope", '{"name": "x"}']) == EXIT_ERROR
    assert "CONFIG_ERROR" in capsys.readouterr().err
