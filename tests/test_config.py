from __future__ import annotations

import json
from pathlib import Path

import pytest

from lgen.config import LGConfig, apply_env_overrides, config_from_mapping, load_config
from lgen.errors import LGConfigError


def test_defaults_without_config_file(tmp_path: Path) -> None:
    config = load_config(tmp_path, environ={})
    assert config == LGConfig()
    assert config.source is None


def test_toml_section(tmp_path: Path) -> None:
    (tmp_path / "lgen.toml").write_text(
        '[lgen]\nseed = 7\nlog_level = "DEBUG"\nextensions = ["lg", ".tmpl"]\nfunctions_module = "helpers"\n',
        encoding="utf-8",
    )
    config = load_config(tmp_path, environ={})

    assert config.seed == 7
    assert config.log_level == "debug"
    assert config.extensions == (".lg", ".tmpl")
    assert config.functions_module == "helpers"
    assert config.source == (tmp_path / "lgen.toml").resolve()


def test_lgenrc_json(tmp_path: Path) -> None:
    (tmp_path / ".lgenrc").write_text(json.dumps({"encoding": "latin-1", "seed": "3"}), encoding="utf-8")
    config = load_config(tmp_path, environ={})
    assert config.encoding == "latin-1"
    assert config.seed == 3


def test_toml_preferred_over_lgenrc(tmp_path: Path) -> None:
    (tmp_path / "lgen.toml").write_text("[lgen]\nseed = 1\n", encoding="utf-8")
    (tmp_path / ".lgenrc").write_text('{"seed": 2}', encoding="utf-8")
    assert load_config(tmp_path, environ={}).seed == 1


def test_env_overrides_file_values(tmp_path: Path) -> None:
    (tmp_path / "lgen.toml").write_text('[lgen]\nseed = 1\nlog_level = "info"\n', encoding="utf-8")
    config = load_config(
        tmp_path,
        environ={"LGEN_SEED": "99", "LGEN_LOG_LEVEL": "error", "LGEN_ENCODING": "utf-16"},
    )
    assert (config.seed, config.log_level, config.encoding) == (99, "error", "utf-16")


def test_empty_env_seed_clears_seed() -> None:
    config = apply_env_overrides(LGConfig(seed=5), {"LGEN_SEED": ""})
    assert config.seed is None


def test_explicit_missing_file(tmp_path: Path) -> None:
    with pytest.raises(LGConfigError) as exc_info:
        load_config(tmp_path, tmp_path / "nope.toml", environ={})
    assert exc_info.value.code == "CONFIG_ERROR"


def test_invalid_json_reports_line(tmp_path: Path) -> None:
    (tmp_path / ".lgenrc").write_text('{\n  "seed": }', encoding="utf-8")
    with pytest.raises(LGConfigError) as exc_info:
        load_config(tmp_path, environ={})
    assert exc_info.value.line == 2


def test_invalid_toml(tmp_path: Path) -> None:
    (tmp_path / "lgen.toml").write_text("[lgen\n", encoding="utf-8")
    with pytest.raises(LGConfigError):
        load_config(tmp_path, environ={})


@pytest.mark.parametrize(
    "data",
    [
        {"seed": "abc"},
        {"seed": True},
        {"log_level": "loud"},
        {"extensions": []},
        {"lgen": "not a table"},
    ],
)
def test_invalid_values(data) -> None:
    with pytest.raises(LGConfigError):
        config_from_mapping(data, origin="test")


def test_invalid_env_level() -> None:
    with pytest.raises(LGConfigError) as exc_info:
        apply_env_overrides(LGConfig(), {"LGEN_LOG_LEVEL": "verbose"})
    assert "debug" in exc_info.value.hint


def test_lgenrc_must_be_an_object(tmp_path: Path) -> None:
    (tmp_path / ".lgenrc").write_text('["seed", 1]', encoding="utf-8")
    with pytest.raises(LGConfigError) as exc_info:
        load_config(tmp_path, environ={})
    assert "got list" in exc_info.value.message
    assert exc_info.value.path == str((tmp_path / ".lgenrc").resolve())
