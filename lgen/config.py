"""Configuration support for lgen engines and the CLI."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import tomllib

from .errors import LGConfigError
from .observability.logging import LEVELS

CONFIG_FILE_NAMES = ("lgen.toml", ".lgenrc")

ENV_PREFIX = "LGEN_"


@dataclass(frozen=True)
class LGConfig:
    """Settings applied when loading documents and evaluating templates."""

    encoding: str = "utf-8"
    extensions: Tuple[str, ...] = (".lg",)
    seed: Optional[int] = None
    log_level: str = "warning"
    functions_module: Optional[str] = None
    source: Optional[Path] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)


def _read_json_config(path: Path) -> Dict[str, Any]:
    content = path.read_text(encoding="utf-8")
    try:
        return json.loads(content)
    except json.JSONDecodeError as exc:
        raise LGConfigError(f"Invalid JSON configuration: {exc.msg}", path=str(path), line=exc.lineno) from exc


def _read_toml_config(path: Path) -> Dict[str, Any]:
    with path.open("rb") as handle:
        try:
            return tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:
            raise LGConfigError(f"Invalid TOML configuration: {exc}", path=str(path)) from exc


def locate_config_file(root: Path, explicit: Optional[Path] = None) -> Optional[Path]:
    if explicit is not None:
        if not explicit.exists():
            raise LGConfigError(f"Configuration file not found: {explicit}", path=str(explicit))
        return explicit
    for candidate in CONFIG_FILE_NAMES:
        path = root / candidate
        if path.exists():
            return path
    return None


def _parse_seed(value: Any, origin: str) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise LGConfigError(f"seed must be an integer, got {value!r}", path=origin)
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise LGConfigError(f"seed must be an integer, got {value!r}", path=origin) from exc


def _parse_log_level(value: Any, origin: str) -> str:
    level = str(value).lower()
    if level not in LEVELS:
        raise LGConfigError(
            f"Unknown log level {value!r}",
            path=origin,
            hint=f"Use one of: {', '.join(sorted(LEVELS))}.",
        )
    return level


def _parse_extensions(value: Any, origin: str) -> Tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)) or not value:
        raise LGConfigError("extensions must be a non-empty list of file suffixes", path=origin)
    return tuple(item if str(item).startswith(".") else f".{item}" for item in map(str, value))


def config_from_mapping(data: Mapping[str, Any], *, origin: str = "<config>", base: Optional[LGConfig] = None) -> LGConfig:
    """Build an :class:`LGConfig` from a parsed config document."""

    if not isinstance(data, Mapping):
        raise LGConfigError(
            f"Configuration must be an object of settings, got {type(data).__name__}",
            path=origin,
        )
    section = data.get("lgen", data)
    if not isinstance(section, Mapping):
        raise LGConfigError("The [lgen] section must be a table", path=origin)
    config = base or LGConfig()
    updates: Dict[str, Any] = {}
    if "encoding" in section:
        updates["encoding"] = str(section["encoding"])
    if "extensions" in section:
        updates["extensions"] = _parse_extensions(section["extensions"], origin)
    if "seed" in section:
        updates["seed"] = _parse_seed(section["seed"], origin)
    if "log_level" in section:
        updates["log_level"] = _parse_log_level(section["log_level"], origin)
    if "functions_module" in section:
        updates["functions_module"] = str(section["functions_module"]) or None
    return replace(config, raw=dict(data), **updates)


def apply_env_overrides(config: LGConfig, environ: Optional[Mapping[str, str]] = None) -> LGConfig:
    env = os.environ if environ is None else environ
    updates: Dict[str, Any] = {}
    if env.get(f"{ENV_PREFIX}ENCODING"):
        updates["encoding"] = env[f"{ENV_PREFIX}ENCODING"]
    if f"{ENV_PREFIX}SEED" in env:
        updates["seed"] = _parse_seed(env[f"{ENV_PREFIX}SEED"], f"{ENV_PREFIX}SEED")
    if env.get(f"{ENV_PREFIX}LOG_LEVEL"):
        updates["log_level"] = _parse_log_level(env[f"{ENV_PREFIX}LOG_LEVEL"], f"{ENV_PREFIX}LOG_LEVEL")
    return replace(config, **updates) if updates else config


def load_config(
    root: Optional[Path] = None,
    explicit: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> LGConfig:
    """Locate and read ``lgen.toml`` / ``.lgenrc``, then apply ``LGEN_*`` overrides."""

    root = (root or Path.cwd()).resolve()
    config_path = locate_config_file(root, explicit)
    config = LGConfig()
    if config_path is not None:
        if config_path.suffix == ".toml":
            data = _read_toml_config(config_path)
        else:
            data = _read_json_config(config_path)
        config = config_from_mapping(data, origin=str(config_path))
        config = replace(config, source=config_path)
    return apply_env_overrides(config, environ)


__all__ = [
    "LGConfig",
    "CONFIG_FILE_NAMES",
    "apply_env_overrides",
    "config_from_mapping",
    "load_config",
    "locate_config_file",
]
