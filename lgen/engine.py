"""Template engine facade: load documents and evaluate templates.

Hosts that already hold parsed templates can use
:class:`~lgen.evaluator.Evaluator` directly; :class:`TemplateEngine` adds
document loading from text, files and directories on top of it.
"""

from __future__ import annotations

import random
from os import PathLike
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Union

from .config import LGConfig
from .evaluator import Evaluator
from .expressions import ExpressionEngine, SandboxedExpressionEngine
from .lang.parser import parse_templates
from .observability import get_logger
from .templates import Template, TemplateMap

logger = get_logger("lgen.engine")

PathType = Union[str, PathLike]


def parse_text(text: str, source: str = "inline") -> List[Template]:
    """Parse a template document held in memory."""
    return parse_templates(text, source_label=source)


def load_templates(path: PathType, *, encoding: str = "utf-8") -> List[Template]:
    """Read and parse a single template document."""
    file_path = Path(path)
    text = file_path.read_text(encoding=encoding)
    templates = parse_templates(text, source_label=str(file_path))
    logger.info("Loaded %d template(s) from %s", len(templates), file_path)
    return templates


def discover_template_files(root: PathType, extensions: Iterable[str] = (".lg",)) -> List[Path]:
    """Discover template documents below ``root`` with one of ``extensions``."""
    root_path = Path(root)
    suffixes = {suffix.lower() for suffix in extensions}
    if root_path.is_file():
        return [root_path]
    return sorted(path for path in root_path.rglob("*") if path.is_file() and path.suffix.lower() in suffixes)


class TemplateEngine:
    """
    Load template documents and render their templates.

    Example:
        >>> engine = TemplateEngine().add_text("#greet(name)\\n- Hello, {name}!")
        >>> engine.evaluate("greet", {"name": "Ada"})
        'Hello, Ada!'
    """

    def __init__(
        self,
        config: Optional[LGConfig] = None,
        expression_engine: Optional[ExpressionEngine] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config or LGConfig()
        self.expression_engine: ExpressionEngine = expression_engine or SandboxedExpressionEngine()
        self.rng = rng or random.Random(self.config.seed)
        self._templates: List[Template] = []
        self._template_map = TemplateMap()
        self._evaluator: Optional[Evaluator] = None

    @property
    def templates(self) -> TemplateMap:
        return self._template_map

    def add_templates(self, templates: Iterable[Template]) -> "TemplateEngine":
        """Register parsed templates; duplicates leave the engine unchanged."""
        combined = self._templates + list(templates)
        self._template_map = TemplateMap(combined)
        self._templates = combined
        self._evaluator = None
        return self

    def add_text(self, text: str, source: str = "inline") -> "TemplateEngine":
        return self.add_templates(parse_text(text, source))

    def add_file(self, path: PathType) -> "TemplateEngine":
        return self.add_templates(load_templates(path, encoding=self.config.encoding))

    def add_directory(self, path: PathType) -> "TemplateEngine":
        templates: List[Template] = []
        for file_path in discover_template_files(path, self.config.extensions):
            templates.extend(load_templates(file_path, encoding=self.config.encoding))
        return self.add_templates(templates)

    def add_path(self, path: PathType) -> "TemplateEngine":
        """Load ``path`` as a single file or as a directory of documents."""
        if Path(path).is_dir():
            return self.add_directory(path)
        return self.add_file(path)

    def register_function(self, name: str, func: Callable[..., Any]) -> "TemplateEngine":
        register = getattr(self.expression_engine, "register_function", None)
        if register is None:
            raise TypeError(f"{type(self.expression_engine).__name__} does not support custom functions")
        register(name, func)
        return self

    @property
    def evaluator(self) -> Evaluator:
        if self._evaluator is None:
            self._evaluator = Evaluator(self._template_map, self.expression_engine, self.rng)
        return self._evaluator

    def evaluate(self, template_name: str, scope: Any = None) -> Optional[str]:
        return self.evaluator.evaluate_template(template_name, scope)


__all__ = [
    "TemplateEngine",
    "discover_template_files",
    "load_templates",
    "parse_text",
]
