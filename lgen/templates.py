"""Template definitions and the name-indexed template map."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, Mapping, Tuple

from .ast import ConditionalBody, NormalBody, TemplateBody
from .errors import DuplicateTemplateError


@dataclass(frozen=True)
class Template:
    """
    A named, optionally parametrized template.

    Attributes:
        name: Identifier following ``#`` in the source document
        parameters: Declared parameter names, in positional order
        body: Parsed normal or conditional body
        source: Originating file path, or ``"inline"`` for text sources
        line: Line of the ``#`` declaration
    """

    name: str
    parameters: Tuple[str, ...] = field(default_factory=tuple)
    body: TemplateBody = field(default_factory=lambda: NormalBody(alternatives=()))
    source: str = "inline"
    line: int = 0

    @property
    def is_conditional(self) -> bool:
        return isinstance(self.body, ConditionalBody)

    @property
    def signature(self) -> str:
        if not self.parameters:
            return self.name
        return f"{self.name}({', '.join(self.parameters)})"

    @property
    def location(self) -> str:
        return f"{self.source}:{self.line}" if self.line else self.source


class TemplateMap(Mapping[str, Template]):
    """Read-only mapping from template name to :class:`Template`."""

    def __init__(self, templates: Iterable[Template] = ()) -> None:
        entries: Dict[str, Template] = {}
        for template in templates:
            existing = entries.get(template.name)
            if existing is not None:
                raise DuplicateTemplateError(template.name, existing.location, template.location)
            entries[template.name] = template
        self._entries = entries

    def __getitem__(self, name: str) -> Template:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"TemplateMap({list(self._entries)!r})"

    @property
    def templates(self) -> Tuple[Template, ...]:
        return tuple(self._entries.values())


__all__ = ["Template", "TemplateMap"]
