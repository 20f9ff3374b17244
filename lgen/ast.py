"""Body tree node definitions produced by the template parser."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Union


class FragmentKind(str, Enum):
    """Kinds of content inside a single body line."""

    TEXT = "text"
    WHITESPACE = "whitespace"
    TEXT_SEPARATOR = "text_separator"
    ESCAPE = "escape"
    INVALID_ESCAPE = "invalid_escape"
    EXPRESSION = "expression"
    TEMPLATE_REF = "template_ref"
    MULTI_LINE = "multi_line"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Fragment:
    kind: FragmentKind
    text: str
    line: int = 0
    column: int = 0


@dataclass(frozen=True)
class StringTemplate:
    """One alternative of a normal body: the content of a single ``-`` line."""

    fragments: Tuple[Fragment, ...] = field(default_factory=tuple)
    line: int = 0

    @property
    def source_text(self) -> str:
        return "".join(fragment.text for fragment in self.fragments)


@dataclass(frozen=True)
class NormalBody:
    """Alternatives of which exactly one is rendered."""

    alternatives: Tuple[StringTemplate, ...]


@dataclass(frozen=True)
class ConditionRule:
    """An ``IF``/``ELSEIF``/``ELSE`` branch.

    ``condition`` holds the guard span including its braces, or ``None`` for
    an ``ELSE`` branch. ``body`` is ``None`` when no lines follow the branch.
    """

    keyword: str
    condition: Optional[str]
    body: Optional[NormalBody]
    line: int = 0

    @property
    def is_else(self) -> bool:
        return self.condition is None


@dataclass(frozen=True)
class ConditionalBody:
    rules: Tuple[ConditionRule, ...]


TemplateBody = Union[NormalBody, ConditionalBody]


__all__ = [
    "FragmentKind",
    "Fragment",
    "StringTemplate",
    "NormalBody",
    "ConditionRule",
    "ConditionalBody",
    "TemplateBody",
]
