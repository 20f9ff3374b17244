"""Unified error model for lgen."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple


@dataclass
class ErrorLocation:
    """Where an error happened: document position and, during evaluation, template."""

    path: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    template: Optional[str] = None

    def position(self) -> Optional[str]:
        coordinates = ":".join(str(part) for part in (self.line, self.column) if part is not None)
        if self.path:
            return f"{self.path}:{coordinates}" if self.line is not None else self.path
        if coordinates:
            return f"line {coordinates}"
        return None

    def describe(self) -> str:
        parts = [part for part in (self.position(), self.template and f"template '{self.template}'") if part]
        return ", ".join(parts) if parts else "unknown location"


class LGError(Exception):
    """Base class for all template errors surfaced to users."""

    code: Optional[str] = None
    hint: Optional[str] = None

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        line: Optional[int] = None,
        column: Optional[int] = None,
        code: Optional[str] = None,
        hint: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.location = ErrorLocation(path=path, line=line, column=column)
        if code is not None:
            self.code = code
        if hint is not None:
            self.hint = hint

    @property
    def path(self) -> Optional[str]:
        return self.location.path

    @property
    def line(self) -> Optional[int]:
        return self.location.line

    @property
    def column(self) -> Optional[int]:
        return self.location.column

    def format(self) -> str:
        """Render ``message (location; CODE) Hint: ...`` for terminal output."""
        meta = [self.location.describe()] if self.location.describe() != "unknown location" else []
        if self.code:
            meta.append(self.code)
        text = f"{self.message} ({'; '.join(meta)})" if meta else self.message
        return f"{text} Hint: {self.hint}" if self.hint else text


class LGSyntaxError(LGError):
    """Raised when the lexer or parser rejects template source."""

    code = "SYNTAX_ERROR"


class LGConfigError(LGError):
    """Raised when configuration files or environment overrides are invalid."""

    code = "CONFIG_ERROR"


class DuplicateTemplateError(LGError):
    """Raised when two definitions share the same template name."""

    code = "DUPLICATE_TEMPLATE"

    def __init__(self, template_name: str, first_source: str, second_source: str) -> None:
        super().__init__(
            f"Template '{template_name}' is defined more than once "
            f"(in {first_source} and {second_source})",
            path=second_source,
            hint="Template names must be unique across every loaded document.",
        )
        self.template_name = template_name
        self.sources = (first_source, second_source)


class LGEvaluationError(LGError):
    """Base class for errors raised while evaluating a template."""

    def __init__(self, message: str, *, template_name: Optional[str] = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.template_name = template_name
        self.location.template = template_name


class TemplateNotFoundError(LGEvaluationError):
    """Raised when a template name is absent from the template map."""

    code = "TEMPLATE_NOT_FOUND"


class TemplateCycleError(LGEvaluationError):
    """Raised when a template is re-entered while it is still being evaluated."""

    code = "TEMPLATE_CYCLE"

    def __init__(self, chain: Sequence[str], **kwargs) -> None:
        self.chain: Tuple[str, ...] = tuple(chain)
        super().__init__(f"Loop detected: {' => '.join(self.chain)}", **kwargs)


class ExpressionEvaluationError(LGEvaluationError):
    """Raised when an embedded expression fails or evaluates to null."""

    code = "EXPRESSION_ERROR"

    def __init__(self, message: str, *, expression: str, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.expression = expression


class MalformedTemplateReferenceError(LGEvaluationError):
    """Raised when a template reference has an invalid argument list."""

    code = "MALFORMED_REFERENCE"


__all__ = [
    "ErrorLocation",
    "LGError",
    "LGSyntaxError",
    "LGConfigError",
    "DuplicateTemplateError",
    "LGEvaluationError",
    "TemplateNotFoundError",
    "TemplateCycleError",
    "ExpressionEvaluationError",
    "MalformedTemplateReferenceError",
]
