"""Shared pytest fixtures for lgen tests."""

import random
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from lgen import Evaluator, parse_templates
from lgen.expressions import EvaluationResult, SandboxedExpressionEngine


class RecordingEngine:
    """Expression engine that records every call before delegating.

    ``overrides`` maps an expression (stripped) to either an
    :class:`EvaluationResult` or an exception instance to raise.
    """

    def __init__(self, overrides: Optional[Dict[str, Any]] = None) -> None:
        self.calls: List[Tuple[str, Any]] = []
        self.overrides = dict(overrides or {})
        self.delegate = SandboxedExpressionEngine()

    def evaluate(self, expression, scope, *, resolve_function=None):
        self.calls.append((expression.strip(), scope))
        override = self.overrides.get(expression.strip())
        if isinstance(override, BaseException):
            raise override
        if override is not None:
            return override
        return self.delegate.evaluate(expression, scope, resolve_function=resolve_function)

    def scopes_for(self, expression: str) -> List[Any]:
        return [scope for recorded, scope in self.calls if recorded == expression]


@pytest.fixture
def rng() -> random.Random:
    """Seeded random source so alternative selection is reproducible."""
    return random.Random(1234)


@pytest.fixture
def recording_engine() -> Callable[..., RecordingEngine]:
    """Build a recording engine, optionally with per-expression overrides."""

    def factory(overrides: Optional[Dict[str, Any]] = None) -> RecordingEngine:
        return RecordingEngine(overrides)

    return factory


@pytest.fixture
def make_evaluator(rng) -> Callable[..., Evaluator]:
    """Build an evaluator from template source."""

    def factory(source: str, *, engine=None, seed: Optional[int] = None) -> Evaluator:
        templates = parse_templates(source, source_label="test.lg")
        source_rng = random.Random(seed) if seed is not None else rng
        return Evaluator(templates, expression_engine=engine, rng=source_rng)

    return factory


@pytest.fixture
def result() -> Callable[..., EvaluationResult]:
    """Shorthand for building engine results in overrides."""

    def build(value: Any = None, error: Optional[str] = None) -> EvaluationResult:
        return EvaluationResult(value=value, error=error)

    return build
