"""Recursive evaluator turning templates into strings.

Each top-level :meth:`Evaluator.evaluate_template` call opens an
:class:`EvaluationSession` that owns the call stack used for cycle detection
and current-scope resolution, so one evaluator can serve many callers.
"""

from __future__ import annotations

import random
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Union

from .ast import (
    ConditionalBody,
    ConditionRule,
    Fragment,
    FragmentKind,
    NormalBody,
    StringTemplate,
    TemplateBody,
)
from .errors import (
    ExpressionEvaluationError,
    LGEvaluationError,
    MalformedTemplateReferenceError,
    TemplateCycleError,
    TemplateNotFoundError,
)
from .expressions import EvaluationResult, ExpressionEngine, SandboxedExpressionEngine, is_truthy
from .observability import get_logger
from .templates import Template, TemplateMap

logger = get_logger("lgen.evaluator")

_MULTI_LINE_EXPRESSION = re.compile(r"@\{[^{}]+\}")
_ESCAPES = {"r": "\r", "t": "\t", "n": "\n"}


def unescape(text: str) -> str:
    """Interpret backslash escapes in literal text.

    ``\\r``, ``\\t`` and ``\\n`` become control characters, a backslash before
    any of ``{}[]\\`` yields that character, and anything else is kept verbatim.
    """
    if "\\" not in text:
        return text
    out: List[str] = []
    index = 0
    while index < len(text):
        char = text[index]
        if char == "\\" and index + 1 < len(text):
            following = text[index + 1]
            if following in _ESCAPES:
                out.append(_ESCAPES[following])
                index += 2
                continue
            if following in "{}[]\\":
                out.append(following)
                index += 2
                continue
        out.append(char)
        index += 1
    return "".join(out)


def _strip_braces(expression: str) -> str:
    return expression.lstrip("{").rstrip("}")


@dataclass(frozen=True)
class EvaluationTarget:
    template_name: str
    scope: Any


class Evaluator:
    """
    Evaluate templates of a :class:`TemplateMap` against caller scopes.

    Args:
        templates: Parsed templates or an already built ``TemplateMap``
        expression_engine: Collaborator used for ``{...}`` spans
        rng: Random source for choosing between alternatives
    """

    def __init__(
        self,
        templates: Union[TemplateMap, Iterable[Template]],
        expression_engine: Optional[ExpressionEngine] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.templates = templates if isinstance(templates, TemplateMap) else TemplateMap(templates)
        self.expression_engine: ExpressionEngine = expression_engine or SandboxedExpressionEngine()
        self.rng = rng or random.Random()

    def evaluate_template(self, template_name: str, scope: Any = None) -> Optional[str]:
        """Render ``template_name`` against ``scope``.

        Returns ``None`` when the template is conditional and no branch matched.
        """
        return EvaluationSession(self).evaluate_template(template_name, scope)

    def session(self) -> "EvaluationSession":
        return EvaluationSession(self)


class EvaluationSession:
    """Call stack and tree walk for one top-level evaluation."""

    def __init__(self, evaluator: Evaluator) -> None:
        self.evaluator = evaluator
        self.templates = evaluator.templates
        self.engine = evaluator.expression_engine
        self.rng = evaluator.rng
        self.stack: List[EvaluationTarget] = []

    @property
    def current_target(self) -> EvaluationTarget:
        return self.stack[-1]

    @property
    def current_template(self) -> Template:
        return self.templates[self.current_target.template_name]

    # Templates

    def evaluate_template(self, template_name: str, scope: Any) -> Optional[str]:
        self._require_template(template_name)

        if any(target.template_name == template_name for target in self.stack):
            chain = [target.template_name for target in self.stack] + [template_name]
            raise TemplateCycleError(
                chain,
                template_name=template_name,
                path=self.templates[template_name].source,
            )

        template = self.templates[template_name]
        logger.debug("Evaluating template %s (depth %d)", template_name, len(self.stack))
        self.stack.append(EvaluationTarget(template_name, scope))
        try:
            return self._evaluate_body(template.body)
        finally:
            self.stack.pop()

    def construct_scope(self, template_name: str, args: List[Any]) -> Any:
        """Build the scope a referenced template is evaluated with."""
        if not args:
            return self.current_target.scope

        parameters = self.templates[template_name].parameters
        if len(args) == 1 and not parameters:
            return args[0]

        return dict(zip(parameters, args))

    # Bodies

    def _evaluate_body(self, body: TemplateBody) -> Optional[str]:
        if isinstance(body, ConditionalBody):
            return self._evaluate_conditional(body)
        return self._evaluate_normal(body)

    def _evaluate_normal(self, body: NormalBody) -> str:
        alternatives = body.alternatives
        if not alternatives:
            template_name = self.current_target.template_name
            raise LGEvaluationError(
                f"Template '{template_name}' has no alternatives to choose from",
                template_name=template_name,
                path=self.current_template.source,
                code="EMPTY_BODY",
            )
        if len(alternatives) == 1:
            return self._evaluate_string_template(alternatives[0])
        return self._evaluate_string_template(self.rng.choice(alternatives))

    def _evaluate_conditional(self, body: ConditionalBody) -> Optional[str]:
        for rule in body.rules:
            if self._rule_matches(rule) and rule.body is not None:
                return self._evaluate_normal(rule.body)
        return None

    def _rule_matches(self, rule: ConditionRule) -> bool:
        if rule.condition is None:
            return True
        expression = _strip_braces(rule.condition)
        try:
            result = self._evaluate(expression)
        except Exception as exc:
            logger.debug(
                "Condition %r in template %s evaluated as false due to exception: %s",
                expression,
                self.current_target.template_name,
                exc,
            )
            return False
        if not result.ok:
            logger.debug(
                "Condition %r in template %s evaluated as false: %s",
                expression,
                self.current_target.template_name,
                result.error,
            )
        return is_truthy(result)

    # Fragments

    def _evaluate_string_template(self, string_template: StringTemplate) -> str:
        return "".join(self._render_fragment(fragment) for fragment in string_template.fragments)

    def _render_fragment(self, fragment: Fragment) -> str:
        if fragment.kind is FragmentKind.EXPRESSION:
            return self._render_expression(fragment.text)
        if fragment.kind is FragmentKind.TEMPLATE_REF:
            return self._render_template_ref(fragment.text)
        if fragment.kind is FragmentKind.MULTI_LINE:
            return self._render_multi_line(fragment.text)
        return unescape(fragment.text)

    def _render_expression(self, span: str) -> str:
        expression = _strip_braces(span)
        result = self._evaluate(expression)
        template_name = self.current_target.template_name
        if not result.ok:
            raise ExpressionEvaluationError(
                f"Error occurs when evaluating expression '{expression}' in template '{template_name}': {result.error}",
                expression=expression,
                template_name=template_name,
                path=self.current_template.source,
            )
        if result.value is None:
            raise ExpressionEvaluationError(
                f"Error occurs when evaluating expression '{expression}' in template '{template_name}': "
                f"{expression} is evaluated to null",
                expression=expression,
                template_name=template_name,
                path=self.current_template.source,
            )
        return str(result.value)

    def _render_template_ref(self, span: str) -> str:
        reference = span.lstrip("[").rstrip("]").strip()
        args_start = reference.find("(")

        if args_start > 0:
            args_end = reference.rfind(")")
            if args_end < args_start + 1:
                raise MalformedTemplateReferenceError(
                    f"Not a valid template ref: {reference}",
                    template_name=self.current_target.template_name,
                    path=self.current_template.source,
                    hint="Template references look like [name] or [name(arg1, arg2)].",
                )
            template_name = reference[:args_start].strip()
            self._require_template(template_name)
            args = self._evaluate_arguments(reference[args_start + 1:args_end])
            scope = self.construct_scope(template_name, args)
            return self._as_text(self.evaluate_template(template_name, scope))

        return self._as_text(self.evaluate_template(reference, self.current_target.scope))

    def _evaluate_arguments(self, argument_text: str) -> List[Any]:
        if not argument_text.strip():
            return []
        args: List[Any] = []
        # Naive split: commas nested inside an argument expression are not respected.
        for segment in argument_text.split(","):
            result = self._evaluate(segment)
            if not result.ok:
                template_name = self.current_target.template_name
                raise ExpressionEvaluationError(
                    f"Error occurs when evaluating argument '{segment.strip()}' in template '{template_name}': {result.error}",
                    expression=segment.strip(),
                    template_name=template_name,
                    path=self.current_template.source,
                )
            args.append(result.value)
        return args

    def _render_multi_line(self, block: str) -> str:
        inner = block[3:-3]
        return _MULTI_LINE_EXPRESSION.sub(lambda match: self._render_expression(match.group(0)[1:]), inner)

    # Expression collaborator

    def _evaluate(self, expression: str) -> EvaluationResult:
        return self.engine.evaluate(
            expression,
            self.current_target.scope,
            resolve_function=self._resolve_function,
        )

    def _resolve_function(self, name: str) -> Optional[Callable[..., Any]]:
        if name not in self.templates:
            return None

        def call_template(*args: Any) -> str:
            scope = self.construct_scope(name, list(args))
            return self._as_text(self.evaluate_template(name, scope))

        return call_template

    # Helpers

    @staticmethod
    def _as_text(value: Optional[str]) -> str:
        return value if value is not None else ""

    def _require_template(self, template_name: str) -> None:
        if template_name in self.templates:
            return
        if not self.stack:
            raise TemplateNotFoundError(f"[{template_name}] not found", template_name=template_name)
        raise TemplateNotFoundError(
            f"[{template_name}] not found",
            template_name=template_name,
            path=self.current_template.source,
            hint=f"Referenced from template '{self.current_target.template_name}'.",
        )


__all__ = ["Evaluator", "EvaluationSession", "EvaluationTarget", "unescape"]
