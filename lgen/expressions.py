"""Expression evaluation used for ``{...}`` spans inside templates.

The evaluator treats expressions as a black box behind the
:class:`ExpressionEngine` protocol. :class:`SandboxedExpressionEngine` is the
default implementation: it walks a restricted subset of the Python AST and
never executes arbitrary code.
"""

from __future__ import annotations

import ast
import inspect
import string
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol, Set

from .errors import LGError
from .observability import get_logger

__all__ = [
    "EvaluationResult",
    "ExpressionEngine",
    "ExpressionSandboxError",
    "FunctionResolver",
    "SandboxedExpressionEngine",
    "is_truthy",
]

logger = get_logger("lgen.expressions")

FunctionResolver = Callable[[str], Optional[Callable[..., Any]]]

_SAFE_DICT_METHODS: Set[str] = {"get", "items", "values", "keys"}
_SAFE_STR_METHODS: Set[str] = {
    "lower",
    "upper",
    "title",
    "strip",
    "lstrip",
    "rstrip",
    "startswith",
    "endswith",
    "capitalize",
    "casefold",
    "replace",
    "split",
    "join",
}
_SAFE_LIST_METHODS: Set[str] = {"count", "index"}
_NAME_CONSTANTS: Dict[str, Any] = {
    "True": True,
    "False": False,
    "None": None,
    "true": True,
    "false": False,
    "null": None,
}


def _join(values: Any, separator: str = ", ") -> str:
    return separator.join(str(value) for value in values)


def _concat(*values: Any) -> str:
    return "".join(str(value) for value in values)


class _PositionalFormatter(string.Formatter):
    """Formatter that fills ``{}`` and ``{0}`` fields only.

    Attribute and index paths such as ``{0.name}`` or ``{0[key]}`` are rejected
    so formatting cannot reach past the sandbox's attribute checks.
    """

    def get_field(self, field_name: str, args: Any, kwargs: Any) -> Any:
        if not field_name.isdigit():
            raise ExpressionSandboxError(f"Format field '{{{field_name}}}' is not permitted")
        return self.get_value(int(field_name), args, kwargs), field_name


_FORMATTER = _PositionalFormatter()


def _format(template: Any, *values: Any) -> str:
    return _FORMATTER.vformat(str(template), values, {})


_BUILTIN_FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "len": len,
    "min": min,
    "max": max,
    "sum": sum,
    "abs": abs,
    "round": round,
    "int": int,
    "float": float,
    "str": str,
    "bool": bool,
    "upper": lambda value: str(value).upper(),
    "lower": lambda value: str(value).lower(),
    "join": _join,
    "concat": _concat,
    "format": _format,
}

# Errors an expression can legitimately produce from bad data; reported as
# evaluation results rather than raised.
_REPORTED_ERRORS = (ArithmeticError, AttributeError, LookupError, TypeError, ValueError)


class ExpressionSandboxError(RuntimeError):
    """Raised when an expression violates sandbox restrictions."""


@dataclass(frozen=True)
class EvaluationResult:
    """Value-or-error pair returned by expression engines."""

    value: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ExpressionEngine(Protocol):
    """Interface the template evaluator expects from an expression language."""

    def evaluate(
        self,
        expression: str,
        scope: Any,
        *,
        resolve_function: Optional[FunctionResolver] = None,
    ) -> EvaluationResult:
        ...


def is_truthy(result: EvaluationResult) -> bool:
    """Guard truthiness: errors, null, ``False`` and integer zero are falsy."""

    if not result.ok:
        return False
    value = result.value
    if value is None or value is False:
        return False
    if isinstance(value, int) and not isinstance(value, bool) and value == 0:
        return False
    return True


def _lookup(scope: Any, name: str) -> Any:
    if isinstance(scope, Mapping):
        if name in scope:
            return scope[name]
        raise ExpressionSandboxError(f"Unknown name '{name}' in expression")
    if scope is not None and not name.startswith("_") and hasattr(scope, name):
        value = getattr(scope, name)
        if inspect.ismethod(value) or inspect.isfunction(value):
            raise ExpressionSandboxError(f"Access to method '{name}' is not permitted")
        return value
    raise ExpressionSandboxError(f"Unknown name '{name}' in expression")


class _SandboxVisitor(ast.NodeVisitor):
    """Evaluate a parsed expression against one scope."""

    def __init__(
        self,
        scope: Any,
        functions: Dict[str, Callable[..., Any]],
        resolve_function: Optional[FunctionResolver],
    ) -> None:
        self._scope = scope
        self._functions = functions
        self._resolve_function = resolve_function

    def visit(self, node: ast.AST) -> Any:  # type: ignore[override]
        method = getattr(self, f"visit_{type(node).__name__}", None)
        if method is None:
            raise ExpressionSandboxError(f"Unsupported expression element '{type(node).__name__}'")
        return method(node)  # type: ignore[misc]

    def visit_Expression(self, node: ast.Expression) -> Any:
        return self.visit(node.body)

    def visit_Constant(self, node: ast.Constant) -> Any:
        return node.value

    def visit_Name(self, node: ast.Name) -> Any:
        identifier = node.id
        if identifier.startswith("__"):
            raise ExpressionSandboxError(f"Name '{identifier}' is not permitted")
        if isinstance(self._scope, Mapping) and identifier in self._scope:
            return self._scope[identifier]
        if identifier in _NAME_CONSTANTS:
            return _NAME_CONSTANTS[identifier]
        return _lookup(self._scope, identifier)

    def visit_BoolOp(self, node: ast.BoolOp) -> Any:
        if isinstance(node.op, ast.And):
            value: Any = True
            for value_node in node.values:
                value = self.visit(value_node)
                if not value:
                    return value
            return value
        if isinstance(node.op, ast.Or):
            value = False
            for value_node in node.values:
                value = self.visit(value_node)
                if value:
                    return value
            return value
        raise ExpressionSandboxError("Unsupported boolean operator")

    def visit_UnaryOp(self, node: ast.UnaryOp) -> Any:
        operand = self.visit(node.operand)
        if isinstance(node.op, ast.UAdd):
            return +operand
        if isinstance(node.op, ast.USub):
            return -operand
        if isinstance(node.op, ast.Not):
            return not operand
        raise ExpressionSandboxError("Unsupported unary operator")

    def visit_BinOp(self, node: ast.BinOp) -> Any:
        left = self.visit(node.left)
        right = self.visit(node.right)
        if isinstance(node.op, ast.Add):
            return left + right
        if isinstance(node.op, ast.Sub):
            return left - right
        if isinstance(node.op, ast.Mult):
            return left * right
        if isinstance(node.op, ast.Div):
            return left / right
        if isinstance(node.op, ast.FloorDiv):
            return left // right
        if isinstance(node.op, ast.Mod):
            return left % right
        if isinstance(node.op, ast.Pow):
            return left ** right
        raise ExpressionSandboxError("Unsupported binary operator")

    def visit_Compare(self, node: ast.Compare) -> Any:
        left = self.visit(node.left)
        for comparator, op in zip(node.comparators, node.ops):
            right = self.visit(comparator)
            if isinstance(op, ast.Eq) and not (left == right):
                return False
            if isinstance(op, ast.NotEq) and not (left != right):
                return False
            if isinstance(op, ast.Lt) and not (left < right):
                return False
            if isinstance(op, ast.LtE) and not (left <= right):
                return False
            if isinstance(op, ast.Gt) and not (left > right):
                return False
            if isinstance(op, ast.GtE) and not (left >= right):
                return False
            if isinstance(op, ast.In) and not (left in right):
                return False
            if isinstance(op, ast.NotIn) and not (left not in right):
                return False
            if isinstance(op, ast.Is) and not (left is right):
                return False
            if isinstance(op, ast.IsNot) and not (left is not right):
                return False
            left = right
        return True

    def visit_Call(self, node: ast.Call) -> Any:
        func = self._resolve_callable(node.func)
        args = [self.visit(arg) for arg in node.args]
        kwargs: Dict[str, Any] = {}
        for kw in node.keywords:
            if kw.arg is None:
                raise ExpressionSandboxError("Argument unpacking is not permitted")
            kwargs[kw.arg] = self.visit(kw.value)
        try:
            return func(*args, **kwargs)
        except (LGError, ExpressionSandboxError) + _REPORTED_ERRORS:
            raise
        except Exception as exc:
            raise ExpressionSandboxError(f"Call failed with {type(exc).__name__}: {exc}") from exc

    def _resolve_callable(self, func_node: ast.AST) -> Callable[..., Any]:
        if isinstance(func_node, ast.Name):
            name = func_node.id
            if name.startswith("__"):
                raise ExpressionSandboxError(f"Name '{name}' is not permitted")
            if self._resolve_function is not None:
                resolved = self._resolve_function(name)
                if resolved is not None:
                    return resolved
            if name in self._functions:
                return self._functions[name]
            if name in _BUILTIN_FUNCTIONS:
                return _BUILTIN_FUNCTIONS[name]
            raise ExpressionSandboxError(f"Unknown function '{name}'")
        if isinstance(func_node, ast.Attribute):
            owner = self.visit(func_node.value)
            attr = func_node.attr
            if isinstance(owner, str) and attr in _SAFE_STR_METHODS:
                return getattr(owner, attr)
            if isinstance(owner, Mapping) and attr in _SAFE_DICT_METHODS:
                return getattr(owner, attr)
            if isinstance(owner, list) and attr in _SAFE_LIST_METHODS:
                return getattr(owner, attr)
            raise ExpressionSandboxError(f"Call to method '{attr}' is not permitted")
        raise ExpressionSandboxError("Call to unsupported function")

    def visit_Attribute(self, node: ast.Attribute) -> Any:
        value = self.visit(node.value)
        attr = node.attr
        if attr.startswith("__"):
            raise ExpressionSandboxError(f"Attribute '{attr}' is not permitted")
        if isinstance(value, Mapping):
            if attr in value:
                return value[attr]
            raise ExpressionSandboxError(f"Unknown key '{attr}'")
        return _lookup(value, attr)

    def visit_Subscript(self, node: ast.Subscript) -> Any:
        value = self.visit(node.value)
        slice_node = node.slice
        if isinstance(slice_node, ast.Slice):
            lower = self.visit(slice_node.lower) if slice_node.lower is not None else None
            upper = self.visit(slice_node.upper) if slice_node.upper is not None else None
            step = self.visit(slice_node.step) if slice_node.step is not None else None
            return value[slice(lower, upper, step)]
        index = self.visit(slice_node)
        return value[index]

    def visit_List(self, node: ast.List) -> Any:
        return [self.visit(element) for element in node.elts]

    def visit_Tuple(self, node: ast.Tuple) -> Any:
        return tuple(self.visit(element) for element in node.elts)

    def visit_Set(self, node: ast.Set) -> Any:
        return {self.visit(element) for element in node.elts}

    def visit_Dict(self, node: ast.Dict) -> Any:
        if any(key is None for key in node.keys):
            raise ExpressionSandboxError("Dict unpacking is not permitted")
        return {self.visit(key): self.visit(value) for key, value in zip(node.keys, node.values)}

    def visit_IfExp(self, node: ast.IfExp) -> Any:
        return self.visit(node.body) if self.visit(node.test) else self.visit(node.orelse)

    def generic_visit(self, node: ast.AST) -> Any:  # pragma: no cover - dispatch goes through visit()
        raise ExpressionSandboxError(f"Unsupported expression element '{type(node).__name__}'")


class SandboxedExpressionEngine:
    """
    Default expression engine over a restricted Python expression subset.

    Names resolve against the scope: mapping keys for mappings, public
    attributes for other objects. Calls resolve, in order, through the
    per-call ``resolve_function`` hook, registered functions and a small
    builtin set.

    Example:
        >>> engine = SandboxedExpressionEngine()
        >>> engine.evaluate("user.name.upper()", {"user": {"name": "ada"}}).value
        'ADA'
    """

    def __init__(self, functions: Optional[Dict[str, Callable[..., Any]]] = None) -> None:
        self._functions: Dict[str, Callable[..., Any]] = {}
        for name, func in (functions or {}).items():
            self.register_function(name, func)

    @property
    def functions(self) -> Dict[str, Callable[..., Any]]:
        return dict(self._functions)

    def register_function(self, name: str, func: Callable[..., Any]) -> None:
        """Make ``func`` callable as ``name(...)`` inside expressions."""
        if not name.isidentifier() or name.startswith("__"):
            raise ValueError(f"Invalid function name '{name}'")
        if not callable(func):
            raise TypeError(f"Function '{name}' is not callable")
        self._functions[name] = func

    def evaluate(
        self,
        expression: str,
        scope: Any,
        *,
        resolve_function: Optional[FunctionResolver] = None,
    ) -> EvaluationResult:
        text = expression.strip()
        if not text:
            return EvaluationResult(error="Empty expression")
        try:
            tree = ast.parse(text, mode="eval")
        except SyntaxError as exc:
            return EvaluationResult(error=f"Invalid expression '{text}': {exc.msg}")

        visitor = _SandboxVisitor(scope, self._functions, resolve_function)
        try:
            value = visitor.visit(tree)
        except ExpressionSandboxError as exc:
            return EvaluationResult(error=str(exc))
        except _REPORTED_ERRORS as exc:
            logger.debug("Expression %r failed: %s", text, exc)
            return EvaluationResult(error=f"{type(exc).__name__}: {exc}")
        return EvaluationResult(value=value)
