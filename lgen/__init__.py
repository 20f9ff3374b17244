"""
lgen: a template language for generating natural-language responses.

A document declares named templates (``#name(params)``) whose ``-`` lines are
alternative bodies or ``IF``/``ELSEIF``/``ELSE`` branches. Bodies mix literal
text with ``{expression}`` spans, ``[template(args)]`` references and
triple-backtick blocks with ``@{expression}`` substitutions.

The package is organised into:

* ``lang`` – the mode-based lexer and the parser producing templates.
* ``ast`` / ``templates`` – the body tree and the ``Template`` model.
* ``expressions`` – the expression engine interface and its sandboxed
  default implementation.
* ``evaluator`` – the recursive evaluator with scope binding and cycle
  detection.
* ``engine`` – a facade that loads documents and renders templates.
* ``cli`` – the ``lgen`` command.
"""

from __future__ import annotations

__version__ = "0.3.0"

from .engine import TemplateEngine, load_templates, parse_text
from .errors import (
    DuplicateTemplateError,
    ExpressionEvaluationError,
    LGConfigError,
    LGError,
    LGEvaluationError,
    LGSyntaxError,
    MalformedTemplateReferenceError,
    TemplateCycleError,
    TemplateNotFoundError,
)
from .evaluator import EvaluationSession, Evaluator
from .expressions import EvaluationResult, ExpressionEngine, SandboxedExpressionEngine
from .lang import parse_templates, tokenize
from .templates import Template, TemplateMap

__all__ = [
    "__version__",
    "TemplateEngine",
    "load_templates",
    "parse_text",
    "Evaluator",
    "EvaluationSession",
    "EvaluationResult",
    "ExpressionEngine",
    "SandboxedExpressionEngine",
    "Template",
    "TemplateMap",
    "parse_templates",
    "tokenize",
    "LGError",
    "LGSyntaxError",
    "LGConfigError",
    "LGEvaluationError",
    "DuplicateTemplateError",
    "TemplateNotFoundError",
    "TemplateCycleError",
    "ExpressionEvaluationError",
    "MalformedTemplateReferenceError",
]
