"""
Command line interface for lgen.

Commands:
    lgen render PATH TEMPLATE   Render a template from a document or directory
    lgen list PATH              List the templates a document defines
"""

from __future__ import annotations

import argparse
import importlib
import inspect
import json
import random
import sys
from pathlib import Path
from typing import Any, List, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import LGConfig, load_config
from .engine import TemplateEngine
from .errors import LGConfigError, LGError
from .observability import configure_logging, get_logger

logger = get_logger("lgen.cli")

EXIT_ERROR = 1
EXIT_USAGE = 2


class ScopeArgumentError(ValueError):
    """Raised when the --scope / --scope-file argument is not valid JSON."""


def _load_scope(args: argparse.Namespace) -> Any:
    if args.scope is not None and args.scope_file is not None:
        raise ScopeArgumentError("Use either --scope or --scope-file, not both")
    if args.scope_file is not None:
        text = Path(args.scope_file).read_text(encoding="utf-8")
        origin = args.scope_file
    elif args.scope is not None:
        text = args.scope
        origin = "--scope"
    else:
        return {}
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ScopeArgumentError(f"{origin} is not valid JSON: {exc.msg} (line {exc.lineno}, column {exc.colno})") from exc


def _register_functions(engine: TemplateEngine, module_name: str) -> None:
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise LGConfigError(f"Cannot import functions module '{module_name}': {exc}") from exc
    for name, func in inspect.getmembers(module, callable):
        if name.startswith("_") or inspect.isclass(func):
            continue
        engine.register_function(name, func)
        logger.debug("Registered expression function %s from %s", name, module_name)


def _build_engine(args: argparse.Namespace, config: LGConfig) -> TemplateEngine:
    seed = args.seed if getattr(args, "seed", None) is not None else config.seed
    engine = TemplateEngine(config=config, rng=random.Random(seed))
    if config.functions_module:
        _register_functions(engine, config.functions_module)
    engine.add_path(args.path)
    return engine


def cmd_render(args: argparse.Namespace, config: LGConfig, console: Console) -> int:
    scope = _load_scope(args)
    engine = _build_engine(args, config)
    result = engine.evaluate(args.template, scope)
    if result is None:
        logger.info("Template %s produced no output (no branch matched)", args.template)
        return 0
    console.print(result, markup=False, highlight=False, soft_wrap=True)
    return 0


def cmd_list(args: argparse.Namespace, config: LGConfig, console: Console) -> int:
    engine = _build_engine(args, config)
    table = Table(title=f"Templates in {args.path}")
    for header in ("Name", "Parameters", "Body", "Source"):
        table.add_column(header)
    for template in engine.templates.values():
        body = "conditional" if template.is_conditional else f"{len(template.body.alternatives)} alternative(s)"
        table.add_row(template.name, ", ".join(template.parameters) or "-", body, template.location)
    console.print(table)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lgen",
        description="Render language generation templates.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", type=Path, default=None, help="Path to lgen.toml or .lgenrc")
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warn", "warning", "error"],
        default=None,
        help="Logging level (default: LGEN_LOG_LEVEL or config)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    render_parser = subparsers.add_parser("render", help="Render a template")
    render_parser.add_argument("path", help="Template document or directory")
    render_parser.add_argument("template", help="Name of the template to render")
    render_parser.add_argument("--scope", default=None, help="Scope as a JSON document")
    render_parser.add_argument("--scope-file", default=None, help="Path to a JSON file holding the scope")
    render_parser.add_argument("--seed", type=int, default=None, help="Seed for choosing between alternatives")
    render_parser.set_defaults(func=cmd_render)

    list_parser = subparsers.add_parser("list", help="List templates in a document")
    list_parser.add_argument("path", help="Template document or directory")
    list_parser.set_defaults(func=cmd_list)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    console = Console()
    error_console = Console(stderr=True)

    try:
        config = load_config(Path.cwd(), args.config)
        configure_logging(args.log_level or config.log_level)
        return args.func(args, config, console)
    except ScopeArgumentError as exc:
        error_console.print(f"[bold red]error:[/bold red] {escape(str(exc))}", highlight=False, soft_wrap=True)
        return EXIT_USAGE
    except LGError as exc:
        error_console.print(f"[bold red]error:[/bold red] {escape(exc.format())}", highlight=False, soft_wrap=True)
        return EXIT_ERROR
    except OSError as exc:
        error_console.print(f"[bold red]error:[/bold red] {escape(str(exc))}", highlight=False, soft_wrap=True)
        return EXIT_ERROR


def run(argv: Optional[List[str]] = None) -> None:
    sys.exit(main(argv))


if __name__ == "__main__":  # pragma: no cover
    run()
