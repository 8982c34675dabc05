#!/usr/bin/env python3
"""cfgcomplexity/cli.py — command-line entry point.

Usage examples
--------------
    # All metrics for every function in a graph description
    cfgcomplexity analyze module.json

    # Only the path metrics, as JSON, skipping loop back edges
    cfgcomplexity analyze module.sexp --metric mccabe --metric longest_path \\
        --format json --on-back-edge ignore

    # Settings from a JSON config file, flags still win
    cfgcomplexity analyze module.json --config complexity.json -v

    # Graphviz rendering of one function
    cfgcomplexity dot module.json --function test

    # Show version and exit
    cfgcomplexity --version

Exit codes
----------
    0   Success.
    1   At least one function could not be analysed (malformed graph).
    2   Infrastructure failure (missing file, bad document, bad config).
    130 Interrupted.

``python -m cfgcomplexity`` runs :func:`main` as well.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, TextIO

from . import __version__
from .config import (
    ALL_METRICS,
    BACK_EDGE_POLICIES,
    OUTPUT_FORMATS,
    AnalysisConfig,
    load_config,
)
from .errors import ComplexityError, ConfigError, GraphFormatError
from .graph_io import load_path
from .report import FunctionReport, analyze_functions, render

_log = logging.getLogger("cfgcomplexity")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2
EXIT_INTERRUPTED: int = 130


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the ``cfgcomplexity`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    root = logging.getLogger("cfgcomplexity")
    root.setLevel(level)
    # Replace the handler from an earlier main() call; sys.stderr may differ.
    for old in [h for h in root.handlers if getattr(h, "_cfgcomplexity", False)]:
        root.removeHandler(old)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    handler._cfgcomplexity = True  # type: ignore[attr-defined]
    root.addHandler(handler)


def _open_output(dest: Optional[str]) -> TextIO:
    """``None`` or ``"-"`` → stdout; otherwise open the path for writing."""
    if dest is None or dest == "-":
        return sys.stdout
    p = Path(dest).expanduser().resolve()
    p.parent.mkdir(parents=True, exist_ok=True)
    return open(p, "w", encoding="utf-8")


def _resolve_config(args: argparse.Namespace) -> AnalysisConfig:
    base = load_config(args.config) if args.config else AnalysisConfig()
    return base.merged(
        metrics=args.metric or None,
        on_back_edge=args.on_back_edge,
        output_format=args.format,
        loop_score=False if args.no_loops else None,
    )


# ===========================================================================
# Sub-commands
# ===========================================================================

def _cmd_analyze(args: argparse.Namespace) -> int:
    try:
        config = _resolve_config(args)
    except ConfigError as exc:
        _log.error("configuration: %s", exc)
        return EXIT_INFRA

    reports: List[FunctionReport] = []
    for path in args.files:
        try:
            cfgs = load_path(path)
        except GraphFormatError as exc:
            _log.error("%s", exc)
            return EXIT_INFRA
        reports.extend(analyze_functions(cfgs, config, source=path))

    out = _open_output(args.output)
    try:
        out.write(render(reports, config.output_format, config.metrics))
        out.write("\n")
    finally:
        if out is not sys.stdout:
            out.close()

    failed = sum(1 for r in reports if not r.ok)
    if failed:
        _log.warning("%d of %d function(s) failed", failed, len(reports))
        return EXIT_ERROR
    return EXIT_OK


def _cmd_dot(args: argparse.Namespace) -> int:
    try:
        cfgs = load_path(args.file)
    except GraphFormatError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA
    if args.function is not None:
        cfgs = [c for c in cfgs if c.name == args.function]
        if not cfgs:
            _log.error("%s: no function named %r", args.file, args.function)
            return EXIT_INFRA
    out = _open_output(args.output)
    try:
        out.write("\n".join(c.to_dot() for c in cfgs))
        out.write("\n")
    finally:
        if out is not sys.stdout:
            out.close()
    return EXIT_OK


# ===========================================================================
# Argument parser
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cfgcomplexity",
        description="Static complexity metrics over control flow graphs.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv debug).",
    )
    subparsers = parser.add_subparsers(title="commands", metavar="COMMAND")

    p_analyze = subparsers.add_parser(
        "analyze",
        help="Compute complexity metrics for every function in FILE(s).",
    )
    p_analyze.add_argument("files", nargs="+", metavar="FILE",
                           help="Graph description (.json, .sexp, .cfg).")
    p_analyze.add_argument(
        "-m", "--metric",
        action="append",
        choices=ALL_METRICS,
        help="Metric to compute; repeat for several (default: all).",
    )
    p_analyze.add_argument(
        "-f", "--format",
        choices=OUTPUT_FORMATS,
        default=None,
        help="Report format (default: text).",
    )
    p_analyze.add_argument(
        "--on-back-edge",
        choices=BACK_EDGE_POLICIES,
        default=None,
        help="Fail on a back edge (error) or skip it (ignore).",
    )
    p_analyze.add_argument(
        "--no-loops",
        action="store_true",
        help="Do not derive natural loops for the loop score.",
    )
    p_analyze.add_argument("-c", "--config", metavar="PATH",
                           help="JSON configuration file.")
    p_analyze.add_argument("-o", "--output", metavar="PATH",
                           help="Write the report here instead of stdout.")
    p_analyze.set_defaults(func=_cmd_analyze)

    p_dot = subparsers.add_parser("dot", help="Render CFGs as Graphviz DOT.")
    p_dot.add_argument("file", metavar="FILE")
    p_dot.add_argument("--function", metavar="NAME",
                       help="Only this function.")
    p_dot.add_argument("-o", "--output", metavar="PATH")
    p_dot.set_defaults(func=_cmd_dot)

    return parser


# ===========================================================================
# Main entry point
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the CLI and return its exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)

    # No subcommand given → print help.
    if not hasattr(args, "func"):
        parser.print_help(sys.stderr)
        return EXIT_INFRA

    try:
        return args.func(args)
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return EXIT_INTERRUPTED
    except ComplexityError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA
    except Exception as exc:
        _log.error("Unhandled exception: %s", exc, exc_info=True)
        return EXIT_INFRA


if __name__ == "__main__":
    raise SystemExit(main())
