"""Command-line entry point: `adoptkit <path-to-csv>`."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence

from loguru import logger

from adoptkit.config import load_settings
from adoptkit.exceptions import AdoptkitError
from adoptkit.loading import load_institutions
from adoptkit.logging import enable_logging
from adoptkit.models import ServiceFailure
from adoptkit.pipeline import run_pipeline
from adoptkit.reporting import render_run


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv (Sequence[str] | None): Arguments without the program name.
            Defaults to `sys.argv[1:]`.

    Returns:
        argparse.Namespace: Parsed `path` and `log_level`.
    """
    parser = argparse.ArgumentParser(
        prog="adoptkit",
        description="Model cloud-service adoption across higher-education institutions with decision trees.",
    )
    parser.add_argument("path", help="Path to the institution CSV file.")
    parser.add_argument(
        "--log-level",
        default="STAGE",
        choices=["TRACE", "DEBUG", "INFO", "STAGE", "WARNING", "ERROR", "CRITICAL"],
        help="Minimum log level written to stderr (default: STAGE).",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Load the institution table, run every service pipeline, and print the report.

    Settings beyond the input path come from `ADOPTKIT_*` environment
    variables or a `.env` file.

    Args:
        argv (Sequence[str] | None): Arguments without the program name.

    Returns:
        int: 0 when every service succeeded, 1 otherwise.
    """
    args = parse_args(argv)
    with enable_logging(level=args.log_level):
        try:
            settings = load_settings()
            institutions = load_institutions(args.path)
            outcomes = run_pipeline(institutions, settings)
        except (AdoptkitError, FileNotFoundError) as exc:
            logger.error("Pipeline aborted", error_type=type(exc).__name__, message=str(exc))
            return 1

    print(render_run(outcomes))  # noqa: T201 - report goes to stdout
    return 1 if any(isinstance(outcome, ServiceFailure) for outcome in outcomes) else 0


if __name__ == "__main__":
    sys.exit(main())
