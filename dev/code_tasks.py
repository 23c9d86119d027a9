"""Code quality tasks (linting, formatting, testing)."""

from __future__ import annotations

from typing import TYPE_CHECKING

from invoke.tasks import task

if TYPE_CHECKING:
    from invoke.context import Context

from dev.utils import logging_utils

CODE_PATHS = "src dev tests tasks.py"


@task(name="lint")
@logging_utils.with_banner()
def lint(ctx: Context) -> None:
    """Run linting (no fixes) - for CI."""
    logging_utils.print_info("Running ruff check...")
    ctx.run(f"ruff check {CODE_PATHS}")

    logging_utils.print_info("Running ruff format check...")
    ctx.run(f"ruff format --check {CODE_PATHS}")

    logging_utils.print_success("All checks passed")


@task(name="format")
def format_code(c: Context) -> None:
    """Format code using ruff - for local dev."""
    c.run(f"ruff check {CODE_PATHS} --fix")
    c.run(f"ruff format {CODE_PATHS}")


@task(name="test", help={"keyword": "Only run tests matching this pytest -k expression"})
@logging_utils.with_banner()
def run_tests(ctx: Context, keyword: str | None = None) -> None:
    """Run the test suite."""
    selector = f' -k "{keyword}"' if keyword else ""
    logging_utils.print_info("Running tests...")
    ctx.run(f"pytest{selector}", pty=True)
    logging_utils.print_success("All tests passed")
