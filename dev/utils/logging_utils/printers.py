"""Print helpers for invoke tasks."""

from __future__ import annotations

import functools
import inspect
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar

from .console import Panel, Text, console

if TYPE_CHECKING:
    from collections.abc import Callable

P = ParamSpec("P")
R = TypeVar("R")


def print_banner(title: str, data: dict[str, Any] | None = None) -> None:
    """Print a task banner with title and key-value pairs.

    Args:
        title: Main title text (e.g., "COMPOSE UP").
        data: Optional dict of key-value pairs to display below the title.

    Example:
        >>> print_banner("COMPOSE UP", {"Runtime": "podman"})
        ╭──────────────────── COMPOSE UP ─────────────────────╮
        │ Runtime: podman                                     │
        ╰─────────────────────────────────────────────────────╯
    """
    content = Text()
    if data:
        for i, (key, value) in enumerate(data.items()):
            if i > 0:
                content.append("\n")
            content.append(f"{key}: ", style="dim")
            content.append(str(value), style="cyan")
    console.print()
    console.print(Panel(content, style="blue", title=f"[bold]{title}[/]", title_align="center"))
    console.print()


def print_info(message: str) -> None:
    console.print(f"  {message}")


def print_success(message: str = "SUCCESS", **details: Any) -> None:
    """Print a success message with optional details.

    Example:
        >>> print_success("Compose file applied", File="~/.winboat/docker-compose.yml")

        ✓ Compose file applied
          File: ~/.winboat/docker-compose.yml
    """
    console.print()
    console.print(f"[bold green]✓ {message}[/]")
    for key, value in details.items():
        console.print(f"  [dim]{key}:[/] [cyan]{value}[/]")


def with_banner(
    exclude: set[str] | None = None,
    include_false: bool = False,
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Decorator that prints a banner with the task name and its arguments.

    Args:
        exclude: Additional parameter names to leave out. "self" and "ctx" are
            always left out.
        include_false: Include parameters whose value is False or None.
    """
    effective_exclude = {"self", "ctx"} | (exclude or set())

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            bound = inspect.signature(func).bind(*args, **kwargs)
            bound.apply_defaults()

            title = func.__name__.replace("_", " ").upper()  # type: ignore[attr-defined]
            data = {
                name.replace("_", " ").title(): value
                for name, value in bound.arguments.items()
                if name not in effective_exclude and (include_false or value not in (None, False))
            }
            print_banner(title, data or None)
            return func(*args, **kwargs)

        return wrapper

    return decorator


__all__ = [
    "print_banner",
    "print_info",
    "print_success",
    "with_banner",
]
