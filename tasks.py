"""Main invoke tasks file. Use `inv --list` to see available tasks."""

from invoke import Collection, Context, task

from dev import code_tasks
from dev.utils import logging_utils
from winboat.core.config_store import ConfigStore
from winboat.environments.container import create_backend
from winboat.settings import get_settings


def _compose_command(runtime: str | None) -> tuple[str, str]:
    """Runtime executable and compose file of the configured (or given) runtime."""
    settings = get_settings()
    runtime = runtime or ConfigStore(settings.config_file).config.container_runtime
    backend = create_backend(runtime, settings.data_dir)
    return str(backend.runtime), str(backend.compose_file)


@task(help={"runtime": "Container runtime (default: from winboat.config.json)"})
@logging_utils.with_banner()
def up(ctx: Context, runtime: str | None = None) -> None:
    """Bring the guest deployment up from its compose file."""
    executable, compose_file = _compose_command(runtime)
    ctx.run(f"{executable} compose -f {compose_file} up -d")
    logging_utils.print_success("Guest deployment is up", File=compose_file)


@task(help={"runtime": "Container runtime (default: from winboat.config.json)"})
@logging_utils.with_banner()
def down(ctx: Context, runtime: str | None = None) -> None:
    """Bring the guest deployment down."""
    executable, compose_file = _compose_command(runtime)
    ctx.run(f"{executable} compose -f {compose_file} down")
    logging_utils.print_success("Guest deployment is down")


@task(help={"runtime": "Container runtime (default: from winboat.config.json)"})
def logs(ctx: Context, runtime: str | None = None) -> None:
    """Follow the guest container logs."""
    executable, compose_file = _compose_command(runtime)
    ctx.run(f"{executable} compose -f {compose_file} logs -f", pty=True)


compose_ns = Collection("compose")
compose_ns.add_task(up)
compose_ns.add_task(down)
compose_ns.add_task(logs)

ns = Collection()

dev_ns = Collection("dev")
dev_ns.add_collection(Collection.from_module(code_tasks), name="code")
ns.add_collection(dev_ns)
ns.add_collection(compose_ns, name="compose")
