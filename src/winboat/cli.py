"""Command-line interface for the WinBoat engine.

Examples:
    winboat status
    winboat ports
    winboat capabilities --runtime podman
    winboat install --install-folder ~/winboat --ram 8 --cpus 4
    winboat start
    winboat config set rdpMonitoringEnabled true
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from winboat.core.config_store import ConfigStore
from winboat.core.exceptions import WinBoatError
from winboat.core.utils import logger, setup_winboat_logging
from winboat.environments.container import ContainerBackend, PortNegotiator, create_backend, port_table_from_bindings
from winboat.environments.install import InstallEvent, InstallManager
from winboat.environments.lifecycle import WinBoat
from winboat.settings import WinBoatSettings, get_settings
from winboat.types.container import ContainerRuntime, ContainerStatus
from winboat.types.install import WINDOWS_VERSIONS, InstallConfiguration, InstallState

console = Console()


def _print_table(data: dict[str, Any]) -> None:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="dim")
    table.add_column("Value", style="cyan")
    for key, value in data.items():
        table.add_row(str(key), str(value))
    console.print(table)


def _build_backend(args: argparse.Namespace, settings: WinBoatSettings) -> ContainerBackend:
    runtime = getattr(args, "runtime", None) or ConfigStore(settings.config_file).config.container_runtime
    return create_backend(runtime, settings.data_dir)


def _build_winboat(settings: WinBoatSettings) -> WinBoat:
    config_store = ConfigStore(settings.config_file)
    backend = create_backend(config_store.config.container_runtime, settings.data_dir)
    return WinBoat(backend, config_store, settings)


def _run_winboat_action(action: Callable[[WinBoat], Coroutine[Any, Any, None]], done: str) -> int:
    settings = get_settings()

    async def run() -> None:
        winboat = _build_winboat(settings)
        try:
            await action(winboat)
        finally:
            await winboat.close()

    asyncio.run(run())
    console.print(f"[bold green]✓ {done}[/]")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Print the container status."""
    settings = get_settings()
    backend = _build_backend(args, settings)

    async def run() -> tuple[ContainerStatus, bool]:
        return await backend.get_status(), await backend.exists()

    status, exists = asyncio.run(run())
    _print_table({"Runtime": backend.runtime, "Container": backend.container_name, "Exists": exists, "Status": status})
    return 0


def cmd_ports(args: argparse.Namespace) -> int:
    """Print the guest-to-host port table.

    Uses the runtime's live bindings while the container runs, the compose
    file otherwise.
    """
    settings = get_settings()
    backend = _build_backend(args, settings)

    async def run() -> dict[int, int]:
        if await backend.get_status() == ContainerStatus.RUNNING:
            bindings = await backend.get_active_port_bindings()
            if bindings:
                return port_table_from_bindings(bindings).as_dict()
        spec = await backend.read_specification()
        negotiator = PortNegotiator(settings.port_search_range, settings.port_spacing)
        table = await negotiator.negotiate(spec.windows.port_bindings(), find_open_ports=False)
        return table.as_dict()

    ports = asyncio.run(run())
    table = Table(title="Port table")
    table.add_column("Guest port", justify="right")
    table.add_column("Host port", justify="right", style="cyan")
    for guest_port, host_port in sorted(ports.items()):
        table.add_row(str(guest_port), str(host_port))
    console.print(table)
    return 0


def cmd_capabilities(args: argparse.Namespace) -> int:
    """Check whether the container runtime can host the guest."""
    settings = get_settings()
    backend = _build_backend(args, settings)
    capabilities = asyncio.run(backend.probe_capabilities())

    _print_table(
        {
            "Runtime": capabilities.runtime,
            "Installed": capabilities.installed,
            "Compose installed": capabilities.compose_installed,
            "Running": capabilities.running,
            "User authorized": capabilities.user_authorized,
        }
    )
    return 0 if capabilities.satisfied else 1


def cmd_install(args: argparse.Namespace) -> int:
    """Create the compose file, start the container and wait for the guest."""
    settings = get_settings()
    conf = InstallConfiguration(
        windows_version=args.windows_version,
        windows_language=args.language,
        cpu_cores=args.cpus,
        ram_gb=args.ram,
        disk_space_gb=args.disk,
        username=args.username,
        password=args.password,
        install_folder=args.install_folder.expanduser(),
        custom_iso_path=args.iso.expanduser() if args.iso else None,
        share_home_folder=not args.no_share_home,
        runtime=args.runtime,
    )

    config_store = ConfigStore(settings.config_file)
    config_store.set("container_runtime", conf.runtime)
    manager = InstallManager(conf, create_backend(conf.runtime, settings.data_dir), settings)
    manager.subscribe(InstallEvent.STATE_CHANGED, lambda state: console.print(f"[bold blue]→ {state}[/]"))
    manager.subscribe(InstallEvent.PREINSTALL_MESSAGE, lambda message: console.print(f"  [dim]{message}[/]"))

    state = asyncio.run(manager.install())
    if state != InstallState.COMPLETED:
        console.print(f"[bold red]✗ Installation failed[/]\n  [dim]{manager.error}[/]")
        return 1
    console.print("[bold green]✓ Installation completed[/]")
    return 0


def cmd_start(args: argparse.Namespace) -> int:
    return _run_winboat_action(lambda winboat: winboat.start_container(), "Container started")


def cmd_stop(args: argparse.Namespace) -> int:
    return _run_winboat_action(lambda winboat: winboat.stop_container(), "Container stopped")


def cmd_pause(args: argparse.Namespace) -> int:
    return _run_winboat_action(lambda winboat: winboat.pause_container(), "Container paused")


def cmd_unpause(args: argparse.Namespace) -> int:
    return _run_winboat_action(lambda winboat: winboat.unpause_container(), "Container unpaused")


def cmd_reset(args: argparse.Namespace) -> int:
    if not args.yes:
        console.print("[yellow]Reset removes the container, the guest disk and all WinBoat data.[/]")
        console.print("[yellow]Pass --yes to confirm.[/]")
        return 1
    return _run_winboat_action(lambda winboat: winboat.reset(), "WinBoat reset")


def cmd_config_get(args: argparse.Namespace) -> int:
    config_store = ConfigStore(get_settings().config_file)
    if args.key:
        console.print(config_store.get(args.key))
    else:
        _print_table(config_store.config.model_dump(mode="json", by_alias=True))
    return 0


def cmd_config_set(args: argparse.Namespace) -> int:
    config_store = ConfigStore(get_settings().config_file)
    # "true", "8" and "[...]" are parsed, anything else stays a string
    value = yaml.safe_load(args.value)
    config_store.set(args.key, value)
    console.print(f"[bold green]✓ {args.key} = {config_store.get(args.key)}[/]")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="winboat",
        description="Manage the WinBoat Windows guest container",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)
    runtimes = [str(runtime) for runtime in ContainerRuntime]

    for name, func, help_text in (
        ("status", cmd_status, "Show the container status"),
        ("ports", cmd_ports, "Show the guest-to-host port table"),
        ("capabilities", cmd_capabilities, "Check the container runtime"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--runtime", choices=runtimes, help="Override the configured runtime")
        sub.set_defaults(func=func)

    install_parser = subparsers.add_parser("install", help="Install a new Windows guest")
    install_parser.add_argument("--install-folder", type=Path, required=True, help="Folder for the guest disk")
    install_parser.add_argument(
        "--windows-version", choices=list(WINDOWS_VERSIONS), default="11", help="Windows edition (default: 11)"
    )
    install_parser.add_argument("--language", default="English", help="Windows display language")
    install_parser.add_argument("--cpus", type=int, default=4, help="Virtual CPU cores (default: 4)")
    install_parser.add_argument("--ram", type=int, default=4, help="Memory in GB (default: 4)")
    install_parser.add_argument("--disk", type=int, default=64, help="Disk size in GB (default: 64)")
    install_parser.add_argument("--username", default="MyWindowsUser", help="Guest account name")
    install_parser.add_argument("--password", default="MyWindowsPassword", help="Guest account password")
    install_parser.add_argument("--iso", type=Path, help="Custom installation image")
    install_parser.add_argument("--no-share-home", action="store_true", help="Do not share the home folder")
    install_parser.add_argument("--runtime", choices=runtimes, default=str(ContainerRuntime.DOCKER))
    install_parser.set_defaults(func=cmd_install)

    for name, func, help_text in (
        ("start", cmd_start, "Start the container"),
        ("stop", cmd_stop, "Stop the container"),
        ("pause", cmd_pause, "Pause the container"),
        ("unpause", cmd_unpause, "Resume a paused container"),
    ):
        subparsers.add_parser(name, help=help_text).set_defaults(func=func)

    reset_parser = subparsers.add_parser("reset", help="Remove the guest and all WinBoat data")
    reset_parser.add_argument("--yes", action="store_true", help="Confirm the reset")
    reset_parser.set_defaults(func=cmd_reset)

    config_parser = subparsers.add_parser("config", help="Read or change the configuration")
    config_sub = config_parser.add_subparsers(dest="config_command", required=True)
    get_parser = config_sub.add_parser("get", help="Show one key or the whole configuration")
    get_parser.add_argument("key", nargs="?", help="Config key (snake_case or camelCase)")
    get_parser.set_defaults(func=cmd_config_get)
    set_parser = config_sub.add_parser("set", help="Change one key")
    set_parser.add_argument("key", help="Config key (snake_case or camelCase)")
    set_parser.add_argument("value", help="New value")
    set_parser.set_defaults(func=cmd_config_set)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)
    setup_winboat_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        return args.func(args)
    except (KeyError, ValueError, ValidationError) as e:
        logger.error(f"Error: {e}")
        return 1
    except WinBoatError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    except FileNotFoundError as e:
        logger.error(f"Not installed? {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())


__all__ = [
    "create_parser",
    "main",
]
