"""Task output formatting using Rich.

Usage:
    from dev.utils.logging_utils import print_banner, print_success

    print_banner("COMPOSE UP", data={"Runtime": "docker"})
    print_success("Compose file applied", File="~/.winboat/docker-compose.yml")
"""

from .console import console
from .printers import print_banner, print_info, print_success, with_banner

__all__ = [
    "console",
    "print_banner",
    "print_info",
    "print_success",
    "with_banner",
]
