from .file_io import atomic_write_text, guarded_file_lock, lock_path_for
from .logging import file_logging_context, logger, setup_winboat_logging

__all__ = [
    "atomic_write_text",
    "file_logging_context",
    "guarded_file_lock",
    "lock_path_for",
    "logger",
    "setup_winboat_logging",
]
