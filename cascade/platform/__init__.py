"""Platform abstraction layer."""

from .files import atomic_write_json, atomic_write_text
from .process import ProcessError, run

__all__ = [
    # files
    "atomic_write_json",
    "atomic_write_text",
    # process
    "ProcessError",
    "run",
]
