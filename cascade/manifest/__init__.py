"""Manifest models and YAML loader."""

from .loader import DEFAULT_MANIFEST_NAME, ManifestError, load_manifest, parse_manifest
from .model import Command, Defaults, Dependent, Manifest, Module, Notifications, PRConfig

__all__ = [
    "DEFAULT_MANIFEST_NAME",
    "Command",
    "Defaults",
    "Dependent",
    "Manifest",
    "ManifestError",
    "Module",
    "Notifications",
    "PRConfig",
    "load_manifest",
    "parse_manifest",
]
