"""cascade: propagate a dependency bump to every dependent repository."""

__version__ = "0.1.0"
