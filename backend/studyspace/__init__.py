"""Study workspace backend."""

__version__ = "0.1.0"
