"""Blog Platform backend: authentication, token lifecycle and ownership checks."""

__version__ = "1.0.0"
