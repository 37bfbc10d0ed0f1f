"""caddroid - supervised installer steps with progress for Termux."""

__version__ = "0.1.0"
