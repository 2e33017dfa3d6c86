"""ordex: stable order and identity for files in a plain-file workspace."""

__version__ = "0.3.0"
