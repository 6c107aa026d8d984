"""cutler - declarative macOS preference management.

Reads a TOML document describing desired ``defaults`` values, applies only
the differences, and keeps a snapshot so every change can be undone.
"""

__version__ = "0.1.0"
