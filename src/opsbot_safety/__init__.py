"""Command safety classification and approval workflow engine."""

__version__ = "0.1.0"
