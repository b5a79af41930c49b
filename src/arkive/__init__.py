"""Arkive - backup and restore artifact storage on object stores."""

__version__ = "0.1.0"
