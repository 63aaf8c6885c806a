"""Task lifecycle and automation engine for a kanban-style task board."""

__version__ = "0.1.0"
