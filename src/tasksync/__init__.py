"""tasksync — schema reconciliation and Status/Done sync for markdown entity notes."""

__version__ = "0.1.0"
