"""Docker Hub tag cleaner: enforce tag count and size limits on one repository."""

__version__ = "1.0.0"
