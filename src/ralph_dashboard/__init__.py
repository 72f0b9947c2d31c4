"""Ralph dashboard: supervise the automation loop and mirror its state live."""

__version__ = "0.3.0"

__all__ = ["__version__"]
