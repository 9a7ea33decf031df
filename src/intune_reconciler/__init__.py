"""Assignment reconciliation and batch execution for Intune mobile apps."""

__version__ = "0.1.0"

__all__ = ["__version__"]
