"""Read-only zone and herb reference data."""

from .catalog import Registry

__all__ = ["Registry"]
