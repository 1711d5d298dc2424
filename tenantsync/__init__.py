"""Schema-drift reconciler and tenant router for the hospital administration databases."""

__version__ = "0.3.0"
