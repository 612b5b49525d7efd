"""cloudext: extension configuration reconciliation for multi-role cloud deployments."""

__version__ = "0.1.0"
