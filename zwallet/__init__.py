"""Light wallet CLI: key custody, account provisioning and balance reporting."""

__version__ = "0.1.0"
