"""CarClaw Installer — idempotent install and reconciliation for the CarClaw bridge."""

__version__ = "0.1.0"
