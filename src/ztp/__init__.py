"""Zero-touch provisioning deployment templates."""

__version__ = "0.1.0"
