"""Repository provisioning: clone git references locally or on managed hosts."""

__all__ = ["__version__"]

__version__ = "0.1.0"
