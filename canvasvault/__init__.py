"""CanvasVault API: authentication, token lifecycle and AI credits."""

__version__ = "0.1.0"
