"""Backend relay for the cookie manager browser extension."""

__version__ = "1.0.0"
