"""Per-connection bandwidth accounting, link-layer decoding and a per-host traffic recorder."""

__version__ = "0.1.0"