"""On-disk mail storage, address helpers and HTML/CSS sanitizing for an e-mail testing server."""

__version__ = "3.0.0"