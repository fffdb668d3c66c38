"""Console client for FM-DX Webserver tuners."""

__version__ = "1.0"
