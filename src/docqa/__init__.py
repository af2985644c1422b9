"""docqa - paragraph-level retrieval over uploaded text documents."""

__version__ = "0.1.0"
