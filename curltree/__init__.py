"""Personal link profiles stored in SQLite and served over HTTP as text or JSON."""

__version__ = "0.1.0"