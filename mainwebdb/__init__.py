"""MainWebDB - multi-tenant document database engine with an API-key query gateway."""

__version__ = "0.1.0"
