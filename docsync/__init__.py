"""Range-based set reconciliation, an in-memory store, queries, download policies and key bounds."""

__version__ = "0.95.0"

__all__ = [
    "bounds",
    "index",
    "memstore",
    "policy",
    "pubkeys",
    "query",
    "ranger",
    "reconcile",
]