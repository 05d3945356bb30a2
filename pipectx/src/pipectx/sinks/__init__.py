from .base import SinkAdapterBase
from .fakes import InMemorySinkAdapter, SinkCall

__all__ = [
    "InMemorySinkAdapter",
    "SinkAdapterBase",
    "SinkCall",
]
