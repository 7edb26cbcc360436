"""
History Persistence Layer

Provides the backend interface and the provider factory.
"""

from crawl_history.db.base import HistoryBackend
from crawl_history.db.factory import get_backend

__all__ = ["HistoryBackend", "get_backend"]
