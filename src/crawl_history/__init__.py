"""
Crawl History

Success/failure request history for resumable crawls.
"""

from crawl_history.core.config import HistoryConfig
from crawl_history.history import FailureStore, HistoryTracker, SuccessStore
from crawl_history.request import Record, Request

__all__ = [
    "FailureStore",
    "HistoryConfig",
    "HistoryTracker",
    "Record",
    "Request",
    "SuccessStore",
]
