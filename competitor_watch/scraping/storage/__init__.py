"""
Collaborator port exports.
"""

from competitor_watch.scraping.storage.base import AlertNotifier, RecordStorage
from competitor_watch.scraping.storage.memory import InMemoryRecordStorage, LoggingAlertNotifier

__all__ = ["AlertNotifier", "InMemoryRecordStorage", "LoggingAlertNotifier", "RecordStorage"]
