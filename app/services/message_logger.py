"""Per-event message collection.

Every webhook delivery gets its own MessageLogger. Lines are forwarded to a
regular ``logging.Logger`` and kept in order so they can be returned to the
webhook sender as the response body.
"""

from __future__ import annotations

import logging
from typing import List, Tuple


class MessageLogger:
    """Records log lines for one event while forwarding them to ``logger``."""

    def __init__(self, logger: logging.Logger):
        self._logger = logger
        self.records: List[Tuple[int, str]] = []

    def log(self, level: int, message: str) -> None:
        self.records.append((level, message))
        self._logger.log(level, message)

    def debug(self, message: str) -> None:
        self.log(logging.DEBUG, message)

    def info(self, message: str) -> None:
        self.log(logging.INFO, message)

    def error(self, message: str) -> None:
        self.log(logging.ERROR, message)

    @property
    def messages(self) -> List[str]:
        return [message for _, message in self.records]

    def messages_at(self, level: int) -> List[str]:
        """Messages logged at exactly ``level``."""
        return [message for lvl, message in self.records if lvl == level]
