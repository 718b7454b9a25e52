import logging
from typing import List, Tuple

logger = logging.getLogger(__name__)


class Notifier:
    """Transient user-facing messages. The default just logs them."""

    def success(self, message: str) -> None:
        logger.info(message)

    def error(self, message: str) -> None:
        logger.error(message)


class Toasts(Notifier):
    """Keeps every message so a front end can drain and display them."""

    def __init__(self):
        self.items: List[Tuple[str, str]] = []

    def success(self, message):
        super().success(message)
        self.items.append(("success", message))

    def error(self, message):
        super().error(message)
        self.items.append(("error", message))

    def drain(self) -> List[Tuple[str, str]]:
        items, self.items = self.items, []
        return items
