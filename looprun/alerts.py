import logging
from typing import List, Protocol

logger = logging.getLogger(__name__)


class AlertSink(Protocol):
    def __call__(self, message: str) -> None:
        ...


class LogAlertSink:
    def __call__(self, message: str) -> None:
        logger.info("🏁 %s", message)


class CollectingAlertSink:
    def __init__(self):
        self.messages: List[str] = []

    def __call__(self, message: str) -> None:
        self.messages.append(message)
