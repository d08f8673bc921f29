"""
Processed label - the Gmail label that marks a message as published.
The label is the only record of which messages have been handled, so it is
applied only after a publication has committed.
"""

import logging
from typing import Optional

from common.ports import Mailbox

logger = logging.getLogger(__name__)


class ProcessedMarker:
    """Ensures the processed label exists and applies it to messages."""

    def __init__(self, mailbox: Mailbox, label_name: str):
        self.mailbox = mailbox
        self.label_name = label_name
        self._label_id: Optional[str] = None

    def ensure(self, reset_cache: bool = False) -> str:
        """
        Return the label id, creating the label if it does not exist.
        reset_cache re-checks Gmail in case the label was deleted since it was cached.
        """
        if reset_cache:
            self._label_id = None
        if self._label_id:
            return self._label_id

        for label in self.mailbox.list_labels():
            if label.get("name") == self.label_name:
                self._label_id = label["id"]
                logger.info("Found processed label '%s' (%s)", self.label_name, self._label_id)
                return self._label_id

        logger.info("Processed label '%s' not found. Creating it", self.label_name)
        created = self.mailbox.create_label(self.label_name)
        self._label_id = created["id"]
        return self._label_id

    def apply(self, message_id: str, reset_cache: bool = False) -> None:
        """Mark a message as processed. Adding a label twice is harmless."""
        label_id = self.ensure(reset_cache)
        logger.info("Marking message %s as processed", message_id)
        self.mailbox.add_label(message_id, label_id)
        logger.info("Message %s marked as processed", message_id)
