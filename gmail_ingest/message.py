"""
Source Message - one Gmail message as seen by the pipeline.
The Gmail response is fetched once and cached for the lifetime of the object.
"""

import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional, Sequence

from common.config import EmailList
from common.errors import ValidationError
from common.ports import Mailbox

logger = logging.getLogger(__name__)


class SourceMessage:
    """A single message in the shared mailbox."""

    def __init__(
        self,
        message_id: Optional[str],
        thread_id: Optional[str],
        mailbox: Mailbox,
        email_lists: Sequence[EmailList] = (),
    ):
        if not message_id:
            raise ValidationError("message id is required")
        self.id = message_id
        self.thread_id = thread_id
        self.mailbox = mailbox
        self.email_lists = list(email_lists)
        self._data: Optional[Dict[str, Any]] = None

    def get(self) -> Dict[str, Any]:
        """Fetch the message from Gmail (at most once)."""
        if self._data is not None:
            return self._data
        logger.info("Getting message: %s", self.id)
        self._data = self.mailbox.get_message(self.id)
        logger.info("Got message %s", self.logger_info)
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        return self._data or {}

    @property
    def payload(self) -> Dict[str, Any]:
        return self.data.get("payload") or {}

    @property
    def headers(self) -> List[Dict[str, str]]:
        return self.payload.get("headers") or []

    def header(self, name: str) -> str:
        """Value of the first header whose name matches exactly, or ''."""
        for h in self.headers:
            if h.get("name") == name:
                return h.get("value", "")
        return ""

    @property
    def subject(self) -> str:
        return self.header("Subject")

    @property
    def sender(self) -> str:
        """The From header, e.g. "Kaladin Stormblessed <kstormblessed@ucdavis.edu>"."""
        return self.header("From")

    @property
    def list_sender(self) -> str:
        """The Sender header set by the mailing list."""
        return self.header("Sender")

    @property
    def email_list(self) -> Optional[EmailList]:
        """The registered email list the message was sent through, if any."""
        sender = self.list_sender
        for email_list in self.email_lists:
            if email_list.sender == sender:
                return email_list
        return None

    @property
    def sent_at(self) -> Optional[datetime]:
        """When the message was sent, in UTC."""
        internal_date = self.data.get("internalDate")
        if internal_date:
            try:
                return datetime.fromtimestamp(int(internal_date) / 1000, tz=timezone.utc)
            except (TypeError, ValueError):
                logger.warning("Bad internalDate on message %s: %r", self.id, internal_date)
        date_header = self.header("Date")
        if date_header:
            try:
                parsed = parsedate_to_datetime(date_header)
            except (TypeError, ValueError):
                return None
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc)
        return None

    @property
    def logger_info(self) -> Dict[str, str]:
        """Basic information about the message for log lines."""
        info = {
            "id": self.id,
            "threadId": self.thread_id or "",
            "subject": self.subject,
            "from": self.sender,
        }
        email_list = self.email_list
        if email_list:
            info["emailList"] = email_list.sender
        return info

    def trash(self) -> Dict[str, Any]:
        """Move the message to the trash."""
        logger.info("Trashing message %s", self.id)
        res = self.mailbox.trash_message(self.id)
        logger.info("Trashed message %s", self.id)
        return res
