"""
Author resolution - maps the sender of a message to a WordPress user.

Existing users are matched by exact email. Otherwise the sender is looked up in
the Library IAM directory and a new "author" user is created from the record.
Senders unknown to the directory are published without an author.
"""

from __future__ import annotations

import logging
import re
import secrets
from dataclasses import dataclass
from typing import Any, Dict, Optional

from common.ports import ContentApi, Directory

logger = logging.getLogger(__name__)

_SENDER_RE = re.compile(r"^\s*(.*?)\s*<([^<>]+)>\s*$")


@dataclass(frozen=True)
class ParsedSender:
    """
    Sender header split into name and address.

    first_name/last_name are a heuristic: the first two words of the name.
    Multi-word first or last names are not split correctly.
    """

    name: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


def parse_sender(value: str) -> ParsedSender:
    """Parse 'Name <email>'. Without an angle-bracket address the whole value is used for both."""
    value = (value or "").strip()
    match = _SENDER_RE.match(value)
    if match:
        name = match.group(1).strip().strip('"').strip()
        email = match.group(2).strip()
    else:
        name = email = value
    if not name:
        name = email

    first_name = last_name = None
    tokens = name.split()
    if len(tokens) >= 2 and "@" not in name:
        first_name, last_name = tokens[0], tokens[1]
    return ParsedSender(name=name, email=email, first_name=first_name, last_name=last_name)


@dataclass
class Author:
    id: int
    email: str
    name: str
    created_this_run: bool = False


class AuthorResolver:
    """Finds or creates the WordPress user for a sender."""

    role = "author"

    def __init__(self, wp: ContentApi, directory: Optional[Directory]):
        self.wp = wp
        self.directory = directory

    def resolve(self, sender_header: str) -> Optional[Author]:
        sender = parse_sender(sender_header)
        if not sender.email:
            return None

        existing = self.find_existing(sender.email)
        if existing:
            logger.info("Found existing WordPress user %s for %s", existing.id, sender.email)
            return existing

        if self.directory is None:
            logger.info("No directory configured; publishing %s without author", sender.email)
            return None
        record = self.directory.get_employee_by_email(sender.email)
        if not record or not record.get("user_id"):
            logger.info("No directory identity for %s; publishing without author", sender.email)
            return None

        return self.create(sender.email, record)

    def find_existing(self, email: str) -> Optional[Author]:
        for user in self.wp.find_users(email) or []:
            if user.get("email") == email:
                return Author(id=user["id"], email=email, name=user.get("name", ""), created_this_run=False)
        return None

    def create(self, email: str, record: Dict[str, Any]) -> Author:
        first_name = record.get("first_name") or ""
        last_name = record.get("last_name") or ""
        name = " ".join(p for p in (first_name, last_name) if p) or record["user_id"]
        payload = {
            "username": record["user_id"],
            "email": email,
            "name": name,
            "first_name": first_name,
            "last_name": last_name,
            "roles": [self.role],
            "password": secrets.token_urlsafe(32),
        }
        logger.info("Creating WordPress user %s for %s", record["user_id"], email)
        user = self.wp.create_user(payload)
        return Author(id=user["id"], email=email, name=user.get("name", name), created_this_run=True)
