"""
Content Tree Extractor - walks a Gmail message payload (the nested MIME part
tree) and pulls out the body, file attachments and an optional calendar
invitation.

Body selection is local to each level of the tree: when a level has any
text/html sibling only the HTML siblings contribute, otherwise the
text/plain siblings do. Every part's children are visited either way.
"""

import base64
import binascii
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from common.ports import Mailbox

logger = logging.getLogger(__name__)

TEXT_PLAIN = "text/plain"
TEXT_HTML = "text/html"
TEXT_CALENDAR = "text/calendar"
NON_ATTACHMENT_TYPES = frozenset({TEXT_PLAIN, TEXT_HTML, TEXT_CALENDAR})

DEFAULT_MAX_DEPTH = 20

_HEAD_RE = re.compile(r"<head\b[^>]*>.*?</head\s*>", re.IGNORECASE | re.DOTALL)
_CHARSET_RE = re.compile(r"charset\s*=\s*\"?([^\";\s]+)", re.IGNORECASE)


def decode_base64url(data: Optional[str]) -> Optional[bytes]:
    """Decode Gmail's base64url data. Returns None when the data is malformed."""
    if data is None:
        return None
    try:
        padded = data + "=" * (-len(data) % 4)
        return base64.b64decode(padded, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError) as e:
        logger.warning("Failed to decode part data: %s", e)
        return None


def strip_head(body: str) -> str:
    """Remove <head>...</head> regions; they mean nothing in a republished post."""
    # overlapping tags can leave a new head region behind after one pass
    while True:
        stripped = _HEAD_RE.sub("", body)
        if stripped == body:
            return stripped
        body = stripped


@dataclass(frozen=True)
class ContentPart:
    """One node of the MIME part tree."""

    mime_type: str
    filename: str = ""
    headers: Tuple[Tuple[str, str], ...] = ()
    data: Optional[str] = None
    attachment_id: Optional[str] = None
    parts: Tuple["ContentPart", ...] = ()

    @classmethod
    def from_payload(
        cls, payload: Dict[str, Any], max_depth: int = DEFAULT_MAX_DEPTH, _depth: int = 0
    ) -> "ContentPart":
        """Build a part tree from a Gmail payload dict, dropping levels beyond max_depth."""
        body = payload.get("body") or {}
        children: Tuple[ContentPart, ...] = ()
        raw_children = payload.get("parts") or []
        if raw_children:
            if _depth >= max_depth:
                logger.warning("Part tree deeper than %d levels; ignoring nested parts", max_depth)
            else:
                children = tuple(cls.from_payload(p, max_depth, _depth + 1) for p in raw_children)
        return cls(
            mime_type=(payload.get("mimeType") or "").lower(),
            filename=payload.get("filename") or "",
            headers=tuple((h.get("name", ""), h.get("value", "")) for h in payload.get("headers") or []),
            data=body.get("data"),
            attachment_id=body.get("attachmentId"),
            parts=children,
        )

    def header(self, name: str) -> str:
        """Part header value; names compared case-insensitively (Content-ID vs Content-Id)."""
        name_lower = name.lower()
        for key, value in self.headers:
            if key.lower() == name_lower:
                return value
        return ""

    @property
    def charset(self) -> str:
        match = _CHARSET_RE.search(self.header("Content-Type"))
        return match.group(1) if match else "utf-8"

    @property
    def content_id(self) -> Optional[str]:
        value = self.header("Content-ID").strip()
        if value.startswith("<") and value.endswith(">"):
            value = value[1:-1].strip()
        return value or None

    @property
    def is_attachment(self) -> bool:
        return bool(self.filename) and self.mime_type not in NON_ATTACHMENT_TYPES


@dataclass
class Attachment:
    """A file attached to a message; media is set once uploaded to WordPress."""

    filename: str
    mime_type: str
    content: bytes
    content_id: Optional[str] = None
    media: Optional[Dict[str, Any]] = None

    @property
    def media_id(self) -> Optional[int]:
        return self.media.get("id") if self.media else None

    @property
    def url(self) -> str:
        return (self.media or {}).get("source_url", "")


@dataclass
class ExtractedContent:
    body: str = ""
    attachments: List[Attachment] = field(default_factory=list)
    calendar: Optional[bytes] = None


@dataclass
class _WalkState:
    body_chunks: List[str] = field(default_factory=list)
    calendar_found: bool = False


class ContentTreeExtractor:
    """Extracts body, attachments and calendar payload from one message."""

    def __init__(self, mailbox: Mailbox, max_depth: int = DEFAULT_MAX_DEPTH):
        self.mailbox = mailbox
        self.max_depth = max_depth

    def extract(self, message_id: str, root: Optional[ContentPart]) -> ExtractedContent:
        result = ExtractedContent()
        if root is None:
            return result
        state = _WalkState()
        self._walk(message_id, (root,), 0, state, result)
        result.body = strip_head("".join(state.body_chunks))
        logger.info(
            "Extracted message %s: %d body chars, %d attachments, calendar=%s",
            message_id,
            len(result.body),
            len(result.attachments),
            result.calendar is not None,
        )
        return result

    def extract_payload(self, message_id: str, payload: Optional[Dict[str, Any]]) -> ExtractedContent:
        """Convenience wrapper taking the raw Gmail payload dict."""
        if not payload:
            return ExtractedContent()
        return self.extract(message_id, ContentPart.from_payload(payload, self.max_depth))

    def _walk(
        self,
        message_id: str,
        level: Sequence[ContentPart],
        depth: int,
        state: _WalkState,
        result: ExtractedContent,
    ) -> None:
        if depth > self.max_depth:
            logger.warning("Skipping parts nested deeper than %d levels in %s", self.max_depth, message_id)
            return
        wanted = TEXT_HTML if any(p.mime_type == TEXT_HTML for p in level) else TEXT_PLAIN

        for part in level:
            if part.mime_type == wanted:
                raw = self._part_bytes(message_id, part)
                if raw:
                    state.body_chunks.append(self._decode_text(raw, part.charset))
            elif part.mime_type == TEXT_CALENDAR:
                # first calendar part in document order wins
                if not state.calendar_found:
                    state.calendar_found = True
                    result.calendar = self._part_bytes(message_id, part)
            elif part.is_attachment:
                content = self._part_bytes(message_id, part)
                if content is None:
                    logger.warning("Skipping undecodable attachment %s in %s", part.filename, message_id)
                else:
                    result.attachments.append(
                        Attachment(
                            filename=part.filename,
                            mime_type=part.mime_type,
                            content=content,
                            content_id=part.content_id,
                        )
                    )

            if part.parts:
                self._walk(message_id, part.parts, depth + 1, state, result)

    def _part_bytes(self, message_id: str, part: ContentPart) -> Optional[bytes]:
        """Inline data if present, otherwise fetch the stored attachment body."""
        if part.data is not None:
            return decode_base64url(part.data)
        if part.attachment_id:
            resp = self.mailbox.get_attachment(message_id, part.attachment_id)
            return decode_base64url(resp.get("data"))
        return None

    @staticmethod
    def _decode_text(raw: bytes, charset: str) -> str:
        try:
            return raw.decode(charset, errors="replace")
        except LookupError:
            return raw.decode("utf-8", errors="replace")
