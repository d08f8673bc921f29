"""Gmail side of the pipeline: mailbox access, part-tree extraction, calendar parsing, processed label."""

from gmail_ingest.content_tree import (
    Attachment,
    ContentPart,
    ContentTreeExtractor,
    ExtractedContent,
    strip_head,
)
from gmail_ingest.ical_event import CalendarEvent, CalendarEventParser
from gmail_ingest.message import SourceMessage
from gmail_ingest.processed_label import ProcessedMarker

__all__ = [
    "Attachment",
    "ContentPart",
    "ContentTreeExtractor",
    "ExtractedContent",
    "strip_head",
    "CalendarEvent",
    "CalendarEventParser",
    "SourceMessage",
    "ProcessedMarker",
]
