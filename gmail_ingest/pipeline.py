"""
Gmail -> WordPress pipeline:
1. List messages without the processed label
2. Skip messages not sent through a registered email list
3. Publish each message as a WordPress post (PublicationSaga)
4. Label published messages as processed
5. Trash messages past the retention period
"""

import argparse
import logging
import time
from pathlib import Path
from typing import Callable, Dict, Optional

from common.config import Settings, get_settings
from common.ports import ContentApi, Directory, Mailbox
from gmail_ingest.content_tree import ContentTreeExtractor
from gmail_ingest.ical_event import CalendarEventParser
from gmail_ingest.message import SourceMessage
from gmail_ingest.processed_label import ProcessedMarker
from wp_publish.attachments import AttachmentPublisher
from wp_publish.authors import AuthorResolver
from wp_publish.categories import CategoryResolver
from wp_publish.saga import Publication, PublicationSaga

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


class PipelineRunner:
    """Publishes every unprocessed message in the mailbox, one at a time."""

    def __init__(
        self,
        mailbox: Mailbox,
        wp: ContentApi,
        directory: Optional[Directory],
        settings: Settings,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.mailbox = mailbox
        self.wp = wp
        self.settings = settings
        self.clock = clock
        self.marker = ProcessedMarker(mailbox, settings.gmail_processed_label)
        self.extractor = ContentTreeExtractor(mailbox, max_depth=settings.max_part_depth)
        self.calendar_parser = CalendarEventParser(settings.default_timezone)
        self.attachments = AttachmentPublisher(wp)
        self.authors = AuthorResolver(wp, directory)
        self.categories = (
            CategoryResolver(wp, settings.category_mappings, settings.default_email_domain)
            if settings.category_mappings
            else None
        )

    @property
    def unprocessed_query(self) -> str:
        return f'-label:"{self.settings.gmail_processed_label}" -in:trash -in:spam'

    @property
    def retention_query(self) -> Optional[str]:
        if self.settings.retention_days <= 0:
            return None
        return f"older_than:{self.settings.retention_days}d -in:trash"

    def new_saga(self, deadline: Optional[float] = None) -> PublicationSaga:
        return PublicationSaga(
            wp=self.wp,
            extractor=self.extractor,
            calendar_parser=self.calendar_parser,
            attachments=self.attachments,
            authors=self.authors,
            categories=self.categories,
            deadline=deadline,
            clock=self.clock,
        )

    def run(self) -> int:
        """Process all unprocessed messages, then clean up old ones. Returns the publish count."""
        deadline = self.clock() + self.settings.task_timeout if self.settings.task_timeout > 0 else None
        refs = self.mailbox.list_messages(self.unprocessed_query)
        logger.info("Found %d unprocessed messages", len(refs))

        published = 0
        for ref in refs:
            if deadline is not None and self.clock() >= deadline:
                logger.warning("Run deadline reached; remaining messages wait for the next run")
                break
            try:
                publication = self.process_message(ref, deadline)
            except Exception:
                logger.exception("Failed to process message %s", ref.get("id"))
                continue
            if publication is None:
                continue
            published += 1
            try:
                # the label may have been deleted since a previous run
                self.marker.apply(ref["id"], reset_cache=published == 1)
            except Exception:
                logger.exception("Published message %s but could not mark it processed", ref.get("id"))

        self.trash_old_messages()
        logger.info("Processed %d messages", published)
        return published

    def process_message(self, ref: Dict[str, str], deadline: Optional[float] = None) -> Optional[Publication]:
        """Publish one message. Returns None when the message is skipped."""
        message = SourceMessage(ref.get("id"), ref.get("threadId"), self.mailbox, self.settings.email_lists)
        message.get()

        if not message.email_list:
            logger.info("Message is not from a recognized email list. Skipping %s", message.logger_info)
            return None
        logger.info("Message from recognized email list %s: %s", message.email_list.sender, message.logger_info)

        return self.new_saga(deadline).run(message)

    def trash_old_messages(self) -> int:
        """Move messages past the retention period to the trash."""
        query = self.retention_query
        if query is None:
            return 0
        trashed = 0
        for ref in self.mailbox.list_messages(query):
            try:
                self.mailbox.trash_message(ref["id"])
                trashed += 1
            except Exception:
                logger.exception("Failed to trash message %s", ref.get("id"))
        logger.info("Trashed %d messages older than %d days", trashed, self.settings.retention_days)
        return trashed


def build_runner(settings: Settings) -> PipelineRunner:
    """Wire the real Gmail, WordPress and IAM clients."""
    from gmail_ingest.gmail_client import GmailClient
    from wp_publish.iam import IamClient
    from wp_publish.wordpress import WordPressClient

    mailbox = GmailClient(token_path=Path(settings.gmail_token_path))
    wp = WordPressClient(
        settings.wp_url,
        settings.wp_username,
        settings.wp_password,
        reassign_user_id=settings.wp_reassign_user_id,
        timeout=settings.request_timeout,
    )
    directory = None
    if settings.iam_url:
        directory = IamClient(
            settings.iam_url,
            settings.iam_username,
            settings.iam_password,
            timeout=settings.request_timeout,
        )
    return PipelineRunner(mailbox, wp, directory, settings)


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog=settings.app_name,
        description="Gmail -> WordPress pipeline: publish mailing list messages as posts",
    )
    parser.add_argument(
        "command",
        choices=["run", "authorize"],
        help="run: publish unprocessed messages once; authorize: create the Gmail OAuth token",
    )
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)

    if args.command == "authorize":
        from gmail_ingest.auth import authorize

        authorize(Path(settings.gmail_credentials_path), Path(settings.gmail_token_path))
        return

    count = build_runner(settings).run()
    print(f"Published {count} messages")


if __name__ == "__main__":
    main()
