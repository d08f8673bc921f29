"""
Publication saga - publishes one message as a WordPress post.

The forward steps touch WordPress several times (media, user, categories,
post). Each step pushes its compensating action onto a SagaLog once its side
effect is confirmed; on any failure the log is drained in reverse order and
the original error is re-raised. A message therefore ends up either fully
published or not published at all.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Any, Callable, List, Optional, Tuple

from common.config import EmailList
from common.errors import CompensationFailure, PipelineTimeout
from common.ports import ContentApi
from gmail_ingest.content_tree import ContentTreeExtractor, ExtractedContent
from gmail_ingest.ical_event import CalendarEventParser
from gmail_ingest.message import SourceMessage
from wp_publish.attachments import AttachmentPublisher
from wp_publish.authors import Author, AuthorResolver, parse_sender
from wp_publish.categories import CategoryResolver

logger = logging.getLogger(__name__)


class SagaState(str, Enum):
    PENDING = "pending"
    ATTACHMENTS_UPLOADED = "attachments_uploaded"
    AUTHOR_RESOLVED = "author_resolved"
    CATEGORIES_RESOLVED = "categories_resolved"
    POST_CREATED = "post_created"
    ATTACHMENTS_LINKED = "attachments_linked"
    COMMITTED = "committed"
    COMPENSATING = "compensating"
    FAILED = "failed"


@dataclass
class Publication:
    post_id: int
    author_id: Optional[int] = None
    media_ids: List[int] = field(default_factory=list)
    category_ids: List[int] = field(default_factory=list)


class SagaLog:
    """Stack of (step, compensation) pairs, replayed last-in first-out."""

    def __init__(self):
        self._entries: List[Tuple[str, Callable[[], Any]]] = []

    def push(self, step: str, compensation: Callable[[], Any]) -> None:
        self._entries.append((step, compensation))

    @property
    def steps(self) -> List[str]:
        return [step for step, _ in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def drain(self) -> List[CompensationFailure]:
        """Run every compensation, newest first. A failing one does not stop the rest."""
        failures: List[CompensationFailure] = []
        while self._entries:
            step, compensation = self._entries.pop()
            logger.info("Compensating: %s", step)
            try:
                compensation()
            except Exception as e:
                logger.exception("Compensation for '%s' failed", step)
                failures.append(CompensationFailure(step, e))
        return failures


def post_title(subject: str, email_list: Optional[EmailList]) -> str:
    """Subject with the list's prefix (e.g. '[lib-personnel]') removed."""
    title = subject or ""
    prefix = email_list.strip_prefix if email_list else None
    if prefix and title.startswith(prefix):
        title = title[len(prefix):]
    return title.strip()


class PublicationSaga:
    """One publish attempt for one message."""

    def __init__(
        self,
        wp: ContentApi,
        extractor: ContentTreeExtractor,
        calendar_parser: CalendarEventParser,
        attachments: AttachmentPublisher,
        authors: AuthorResolver,
        categories: Optional[CategoryResolver] = None,
        deadline: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.wp = wp
        self.extractor = extractor
        self.calendar_parser = calendar_parser
        self.attachments = attachments
        self.authors = authors
        self.categories = categories
        self.deadline = deadline
        self.clock = clock
        self.state = SagaState.PENDING
        self.log = SagaLog()
        self.compensation_failures: List[CompensationFailure] = []

    def run(self, message: SourceMessage) -> Publication:
        message.get()
        logger.info("Publishing message %s", message.logger_info)
        try:
            content = self.extractor.extract_payload(message.id, message.payload)

            self._check_deadline()
            for attachment in content.attachments:
                self.attachments.upload(attachment)
                self.log.push(
                    f"upload {attachment.filename}",
                    partial(self.wp.delete_media, attachment.media_id),
                )
            self._advance(SagaState.ATTACHMENTS_UPLOADED)

            self._check_deadline()
            author = self.authors.resolve(message.sender)
            if author and author.created_this_run:
                self.log.push(f"create author {author.id}", partial(self.wp.delete_user, author.id))
            self._advance(SagaState.AUTHOR_RESOLVED)

            self._check_deadline()
            category_ids = self._resolve_categories(message)
            self._advance(SagaState.CATEGORIES_RESOLVED)

            self._check_deadline()
            post = self.wp.create_post(self.build_post(message, content, author, category_ids))
            post_id = post["id"]
            self.log.push(f"create post {post_id}", partial(self.wp.delete_post, post_id))
            self._advance(SagaState.POST_CREATED)

            self._check_deadline()
            author_id = author.id if author else None
            self.attachments.link_to_post(content.attachments, post_id, author_id)
            self._advance(SagaState.ATTACHMENTS_LINKED)
        except Exception:
            self._compensate(message)
            raise

        self.log.clear()
        self._advance(SagaState.COMMITTED)
        publication = Publication(
            post_id=post_id,
            author_id=author_id,
            media_ids=[a.media_id for a in content.attachments if a.media_id is not None],
            category_ids=category_ids,
        )
        logger.info("Published message %s as post %s", message.id, post_id)
        return publication

    def build_post(
        self,
        message: SourceMessage,
        content: ExtractedContent,
        author: Optional[Author],
        category_ids: List[int],
    ) -> dict:
        body = content.body
        fragment = self.calendar_parser.render(content.calendar)
        if fragment:
            body += fragment
        body = self.attachments.substitute_inline(body, content.attachments)
        body += self.attachments.link_list(content.attachments)

        data = {
            "title": post_title(message.subject, message.email_list),
            "content": body,
            "status": "publish",
        }
        sent_at = message.sent_at
        if sent_at:
            data["date_gmt"] = sent_at.strftime("%Y-%m-%dT%H:%M:%S")
        if author:
            data["author"] = author.id
        if category_ids:
            data["categories"] = category_ids
        return data

    def _resolve_categories(self, message: SourceMessage) -> List[int]:
        if not self.categories:
            return []

        def on_created(category):
            self.log.push(
                f"create category {category.get('slug')}",
                partial(self.wp.delete_category, category["id"]),
            )

        email = parse_sender(message.sender).email
        return self.categories.resolve(email, on_created=on_created).ids

    def _advance(self, state: SagaState) -> None:
        logger.debug("Saga state %s -> %s", self.state.value, state.value)
        self.state = state

    def _check_deadline(self) -> None:
        if self.deadline is not None and self.clock() >= self.deadline:
            raise PipelineTimeout("Run deadline passed before publication completed")

    def _compensate(self, message: SourceMessage) -> None:
        self._advance(SagaState.COMPENSATING)
        logger.warning("Rolling back %d step(s) for message %s", len(self.log), message.id)
        self.compensation_failures = self.log.drain()
        self._advance(SagaState.FAILED)
