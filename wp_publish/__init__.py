"""WordPress side of the pipeline: REST clients, author and category resolution, publication saga."""

from wp_publish.attachments import AttachmentPublisher
from wp_publish.authors import Author, AuthorResolver, ParsedSender, parse_sender
from wp_publish.categories import CategoryResolver, ResolvedCategories
from wp_publish.saga import Publication, PublicationSaga, SagaLog, SagaState, post_title

__all__ = [
    "AttachmentPublisher",
    "Author",
    "AuthorResolver",
    "ParsedSender",
    "parse_sender",
    "CategoryResolver",
    "ResolvedCategories",
    "Publication",
    "PublicationSaga",
    "SagaLog",
    "SagaState",
    "post_title",
]
