import pytest

from common.config import CategoryMapping, EmailList
from common.errors import CompensationFailure, ExternalCallFailure, PipelineTimeout
from gmail_ingest.content_tree import ContentTreeExtractor
from gmail_ingest.ical_event import CalendarEventParser
from gmail_ingest.message import SourceMessage
from wp_publish.attachments import AttachmentPublisher
from wp_publish.authors import AuthorResolver
from wp_publish.categories import CategoryResolver
from wp_publish.saga import PublicationSaga, SagaLog, SagaState, post_title
from tests.fakes import FakeDirectory, FakeMailbox, FakeWordPress, StepClock, gmail_message, part
from tests.test_ical_event import BROKEN_START, EVENT_UTC_NO_RRULE

LISTS = [EmailList(sender="lib-personnel@ucdavis.edu", strip_prefix="[lib-personnel]")]


def rich_message():
    payload = part(
        "multipart/mixed",
        parts=[
            part(
                "multipart/related",
                parts=[
                    part("text/html", '<p>We are hiring.</p><img src="cid:img1">'),
                    part("image/png", b"png", filename="logo.png", headers={"Content-ID": "<img1>"}),
                ],
            ),
            part("application/pdf", b"%PDF", filename="posting.pdf"),
            part("text/calendar", EVENT_UTC_NO_RRULE),
        ],
    )
    return gmail_message("m1", subject="[lib-personnel] Job Opening", payload=payload)


def source(mailbox, message_id="m1"):
    return SourceMessage(message_id, f"t-{message_id}", mailbox, LISTS)


def make_saga(wp, mailbox, directory, categories=None, deadline=None, clock=None):
    kwargs = {}
    if clock is not None:
        kwargs["clock"] = clock
    return PublicationSaga(
        wp=wp,
        extractor=ContentTreeExtractor(mailbox),
        calendar_parser=CalendarEventParser("America/Los_Angeles"),
        attachments=AttachmentPublisher(wp),
        authors=AuthorResolver(wp, directory),
        categories=categories,
        deadline=deadline,
        **kwargs,
    )


def test_post_title_strips_list_prefix():
    assert post_title("[lib-personnel] Job Opening", LISTS[0]) == "Job Opening"
    assert post_title("Job Opening", LISTS[0]) == "Job Opening"
    assert post_title("[lib-personnel] Job Opening", None) == "[lib-personnel] Job Opening"
    assert post_title("", LISTS[0]) == ""


def test_saga_log_drains_newest_first_and_survives_failures():
    log = SagaLog()
    ran = []
    log.push("first", lambda: ran.append("first"))
    log.push("broken", lambda: 1 / 0)
    log.push("third", lambda: ran.append("third"))

    failures = log.drain()

    assert ran == ["third", "first"]
    assert [f.step for f in failures] == ["broken"]
    assert isinstance(failures[0], CompensationFailure)
    assert len(log) == 0


def test_successful_publication(directory):
    mailbox = FakeMailbox([rich_message()])
    wp = FakeWordPress()
    saga = make_saga(wp, mailbox, directory)

    publication = saga.run(source(mailbox))

    assert saga.state == SagaState.COMMITTED
    assert len(saga.log) == 0
    post = wp.posts[publication.post_id]
    assert post["title"] == "Job Opening"
    assert post["status"] == "publish"
    assert post["date_gmt"] == "2025-01-05T22:30:00"
    assert post["author"] == publication.author_id

    content = post["content"]
    assert "cid:img1" not in content
    assert content.count("https://wp.example/uploads/logo.png") == 1
    assert '<a href="https://wp.example/uploads/posting.pdf">posting.pdf</a>' in content
    assert content.index("We are hiring") < content.index("email-calendar-event") < content.index("email-attachments")

    assert len(publication.media_ids) == 2
    for media_id in publication.media_ids:
        assert wp.media[media_id]["post"] == publication.post_id
        assert wp.media[media_id]["author"] == publication.author_id


def test_post_failure_rolls_back_media_and_new_author_in_reverse_order(directory):
    mailbox = FakeMailbox([rich_message()])
    wp = FakeWordPress()
    error = ExternalCallFailure("wordpress", 500, "creating post")
    wp.fail["create_post"] = error
    saga = make_saga(wp, mailbox, directory)

    with pytest.raises(ExternalCallFailure) as excinfo:
        saga.run(source(mailbox))

    assert excinfo.value is error
    assert saga.state == SagaState.FAILED
    assert wp.media == {}
    assert wp.users == {}
    assert wp.ops()[-3:] == ["delete_user", "delete_media", "delete_media"]
    uploaded_ids = [c for c in wp.calls if c[0] == "delete_media"]
    assert uploaded_ids[0][1] > uploaded_ids[1][1]


def test_reused_author_is_never_deleted_on_rollback(directory):
    mailbox = FakeMailbox([rich_message()])
    wp = FakeWordPress(users=[{"id": 3, "email": "jdoe@ucdavis.edu", "name": "Jane Doe"}])
    wp.fail["create_post"] = ExternalCallFailure("wordpress", 500, "creating post")

    with pytest.raises(ExternalCallFailure):
        make_saga(wp, mailbox, directory).run(source(mailbox))

    assert 3 in wp.users
    assert "delete_user" not in wp.ops()
    assert wp.media == {}


def test_failed_upload_only_removes_media_already_uploaded(directory):
    mailbox = FakeMailbox([rich_message()])
    wp = FakeWordPress()
    wp.fail["upload_media"] = ExternalCallFailure("wordpress", 413, "too large")
    wp.fail_after["upload_media"] = 1

    with pytest.raises(ExternalCallFailure):
        make_saga(wp, mailbox, directory).run(source(mailbox))

    assert wp.ops() == ["upload_media", "upload_media", "delete_media"]
    assert wp.media == {}


def test_failing_compensation_does_not_stop_others_or_mask_error(directory):
    mailbox = FakeMailbox([rich_message()])
    wp = FakeWordPress()
    error = ExternalCallFailure("wordpress", 500, "creating post")
    wp.fail["create_post"] = error
    wp.fail["delete_user"] = ExternalCallFailure("wordpress", 500, "cannot delete user")
    saga = make_saga(wp, mailbox, directory)

    with pytest.raises(ExternalCallFailure) as excinfo:
        saga.run(source(mailbox))

    assert excinfo.value is error
    assert wp.media == {}
    assert len(saga.compensation_failures) == 1
    assert saga.compensation_failures[0].step.startswith("create author")


def test_failure_linking_media_deletes_the_post(directory):
    mailbox = FakeMailbox([rich_message()])
    wp = FakeWordPress()
    wp.fail["update_media"] = ExternalCallFailure("wordpress", 500, "updating media")

    with pytest.raises(ExternalCallFailure):
        make_saga(wp, mailbox, directory).run(source(mailbox))

    assert wp.posts == {}
    assert wp.users == {}
    assert wp.media == {}


def test_created_category_is_rolled_back_but_existing_one_kept(directory):
    mailbox = FakeMailbox([rich_message()])
    wp = FakeWordPress(categories=[{"id": 1, "slug": "university-librarian", "name": "University Librarian"}])
    wp.fail["create_post"] = ExternalCallFailure("wordpress", 500, "creating post")
    categories = CategoryResolver(
        wp,
        [
            CategoryMapping(slug="human-resources", name="Human Resources", sender_emails=["jdoe"]),
            CategoryMapping(slug="university-librarian", name="University Librarian", sender_emails=["jdoe@ucdavis.edu"]),
        ],
        "ucdavis.edu",
    )

    with pytest.raises(ExternalCallFailure):
        make_saga(wp, mailbox, directory, categories=categories).run(source(mailbox))

    assert list(wp.categories) == [1]
    assert wp.ops().index("delete_category") < wp.ops().index("delete_user")


def test_categories_are_assigned_to_post(directory):
    mailbox = FakeMailbox([rich_message()])
    wp = FakeWordPress()
    categories = CategoryResolver(
        wp, [CategoryMapping(slug="human-resources", name="Human Resources", sender_emails=["jdoe"])], "ucdavis.edu"
    )

    publication = make_saga(wp, mailbox, directory, categories=categories).run(source(mailbox))

    assert wp.posts[publication.post_id]["categories"] == publication.category_ids
    assert len(publication.category_ids) == 1


def test_deadline_mid_saga_rolls_back(directory):
    mailbox = FakeMailbox([rich_message()])
    wp = FakeWordPress()
    saga = make_saga(wp, mailbox, directory, deadline=10, clock=StepClock(0, 0, 50))

    with pytest.raises(PipelineTimeout):
        saga.run(source(mailbox))

    assert "create_post" not in wp.ops()
    assert wp.media == {}
    assert wp.users == {}
    assert saga.state == SagaState.FAILED


def test_authorless_publication_when_sender_unknown():
    message = gmail_message("m2", sender="Visitor <visitor@example.com>")
    mailbox = FakeMailbox([message])
    wp = FakeWordPress()

    publication = make_saga(wp, mailbox, FakeDirectory()).run(source(mailbox, "m2"))

    assert publication.author_id is None
    assert "author" not in wp.posts[publication.post_id]


def test_unreadable_invite_does_not_block_publication(directory):
    payload = part("multipart/mixed", parts=[part("text/html", "<p>Meeting</p>"), part("text/calendar", BROKEN_START)])
    mailbox = FakeMailbox([gmail_message("m3", payload=payload)])
    wp = FakeWordPress()
    saga = make_saga(wp, mailbox, directory)

    publication = saga.run(source(mailbox, "m3"))

    assert saga.state == SagaState.COMMITTED
    assert "<p>Meeting</p>" in wp.posts[publication.post_id]["content"]
