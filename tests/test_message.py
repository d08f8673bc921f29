from datetime import datetime, timezone

import pytest

from common.config import EmailList
from common.errors import ValidationError
from gmail_ingest.message import SourceMessage
from tests.fakes import FakeMailbox, gmail_message

LISTS = [
    EmailList(sender="lib-personnel@ucdavis.edu", strip_prefix="[lib-personnel]"),
    EmailList(sender="lib-all@ucdavis.edu"),
]


def test_message_id_is_required():
    with pytest.raises(ValidationError):
        SourceMessage(None, "t1", FakeMailbox())
    with pytest.raises(ValidationError):
        SourceMessage("", "t1", FakeMailbox())


def test_get_fetches_once():
    mailbox = FakeMailbox([gmail_message("m1")])
    message = SourceMessage("m1", "t-m1", mailbox, LISTS)

    first = message.get()
    second = message.get()

    assert first is second
    assert mailbox.calls.count(("get_message", "m1")) == 1


def test_header_lookup_is_exact():
    mailbox = FakeMailbox([gmail_message("m1", subject="Hello")])
    message = SourceMessage("m1", "t-m1", mailbox, LISTS)
    message.get()

    assert message.subject == "Hello"
    assert message.header("subject") == ""
    assert message.header("X-Missing") == ""
    assert message.sender == "Jane Doe <jdoe@ucdavis.edu>"


def test_properties_are_empty_before_get():
    message = SourceMessage("m1", "t-m1", FakeMailbox(), LISTS)
    assert message.subject == ""
    assert message.email_list is None
    assert message.sent_at is None


def test_email_list_matches_sender_header():
    mailbox = FakeMailbox(
        [
            gmail_message("m1", list_sender="lib-all@ucdavis.edu"),
            gmail_message("m2", list_sender="someone-else@ucdavis.edu"),
            gmail_message("m3", list_sender=None),
        ]
    )
    found = []
    for message_id in ("m1", "m2", "m3"):
        message = SourceMessage(message_id, None, mailbox, LISTS)
        message.get()
        found.append(message.email_list)

    assert found == [LISTS[1], None, None]


def test_sent_at_from_internal_date():
    mailbox = FakeMailbox([gmail_message("m1", internal_date="1736116200000")])
    message = SourceMessage("m1", "t-m1", mailbox)
    message.get()
    assert message.sent_at == datetime(2025, 1, 5, 22, 30, tzinfo=timezone.utc)


def test_sent_at_falls_back_to_date_header():
    raw = gmail_message("m1")
    del raw["internalDate"]
    raw["payload"]["headers"].append({"name": "Date", "value": "Sun, 05 Jan 2025 14:30:00 -0800"})
    message = SourceMessage("m1", "t-m1", FakeMailbox([raw]))
    message.get()
    assert message.sent_at == datetime(2025, 1, 5, 22, 30, tzinfo=timezone.utc)


def test_logger_info_names_the_list():
    mailbox = FakeMailbox([gmail_message("m1", subject="[lib-personnel] Job")])
    message = SourceMessage("m1", "t-m1", mailbox, LISTS)
    message.get()
    assert message.logger_info == {
        "id": "m1",
        "threadId": "t-m1",
        "subject": "[lib-personnel] Job",
        "from": "Jane Doe <jdoe@ucdavis.edu>",
        "emailList": "lib-personnel@ucdavis.edu",
    }


def test_trash_moves_message_to_trash():
    mailbox = FakeMailbox([gmail_message("m1")])
    SourceMessage("m1", "t-m1", mailbox).trash()
    assert mailbox.trashed == ["m1"]
