import imaplib
from datetime import timedelta
from email import message_from_bytes
from email.message import EmailMessage
from email.policy import default

import pytest
from unittest.mock import MagicMock, patch

from papermind.models import DocumentSource, EmailSettings, IngestKey, utc_now
from papermind.models.settings import SETTINGS_EMAIL
from papermind.watchers.mail import KEY_PREFIX, MailWatcher, message_key

from tests.helpers import make_pdf


def build_message(subject="March invoice", sender="billing@acme.example", message_id="<m1@acme.example>", pdfs=None):
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = f"ACME Billing <{sender}>"
    msg["To"] = "archive@example.com"
    if message_id:
        msg["Message-ID"] = message_id
    msg.set_content("Please find attached.")
    for filename, data in (pdfs if pdfs is not None else [("invoice.pdf", make_pdf(text=subject))]):
        msg.add_attachment(data, maintype="application", subtype="pdf", filename=filename)
    return msg.as_bytes()


def fake_imap(messages):
    """IMAP connection double serving raw messages keyed by sequence number."""
    conn = MagicMock()
    conn.search.return_value = ("OK", [b" ".join(messages.keys())])
    conn.fetch.side_effect = lambda num, parts: ("OK", [(b"%s (BODY[] {0})" % num, messages[num]), b")"])
    return conn


@pytest.fixture
def configure(settings):
    def _configure(**overrides):
        values = dict(enabled=True, host="imap.example.com", user="archive", password="secret")
        values.update(overrides)
        settings.put(SETTINGS_EMAIL, EmailSettings(**values))
    return _configure


def make_watcher(settings, pipeline, ingest, conn):
    factory = MagicMock(return_value=conn)
    return MailWatcher(settings, pipeline, ingest, imap_factory=factory), factory


def seen_flags(conn):
    return [c.args[0] for c in conn.store.call_args_list if c.args[1:] == ("+FLAGS", "\\Seen")]


def test_unconfigured_mailbox_is_not_polled(settings, pipeline, ingest):
    watcher, factory = make_watcher(settings, pipeline, ingest, MagicMock())
    assert watcher.scan_once() == 0
    factory.assert_not_called()


def test_imports_pdf_attachment(configure, settings, pipeline, ingest, documents, runner):
    configure()
    conn = fake_imap({b"1": build_message()})
    watcher, factory = make_watcher(settings, pipeline, ingest, conn)

    assert watcher.scan_once() == 1
    assert runner.wait_idle(timeout=10)

    factory.assert_called_once_with("imap.example.com", 993, timeout=30)
    conn.login.assert_called_once_with("archive", "secret")
    conn.fetch.assert_called_once_with(b"1", "(BODY.PEEK[])")
    assert seen_flags(conn) == [b"1"]
    conn.logout.assert_called_once()

    [doc_id] = documents.list_processed_ids()
    doc = documents.get(doc_id)
    assert doc.source == DocumentSource.EMAIL
    # Email subject survives processing
    assert doc.title == "March invoice"
    assert ingest.seen(f"{KEY_PREFIX}<m1@acme.example>")


def test_processed_message_id_is_skipped(configure, settings, pipeline, ingest):
    configure()
    ingest.mark(IngestKey(key=f"{KEY_PREFIX}<m1@acme.example>", source=DocumentSource.EMAIL))
    conn = fake_imap({b"1": build_message()})
    watcher, _ = make_watcher(settings, pipeline, ingest, conn)

    assert watcher.scan_once() == 0
    assert pipeline.documents.counts() == {}
    assert seen_flags(conn) == [b"1"]


def test_multiple_attachments_get_suffixed_titles(configure, settings, pipeline, ingest, documents):
    configure()
    raw = build_message(pdfs=[("a.pdf", make_pdf(text="first")), ("b.pdf", make_pdf(text="second"))])
    watcher, _ = make_watcher(settings, pipeline, ingest, fake_imap({b"1": raw}))

    with patch.object(pipeline, "submit") as submit:
        assert watcher.scan_once() == 2

    titles = sorted(documents.get(c.args[0]).title for c in submit.call_args_list)
    assert titles == ["March invoice - a", "March invoice - b"]


def test_non_allowed_sender_is_recorded_but_not_imported(configure, settings, pipeline, ingest):
    configure(allowed_senders=["boss@example.com"])
    conn = fake_imap({b"1": build_message()})
    watcher, _ = make_watcher(settings, pipeline, ingest, conn)

    assert watcher.scan_once() == 0
    assert pipeline.documents.counts() == {}
    assert ingest.seen(f"{KEY_PREFIX}<m1@acme.example>")
    assert seen_flags(conn) == []


def test_message_without_pdf_is_marked(configure, settings, pipeline, ingest):
    configure()
    conn = fake_imap({b"1": build_message(pdfs=[])})
    watcher, _ = make_watcher(settings, pipeline, ingest, conn)

    assert watcher.scan_once() == 0
    assert ingest.seen(f"{KEY_PREFIX}<m1@acme.example>")
    assert seen_flags(conn) == [b"1"]


def test_failed_attachment_leaves_message_unseen(configure, settings, pipeline, ingest):
    configure()
    conn = fake_imap({b"1": build_message()})
    watcher, _ = make_watcher(settings, pipeline, ingest, conn)

    with patch.object(pipeline, "ingest_bytes", side_effect=OSError("disk full")):
        assert watcher.scan_once() == 0

    assert not ingest.seen(f"{KEY_PREFIX}<m1@acme.example>")
    assert seen_flags(conn) == []


def test_one_broken_message_does_not_stop_the_poll(configure, settings, pipeline, ingest):
    configure()
    conn = fake_imap({
        b"1": build_message(message_id="<a@x>", pdfs=[("a.pdf", make_pdf(text="a"))]),
        b"2": build_message(message_id="<b@x>", pdfs=[("b.pdf", make_pdf(text="b"))]),
    })
    original = conn.fetch.side_effect

    def flaky_fetch(num, parts):
        if num == b"1":
            raise OSError("connection reset")
        return original(num, parts)

    conn.fetch.side_effect = flaky_fetch
    watcher, _ = make_watcher(settings, pipeline, ingest, conn)

    with patch.object(pipeline, "submit"):
        assert watcher.scan_once() == 1
    assert ingest.seen(f"{KEY_PREFIX}<b@x>")


def test_old_message_ids_are_pruned(configure, settings, pipeline, ingest):
    configure()
    old = IngestKey(key=f"{KEY_PREFIX}<old@x>", source=DocumentSource.EMAIL, seen_at=utc_now() - timedelta(days=91))
    recent = IngestKey(key=f"{KEY_PREFIX}<new@x>", source=DocumentSource.EMAIL)
    ingest.mark(old)
    ingest.mark(recent)
    watcher, _ = make_watcher(settings, pipeline, ingest, fake_imap({}))

    watcher.scan_once()

    assert not ingest.seen(old.key)
    assert ingest.seen(recent.key)


def test_message_key_without_message_id():
    raw = build_message(message_id=None)
    key = message_key(message_from_bytes(raw, policy=default), raw)
    assert key.startswith(f"{KEY_PREFIX}sha256:")


def test_interval_follows_settings(configure, settings, pipeline, ingest):
    watcher, _ = make_watcher(settings, pipeline, ingest, MagicMock())
    configure(poll_interval_minutes=2)
    assert watcher.interval() == 120
    watcher.stop()


def test_connect_failure_is_retried_next_poll(configure, settings, pipeline, ingest):
    configure(timeout_seconds=5)
    factory = MagicMock(side_effect=TimeoutError("timed out"))
    watcher = MailWatcher(settings, pipeline, ingest, imap_factory=factory)

    assert watcher.scan_once() == 0
    factory.assert_called_once_with("imap.example.com", 993, timeout=5)
    watcher.stop()


def test_silent_server_ends_the_poll(configure, settings, pipeline, ingest):
    configure()
    conn = fake_imap({
        b"1": build_message(message_id="<a@x>"),
        b"2": build_message(message_id="<b@x>", pdfs=[("b.pdf", make_pdf(text="b"))]),
    })
    conn.fetch.side_effect = TimeoutError("timed out")
    watcher, _ = make_watcher(settings, pipeline, ingest, conn)

    assert watcher.scan_once() == 0

    # No second fetch on a dead connection
    conn.fetch.assert_called_once()
    conn.logout.assert_called_once()
    assert not ingest.seen(f"{KEY_PREFIX}<a@x>")
    assert seen_flags(conn) == []


def test_login_failure_is_logged(configure, settings, pipeline, ingest):
    configure()
    conn = MagicMock()
    conn.login.side_effect = imaplib.IMAP4.error("authentication failed")
    watcher, _ = make_watcher(settings, pipeline, ingest, conn)

    assert watcher.scan_once() == 0
    conn.search.assert_not_called()
    conn.logout.assert_called_once()
