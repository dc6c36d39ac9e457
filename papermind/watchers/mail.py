"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/watchers/mail.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    IMAP mailbox watcher. Imports PDF attachments of unseen
                messages and remembers processed message ids.
------------------------------------------------------------------------------
"""

import email
import imaplib
import re
from datetime import timedelta
from email.message import EmailMessage
from email.policy import default as default_policy
from email.utils import parseaddr
from typing import Callable, List, Optional

from papermind.errors import ConflictError
from papermind.logger import get_logger
from papermind.models import DocumentSource, IngestKey, utc_now
from papermind.models.settings import SETTINGS_EMAIL, EmailSettings
from papermind.pipeline import PipelineProcessor
from papermind.repositories import IngestRepository
from papermind.settings_cache import SettingsCache
from papermind.vault import compute_sha256

from .base import PollingWatcher

logger = get_logger("watchers.mail")

KEY_PREFIX = "message-id:"
RETENTION_DAYS = 90
DEFAULT_SUBJECT = "E-Mail Import"

# Called as factory(host, port, timeout=seconds)
ImapFactory = Callable[..., imaplib.IMAP4]


def message_key(msg: EmailMessage, raw: bytes) -> str:
    """Dedup key: the Message-ID, or a hash of the raw message without one."""
    message_id = str(msg.get("Message-ID") or "").strip()
    if message_id:
        return f"{KEY_PREFIX}{message_id}"
    return f"{KEY_PREFIX}sha256:{compute_sha256(raw)}"


def pdf_attachments(msg: EmailMessage) -> List[EmailMessage]:
    found = []
    for part in msg.iter_attachments():
        filename = (part.get_filename() or "").lower()
        if part.get_content_type() == "application/pdf" or filename.endswith(".pdf"):
            found.append(part)
    return found


def safe_filename(subject: str) -> str:
    return re.sub(r"[^\w\s-]", "_", subject).strip() or "attachment"


class MailWatcher(PollingWatcher):
    """
    Polls the configured IMAP folder for UNSEEN messages. Settings are
    read from the settings cache on every cycle, so changes apply on the
    next poll.
    """

    name = "mail watcher"

    def __init__(
        self,
        settings: SettingsCache,
        pipeline: PipelineProcessor,
        ingest: IngestRepository,
        imap_factory: ImapFactory = imaplib.IMAP4_SSL,
    ) -> None:
        super().__init__()
        self.settings = settings
        self.pipeline = pipeline
        self.ingest = ingest
        self.imap_factory = imap_factory
        self._unsubscribe = settings.subscribe(self._on_settings_changed)

    def _on_settings_changed(self, key: str) -> None:
        if key == SETTINGS_EMAIL:
            logger.info("Email settings changed, applying on next poll")

    def interval(self) -> float:
        return self.settings.email().poll_interval_minutes * 60

    def stop(self, timeout: Optional[float] = 10.0) -> None:
        super().stop(timeout)
        self._unsubscribe()

    def scan_once(self) -> int:
        config = self.settings.email()
        if not config.configured:
            logger.debug("Email import disabled or incomplete, skipping poll")
            return 0

        pruned = self.ingest.prune(KEY_PREFIX, utc_now() - timedelta(days=RETENTION_DAYS))
        if pruned:
            logger.info(f"Pruned {pruned} processed message id(s)")

        try:
            conn = self.imap_factory(config.host, config.port, timeout=config.timeout_seconds)
        except (imaplib.IMAP4.error, OSError) as e:
            logger.error(f"Could not connect to {config.host}:{config.port}, retrying next poll: {e}")
            return 0

        ingested = 0
        try:
            conn.login(config.user, config.password)
            conn.select(config.folder)
            typ, data = conn.search(None, "UNSEEN")
            if typ != "OK":
                logger.warning(f"IMAP search failed: {typ}")
                return 0
            numbers = data[0].split() if data and data[0] else []
            if not numbers:
                logger.debug("No unread emails")
                return 0
            logger.info(f"Found {len(numbers)} unread email(s)")

            for num in numbers:
                try:
                    ingested += self._handle_message(conn, num, config)
                except TimeoutError:
                    # The connection is unusable, give up on this poll
                    raise
                except (imaplib.IMAP4.error, OSError) as e:
                    logger.error(f"Failed to process message {num!r}: {e}")
        except (imaplib.IMAP4.error, OSError) as e:
            logger.error(f"IMAP session with {config.host} failed, retrying next poll: {e}")
        finally:
            try:
                conn.logout()
            except (imaplib.IMAP4.error, OSError) as e:
                logger.debug(f"IMAP logout failed: {e}")
        return ingested

    def _handle_message(self, conn: imaplib.IMAP4, num: bytes, config: EmailSettings) -> int:
        # PEEK leaves \Seen untouched until all attachments are stored
        typ, msg_data = conn.fetch(num, "(BODY.PEEK[])")
        raw = next((part[1] for part in msg_data or [] if isinstance(part, tuple)), None)
        if typ != "OK" or not raw:
            logger.warning(f"Could not fetch message {num!r}")
            return 0

        msg = email.message_from_bytes(raw, policy=default_policy)
        key = message_key(msg, raw)
        if self.ingest.seen(key):
            logger.debug(f"Already processed, skipping: {key}")
            conn.store(num, "+FLAGS", "\\Seen")
            return 0

        sender = parseaddr(str(msg.get("From") or ""))[1].lower()
        allowed = [s.lower() for s in config.allowed_senders]
        if allowed and sender not in allowed:
            logger.info(f"Ignoring message from non-allowed sender {sender!r}")
            self.ingest.mark(IngestKey(key=key, source=DocumentSource.EMAIL))
            return 0

        subject = str(msg.get("Subject") or "").strip() or DEFAULT_SUBJECT
        attachments = pdf_attachments(msg)
        if not attachments:
            self.ingest.mark(IngestKey(key=key, source=DocumentSource.EMAIL))
            conn.store(num, "+FLAGS", "\\Seen")
            return 0

        logger.info(f"Processing {subject!r} - {len(attachments)} PDF(s)")
        created: List[str] = []
        failed = False
        for part in attachments:
            filename = part.get_filename() or f"{safe_filename(subject)}.pdf"
            if not filename.lower().endswith(".pdf"):
                filename += ".pdf"
            title = subject if len(attachments) == 1 else f"{subject} - {filename[:-4]}"
            try:
                doc = self.pipeline.ingest_bytes(
                    part.get_payload(decode=True) or b"",
                    filename,
                    DocumentSource.EMAIL,
                    title=title,
                    process=False,
                )
            except ConflictError as e:
                logger.info(f"Duplicate attachment {filename} skipped: {e}")
                continue
            except Exception as e:
                logger.error(f"Failed to store attachment {filename}: {e}")
                failed = True
                continue
            created.append(doc.id)

        for document_id in created:
            self.pipeline.submit(document_id)

        if failed:
            # Not marked: the message is retried on the next poll
            return len(created)

        self.ingest.mark(
            IngestKey(key=key, source=DocumentSource.EMAIL, document_id=created[0] if created else None)
        )
        conn.store(num, "+FLAGS", "\\Seen")
        return len(created)
