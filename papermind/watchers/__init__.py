"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/watchers/__init__.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Intake watchers (consume folder, IMAP mailbox).
------------------------------------------------------------------------------
"""

from .base import PollingWatcher
from .consume import ConsumeWatcher
from .mail import MailWatcher
