"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/watchers/consume.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Consume folder watcher. Picks up supported files dropped
                into the consume directory, deduplicates them by content
                hash and hands new documents to the pipeline.
------------------------------------------------------------------------------
"""

from pathlib import Path
from typing import List, Union

from papermind.errors import ConflictError
from papermind.importer import mime_for
from papermind.logger import get_logger
from papermind.models import DocumentSource, IngestKey
from papermind.pipeline import PipelineProcessor
from papermind.repositories import IngestRepository
from papermind.vault import compute_sha256

from .base import PollingWatcher

logger = get_logger("watchers.consume")

CLAIM_SUFFIX = ".processing"


def ingest_key_for(data: bytes) -> str:
    return f"sha256:{compute_sha256(data)}"


class ConsumeWatcher(PollingWatcher):
    """
    Args:
        consume_dir: Directory to poll.
        interval_seconds: Pause between two scans.
        max_attempts: Retry bound for transient pipeline failures.
    """

    name = "consume watcher"

    def __init__(
        self,
        consume_dir: Union[str, Path],
        pipeline: PipelineProcessor,
        ingest: IngestRepository,
        interval_seconds: float = 30,
        max_attempts: int = 3,
    ) -> None:
        super().__init__()
        self.consume_dir = Path(consume_dir)
        self.consume_dir.mkdir(parents=True, exist_ok=True)
        self.pipeline = pipeline
        self.ingest = ingest
        self.interval_seconds = interval_seconds
        self.max_attempts = max_attempts

    def interval(self) -> float:
        return self.interval_seconds

    def start(self) -> None:
        self.recover_claimed()
        super().start()

    def candidates(self) -> List[Path]:
        """Supported, visible, unclaimed files in scan order."""
        found = []
        for path in sorted(self.consume_dir.iterdir()):
            if not path.is_file() or path.name.startswith("."):
                continue
            if path.name.endswith(CLAIM_SUFFIX) or mime_for(path.name) is None:
                continue
            found.append(path)
        return found

    def scan_once(self) -> int:
        ingested = 0
        for path in self.candidates():
            if self._consume(path):
                ingested += 1
        self.pipeline.requeue_unfinished(self.max_attempts)
        if ingested:
            logger.info(f"Consumed {ingested} file(s) from {self.consume_dir}")
        return ingested

    def _consume(self, path: Path) -> bool:
        claimed = path.with_name(path.name + CLAIM_SUFFIX)
        try:
            path.rename(claimed)
        except OSError:
            # Another instance took it
            logger.debug(f"Could not claim {path.name}, skipping")
            return False

        try:
            data = claimed.read_bytes()
            key = ingest_key_for(data)
            if self.ingest.seen(key):
                logger.info(f"Duplicate file {path.name} ({key}) removed")
                claimed.unlink()
                return False
            try:
                doc = self.pipeline.ingest_bytes(
                    data, path.name, DocumentSource.CONSUME, ingest_key=key, process=False
                )
            except ConflictError as e:
                logger.info(f"Duplicate file {path.name} removed: {e}")
                self.ingest.mark(IngestKey(key=key, source=DocumentSource.CONSUME))
                claimed.unlink()
                return False
        except Exception as e:
            logger.error(f"Failed to ingest {path.name}, will retry: {e}")
            self._unclaim(claimed, path)
            return False

        claimed.unlink()
        self.pipeline.submit(doc.id)
        return True

    def _unclaim(self, claimed: Path, original: Path) -> None:
        try:
            claimed.rename(original)
        except OSError as e:
            logger.error(f"Could not restore {original.name}: {e}")

    def recover_claimed(self) -> int:
        """Renames files left claimed by an interrupted run back for a new scan."""
        restored = 0
        for path in self.consume_dir.glob(f"*{CLAIM_SUFFIX}"):
            original = path.with_name(path.name[: -len(CLAIM_SUFFIX)])
            if original.exists():
                continue
            self._unclaim(path, original)
            restored += 1
        if restored:
            logger.info(f"Recovered {restored} claimed file(s) in {self.consume_dir}")
        return restored
