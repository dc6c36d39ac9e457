"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/vault.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Manages physical storage of document files. Originals are
                content-addressed by sha256, derived files (archive,
                thumbnails, signatures) are addressed by entity id. All
                writes are durable (temp file, fsync, atomic replace).
------------------------------------------------------------------------------
"""

import hashlib
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from papermind.errors import NotFoundError, ValidationError
from papermind.logger import get_logger

logger = get_logger("vault")

ORIGINALS = "originals"
ARCHIVE = "archive"
THUMBNAILS = "thumbnails"
SIGNATURES = "signatures"
CONSUME = "consume"


def compute_sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


@dataclass
class StoredFile:
    path: str  # relative to the vault root
    checksum: str
    size: int


class DocumentVault:
    """
    Manages the physical storage of document files.
    Paths handed out are relative to the vault root.
    """

    def __init__(self, base_path: Union[str, Path] = "data") -> None:
        """
        Initializes the DocumentVault.

        Args:
            base_path: The data directory. Subfolders are created on demand.
        """
        self.base_path: Path = Path(base_path).absolute()
        for sub in (ORIGINALS, ARCHIVE, THUMBNAILS, SIGNATURES, CONSUME):
            (self.base_path / sub).mkdir(parents=True, exist_ok=True)

    @property
    def consume_dir(self) -> Path:
        return self.base_path / CONSUME

    def resolve(self, relative: str) -> Path:
        """
        Returns the absolute path for a stored file.

        Raises:
            ValidationError: If the path escapes the vault (traversal).
        """
        path = (self.base_path / relative).resolve()
        if not path.is_relative_to(self.base_path.resolve()):
            raise ValidationError(f"Path outside of vault: {relative}")
        return path

    def write(self, relative: str, data: bytes) -> str:
        """
        Durably writes bytes to a vault path, replacing any previous file.

        Returns:
            The relative path.
        """
        target = self.resolve(relative)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(target.parent), prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, target)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        return relative

    def read(self, relative: str) -> bytes:
        path = self.resolve(relative)
        if not path.is_file():
            raise NotFoundError(f"File not found in vault: {relative}")
        return path.read_bytes()

    def exists(self, relative: str) -> bool:
        return self.resolve(relative).is_file()

    def delete(self, relative: str) -> bool:
        path = self.resolve(relative)
        if not path.exists():
            return False
        path.unlink()
        return True

    # --- Typed helpers ---

    def store_original(self, data: bytes, extension: str) -> StoredFile:
        """
        Stores an intake artifact under its content hash. Identical content
        maps to the same file, so a repeated write is harmless.
        """
        checksum = compute_sha256(data)
        ext = extension.lower().lstrip(".") or "bin"
        relative = f"{ORIGINALS}/{checksum}.{ext}"
        if not self.exists(relative):
            self.write(relative, data)
            logger.debug(f"Stored original {relative} ({len(data)} bytes)")
        return StoredFile(path=relative, checksum=checksum, size=len(data))

    def store_archive(self, document_id: str, data: bytes) -> str:
        return self.write(f"{ARCHIVE}/{document_id}.pdf", data)

    def store_thumbnail(self, document_id: str, data: bytes) -> str:
        return self.write(f"{THUMBNAILS}/{document_id}.webp", data)

    def store_signature(self, signature_id: str, data: bytes) -> str:
        return self.write(f"{SIGNATURES}/{signature_id}.png", data)
