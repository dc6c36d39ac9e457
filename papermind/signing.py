"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/signing.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Signature management, one-time signing tokens and the
                signing operation that writes a new archive version.
------------------------------------------------------------------------------
"""

import base64
import binascii
import io
import re
import secrets
from datetime import timedelta
from typing import List, Optional, Tuple, Union

from PIL import Image, UnidentifiedImageError
from pydantic import ValidationError as PydanticValidationError

from papermind.compositor import SignatureCompositor
from papermind.errors import ConflictError, NotFoundError, ValidationError
from papermind.logger import get_logger
from papermind.models import (
    DocumentPatch,
    PlacementRect,
    Signature,
    SigningToken,
    TokenState,
    TokenStatus,
    utc_now,
)
from papermind.repositories import DocumentRepository, SignatureRepository
from papermind.vault import DocumentVault

logger = get_logger("signing")

DATA_URL_RE = re.compile(r"^data:image/[\w.+-]+;base64,(?P<data>.+)$", re.DOTALL)
MAX_SIGNATURE_BYTES = 5 * 1024 * 1024


def decode_signature_image(image: Union[bytes, str]) -> Tuple[bytes, int, int]:
    """
    Accepts PNG bytes or a base64 data URL and returns normalized PNG
    bytes with their pixel size.

    Raises:
        ValidationError: If the payload is not a readable image.
    """
    if isinstance(image, str):
        match = DATA_URL_RE.match(image.strip())
        if not match:
            raise ValidationError("Signature must be a base64 image data URL")
        try:
            image = base64.b64decode(match.group("data"), validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationError(f"Invalid base64 signature data: {e}") from e

    if not image:
        raise ValidationError("Signature image is empty")
    if len(image) > MAX_SIGNATURE_BYTES:
        raise ValidationError("Signature image is too large")

    try:
        with Image.open(io.BytesIO(image)) as img:
            rgba = img.convert("RGBA")
    except (UnidentifiedImageError, OSError) as e:
        raise ValidationError(f"Unreadable signature image: {e}") from e

    buf = io.BytesIO()
    rgba.save(buf, format="PNG")
    return buf.getvalue(), rgba.width, rgba.height


class SigningService:
    """Places stored signatures on documents and manages signing tokens."""

    def __init__(
        self,
        documents: DocumentRepository,
        signatures: SignatureRepository,
        vault: DocumentVault,
        compositor: Optional[SignatureCompositor] = None,
        stale_claim_minutes: int = 30,
    ) -> None:
        self.documents = documents
        self.signatures = signatures
        self.vault = vault
        self.compositor = compositor or SignatureCompositor()
        self.stale_claim_minutes = stale_claim_minutes

    def sign(
        self,
        document_id: str,
        signature_id: str,
        page: int,
        rect: Union[PlacementRect, dict],
    ) -> str:
        """
        Overlays a signature on the current PDF of a document and stores the
        result as its archive version.

        Returns:
            The relative vault path of the new archive file.

        Raises:
            ConflictError: A pipeline run or another signing holds the document.
        """
        if page < 1:
            raise ValidationError(f"Page must be >= 1, got {page}")
        if not isinstance(rect, PlacementRect):
            try:
                rect = PlacementRect(**rect)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid placement rectangle: {e}") from e

        doc = self.documents.require(document_id)
        signature = self.signatures.get(signature_id)
        if signature is None:
            raise NotFoundError(f"Signature not found: {signature_id}")
        if doc.archive_file is None and doc.mime_type != "application/pdf":
            raise ValidationError(f"Document {document_id} has no PDF version yet")

        # The processing claim serializes read-compose-write on the archive
        stale_before = utc_now() - timedelta(minutes=self.stale_claim_minutes)
        if not self.documents.claim(doc.id, stale_before):
            raise ConflictError(f"Document {document_id} is being processed or signed")
        try:
            current = self.documents.require(doc.id)
            pdf_bytes = self.vault.read(current.current_file)
            image_bytes = self.vault.read(signature.image_file)
            signed = self.compositor.apply_signature(pdf_bytes, page, image_bytes, rect, signature_id=signature.id)

            archive_file = self.vault.store_archive(doc.id, signed)
            if not self.documents.update(doc.id, DocumentPatch(archive_file=archive_file)):
                raise NotFoundError(f"Document not found: {document_id}")
        finally:
            self.documents.release(doc.id)
        logger.info(f"Signed document {document_id} on page {page} with {signature.name!r}")
        return archive_file

    # --- Signatures ---

    def create_signature(self, name: str, image: Union[bytes, str]) -> Signature:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Signature name must not be empty")
        png, width, height = decode_signature_image(image)
        return self._store_signature(name, png, width, height)

    def _store_signature(self, name: str, png: bytes, width: int, height: int) -> Signature:
        signature = Signature(name=name, image_file="", width=width, height=height)
        signature.image_file = self.vault.store_signature(signature.id, png)
        try:
            self.signatures.upsert(signature)
        except Exception:
            self.vault.delete(signature.image_file)
            raise
        return signature

    def list_signatures(self) -> List[Signature]:
        return self.signatures.list_all()

    def delete_signature(self, signature_id: str) -> None:
        signature = self.signatures.get(signature_id)
        if signature is None:
            raise NotFoundError(f"Signature not found: {signature_id}")
        self.signatures.delete(signature_id)
        self.vault.delete(signature.image_file)
        logger.info(f"Deleted signature {signature_id}")

    # --- Tokens ---

    def create_token(self, signer_name: Optional[str] = None, ttl_hours: int = 24) -> SigningToken:
        if ttl_hours <= 0:
            raise ValidationError("ttl_hours must be positive")
        token = SigningToken(
            token=secrets.token_urlsafe(32),
            signer_name=(signer_name or "").strip() or None,
            expires_at=utc_now() + timedelta(hours=ttl_hours),
        )
        self.signatures.create_token(token)
        logger.info(f"Issued signing token for {token.signer_name or 'anonymous signer'}, valid {ttl_hours}h")
        return token

    def validate_token(self, token: str) -> TokenStatus:
        record = self.signatures.get_token(token) if token else None
        if record is None:
            return TokenStatus(state=TokenState.NOT_FOUND)
        if record.used_at is not None:
            state = TokenState.USED
        elif record.is_expired():
            state = TokenState.EXPIRED
        else:
            state = TokenState.VALID
        return TokenStatus(state=state, signer_name=record.signer_name, expires_at=record.expires_at)

    def complete_token(self, token: str, image: Union[bytes, str], name: Optional[str] = None) -> Signature:
        """
        Consumes a token and stores the submitted signature.

        Raises:
            NotFoundError: Unknown token.
            ConflictError: Token already used or expired.
            ValidationError: Unreadable image.
        """
        png, width, height = decode_signature_image(image)

        with self.signatures.db.transaction():
            record = self.signatures.get_token(token)
            if record is None:
                raise NotFoundError("Signing token not found")
            now = utc_now()
            if record.used_at is not None:
                raise ConflictError("Signing token was already used")
            if record.is_expired(now):
                raise ConflictError("Signing token has expired")
            if not self.signatures.consume_token(token, now):
                raise ConflictError("Signing token is no longer valid")

            signature = self._store_signature(name or record.signer_name or "Signature", png, width, height)
            self.signatures.bind_token(token, signature.id)

        logger.info(f"Signing token completed, signature {signature.id}")
        return signature
