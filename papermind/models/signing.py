"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/models/signing.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Signatures, one-time signing tokens and placement rectangles.
------------------------------------------------------------------------------
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import Field, model_validator

from .base import PaperModel, new_id, parse_ts, utc_now


class Signature(PaperModel):
    id: str = Field(default_factory=new_id)
    name: str
    image_file: str
    width: int
    height: int
    created_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_row(cls, row: Any) -> "Signature":
        return cls(
            id=row["id"],
            name=row["name"],
            image_file=row["image_file"],
            width=row["width"],
            height=row["height"],
            created_at=parse_ts(row["created_at"]),
        )


class SigningToken(PaperModel):
    token: str
    signer_name: Optional[str] = None
    expires_at: datetime
    used_at: Optional[datetime] = None
    signature_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utc_now()) >= self.expires_at

    @classmethod
    def from_row(cls, row: Any) -> "SigningToken":
        return cls(
            token=row["token"],
            signer_name=row["signer_name"],
            expires_at=parse_ts(row["expires_at"]),
            used_at=parse_ts(row["used_at"]),
            signature_id=row["signature_id"],
            created_at=parse_ts(row["created_at"]),
        )


class TokenState(str, Enum):
    VALID = "valid"
    EXPIRED = "expired"
    USED = "used"
    NOT_FOUND = "not_found"


class TokenStatus(PaperModel):
    state: TokenState
    signer_name: Optional[str] = None
    expires_at: Optional[datetime] = None

    @property
    def valid(self) -> bool:
        return self.state == TokenState.VALID


class PlacementRect(PaperModel):
    """
    Signature placement as fractions of the page, top-left origin.
    """

    x: float = Field(ge=0.0, le=1.0)
    y: float = Field(ge=0.0, le=1.0)
    width: float = Field(gt=0.0, le=1.0)
    height: float = Field(gt=0.0, le=1.0)

    @model_validator(mode="after")
    def inside_page(self) -> "PlacementRect":
        # small tolerance for float noise from client-side drag handles
        if self.x + self.width > 1.0 + 1e-6 or self.y + self.height > 1.0 + 1e-6:
            raise ValueError("placement rectangle exceeds the page")
        return self


class PdfRect(PaperModel):
    """Rectangle in PDF user space, bottom-left origin."""

    x: float
    y: float
    width: float
    height: float
