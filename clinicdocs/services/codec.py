"""
Verification payload embedded in the QR printed on every document.

The payload carries only what is needed to look the document up again: kind,
number, verification code, a one-way hash of the patient's display name and the
issue timestamp. Clinical content never goes into it. It travels as a compact
HS256 JWT signed with ``DOCUMENT_SIGNING_KEY``, which makes printed copies
tamper-evident; the verifier still resolves the canonical record from the store
before answering.
"""
import base64
import hashlib
from datetime import datetime
from io import BytesIO

import qrcode
from jose import jwt, JWTError

from clinicdocs.core.config import settings
from clinicdocs.core.errors import ValidationError
from clinicdocs.models import IssuableDocument
from clinicdocs.models.document import DocumentKind

PAYLOAD_VERSION = 1
PAYLOAD_ALGORITHM = "HS256"
REQUIRED_FIELDS = ("v", "kind", "document_number", "verification_code", "subject", "issued_at")


def subject_hash(name: str) -> str:
    normalized = " ".join(name.split()).casefold()
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:16]


def build_payload(
    kind: DocumentKind,
    document_number: str,
    verification_code: str,
    subject_name: str,
    issued_at: datetime,
) -> dict:
    return {
        "v": PAYLOAD_VERSION,
        "kind": kind.value,
        "document_number": document_number,
        "verification_code": verification_code,
        "subject": subject_hash(subject_name),
        "issued_at": issued_at.replace(microsecond=0).isoformat(),
    }


def encode(document: IssuableDocument, subject_name: str, key: str | None = None) -> str:
    payload = build_payload(
        document.kind,
        document.document_number,
        document.verification_code,
        subject_name,
        document.issued_at,
    )
    return jwt.encode(payload, key or settings.DOCUMENT_SIGNING_KEY, algorithm=PAYLOAD_ALGORITHM)


def decode(text: str, key: str | None = None) -> dict:
    """Parse a scanned payload and check its signature.

    Raises ValidationError for anything malformed or tampered with.
    """
    try:
        payload = jwt.decode(text, key or settings.DOCUMENT_SIGNING_KEY, algorithms=[PAYLOAD_ALGORITHM])
    except JWTError:
        raise ValidationError("invalid verification payload")

    if any(f not in payload for f in REQUIRED_FIELDS) or payload["v"] != PAYLOAD_VERSION:
        raise ValidationError("invalid verification payload")
    return payload


def render_qr(text: str) -> str:
    """PNG data URI of ``text``."""
    img = qrcode.make(text)
    buf = BytesIO()
    img.save(buf, "PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")
