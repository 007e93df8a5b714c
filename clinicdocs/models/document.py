from __future__ import annotations
import enum
from datetime import datetime, timezone
from typing import ClassVar, Optional
from sqlalchemy import String, Text, DateTime, Enum, ForeignKey, Integer, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, declared_attr
from clinicdocs.core.db import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class DocumentKind(str, enum.Enum):
    prescription = "prescription"
    certificate = "certificate"


class DocumentStatus(str, enum.Enum):
    """Stored status. ``expired`` is never written, see services.lifecycle."""
    active = "active"
    dispensed = "dispensed"
    cancelled = "cancelled"


class IssuableDocumentMixin:
    """Columns shared by every issued document (prescriptions and certificates)."""

    kind: ClassVar[DocumentKind]  # lo define cada subclase

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    document_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    verification_code: Mapped[str] = mapped_column(String(16), unique=True, nullable=False)

    patient_id: Mapped[str] = mapped_column(String(36), ForeignKey("patients.id"), index=True)
    doctor_id: Mapped[str] = mapped_column(String(36), ForeignKey("doctors.id"), index=True)
    appointment_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("appointments.id"), default=None)

    issued_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    valid_from: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    valid_until: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    status: Mapped[DocumentStatus] = mapped_column(
        Enum(DocumentStatus), nullable=False, default=DocumentStatus.active, index=True
    )

    # derivados: se pueden regenerar desde document_number + verification_code
    qr_payload: Mapped[Optional[str]] = mapped_column(Text, default=None)
    qr_code: Mapped[Optional[str]] = mapped_column(Text, default=None)

    cancelled_reason: Mapped[Optional[str]] = mapped_column(Text, default=None)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)
    cancelled_by: Mapped[Optional[str]] = mapped_column(String(36), default=None)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)

    @declared_attr.directive
    def __table_args__(cls):
        return (Index(f"ix_{cls.__tablename__}_number_code", "document_number", "verification_code"),)


class DocumentSequence(Base):
    """Per-kind, per-year counter behind the document number."""
    __tablename__ = "document_sequences"

    kind: Mapped[DocumentKind] = mapped_column(Enum(DocumentKind), primary_key=True)
    year: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class VerificationCode(Base):
    """Codes of every issued document, whatever its kind.

    The primary key keeps a code unique across prescriptions and certificates;
    a code-only lookup resolves here to the owning table.
    """
    __tablename__ = "verification_codes"

    code: Mapped[str] = mapped_column(String(16), primary_key=True)
    kind: Mapped[DocumentKind] = mapped_column(Enum(DocumentKind), nullable=False)
    document_id: Mapped[str] = mapped_column(String(36), nullable=False)

    __table_args__ = (UniqueConstraint("kind", "document_id", name="uq_verification_codes_document"),)
