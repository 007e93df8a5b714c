"""Privileged read side: detail, filtered listing and per-kind stats."""
from datetime import date, datetime, time, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdocs.core.errors import NotFoundError
from clinicdocs.models import DOCUMENT_MODELS, IssuableDocument
from clinicdocs.models.certificate import Certificate, CertificateType
from clinicdocs.models.doctor import Doctor
from clinicdocs.models.document import DocumentKind
from clinicdocs.schemas.document import DocumentStats
from clinicdocs.services.lifecycle import EffectiveStatus, status_filter, utcnow

RECENT_DAYS = 30


async def doctor_snapshot(db: AsyncSession, doctor_id: str) -> dict:
    doc = (await db.execute(select(Doctor).where(Doctor.id == doctor_id))).scalar_one_or_none()
    if not doc:
        return {}
    return {
        "id": doc.id,
        "name": doc.name,
        "license": doc.license,
        "specialty": doc.specialty,
    }


async def get_document(db: AsyncSession, kind: DocumentKind, document_id: str) -> IssuableDocument:
    model = DOCUMENT_MODELS[kind]
    doc = (await db.execute(select(model).where(model.id == document_id))).scalar_one_or_none()
    if not doc:
        raise NotFoundError(f"{kind.value.capitalize()} not found")
    return doc


async def list_documents(
    db: AsyncSession,
    kind: DocumentKind,
    *,
    status: EffectiveStatus | None = None,
    patient_id: str | None = None,
    doctor_id: str | None = None,
    certificate_type: CertificateType | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    limit: int = 50,
    offset: int = 0,
    now: datetime | None = None,
) -> list[IssuableDocument]:
    model = DOCUMENT_MODELS[kind]
    now = now or utcnow()

    q = select(model).order_by(model.issued_at.desc(), model.document_number.desc())
    if status:
        q = q.where(status_filter(model, status, now))
    if patient_id:
        q = q.where(model.patient_id == patient_id)
    if doctor_id:
        q = q.where(model.doctor_id == doctor_id)
    if certificate_type and model is Certificate:
        q = q.where(Certificate.certificate_type == certificate_type)
    if date_from:
        q = q.where(model.issued_at >= datetime.combine(date_from, time.min))
    if date_to:
        # date_to inclusivo
        q = q.where(model.issued_at < datetime.combine(date_to + timedelta(days=1), time.min))

    return list((await db.execute(q.offset(offset).limit(limit))).scalars().unique())


async def document_stats(db: AsyncSession, kind: DocumentKind, now: datetime | None = None) -> DocumentStats:
    model = DOCUMENT_MODELS[kind]
    now = now or utcnow()

    async def count(*where) -> int:
        q = select(func.count()).select_from(model)
        if where:
            q = q.where(*where)
        return await db.scalar(q) or 0

    counts = {s.value: await count(status_filter(model, s, now)) for s in EffectiveStatus}
    return DocumentStats(
        total=await count(),
        recent=await count(model.issued_at >= now - timedelta(days=RECENT_DAYS)),
        **counts,
    )
