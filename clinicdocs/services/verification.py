"""
Public verification and terminal transitions.

``verify`` is read-only and answers from the canonical row only, never from
data supplied by the caller. ``dispense`` and ``cancel`` are single conditional
updates keyed on the expected prior state, so two concurrent requests against
the same document cannot both succeed.
"""
import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdocs.core.errors import ConflictError, NotFoundError, ValidationError
from clinicdocs.core.logging import mask_code
from clinicdocs.models import DOCUMENT_MODELS, IssuableDocument
from clinicdocs.models.certificate import Certificate
from clinicdocs.models.doctor import Doctor
from clinicdocs.models.document import DocumentKind, VerificationCode
from clinicdocs.models.patient import Patient
from clinicdocs.models.prescription import Prescription
from clinicdocs.schemas.verification import VerificationData, VerificationResult
from clinicdocs.services import codec
from clinicdocs.services.actor import Actor
from clinicdocs.services.identifiers import is_well_formed_code, parse_document_number
from clinicdocs.services.lifecycle import (
    EffectiveStatus, Event, effective_status, ensure_can_cancel, ensure_can_dispense, target_status,
    transition_guard, utcnow,
)

logger = logging.getLogger(__name__)

GUARDS = {Event.dispense: ensure_can_dispense, Event.cancel: ensure_can_cancel}


async def find_document(
    db: AsyncSession,
    document_number: str | None = None,
    verification_code: str | None = None,
) -> IssuableDocument | None:
    number = (document_number or "").strip().upper() or None
    code = (verification_code or "").strip().upper() or None
    if not number and not code:
        raise ValidationError("document_number or verification_code is required")
    if code and not is_well_formed_code(code):
        return None

    if number:
        try:
            kind, _, _ = parse_document_number(number)
        except ValidationError:
            return None
        model = DOCUMENT_MODELS[kind]
        q = select(model).where(model.document_number == number)
        if code:
            q = q.where(model.verification_code == code)
        return (await db.execute(q)).scalar_one_or_none()

    # sólo código: el registro común dice de qué tabla es
    owner = (await db.execute(
        select(VerificationCode.kind, VerificationCode.document_id).where(VerificationCode.code == code)
    )).one_or_none()
    if owner is None:
        return None
    return await db.get(DOCUMENT_MODELS[owner.kind], owner.document_id)


async def _projection(db: AsyncSession, doc: IssuableDocument, status: EffectiveStatus) -> VerificationData:
    patient_name = await db.scalar(select(Patient.name).where(Patient.id == doc.patient_id))
    doctor = (await db.execute(
        select(Doctor.name, Doctor.license, Doctor.specialty).where(Doctor.id == doc.doctor_id)
    )).one_or_none()
    return VerificationData(
        kind=doc.kind,
        document_number=doc.document_number,
        patient_name=patient_name or "",
        doctor_name=doctor.name if doctor else "",
        doctor_license=doctor.license if doctor else None,
        doctor_specialty=doctor.specialty if doctor else None,
        certificate_type=doc.certificate_type if isinstance(doc, Certificate) else None,
        issued_at=doc.issued_at,
        valid_from=doc.valid_from,
        valid_until=doc.valid_until,
        status=status,
    )


async def verify(
    db: AsyncSession,
    document_number: str | None = None,
    verification_code: str | None = None,
    now: datetime | None = None,
) -> VerificationResult:
    doc = await find_document(db, document_number, verification_code)
    if doc is None:
        logger.info("Verification miss (number=%s, code=%s)", document_number or "-", mask_code(verification_code))
        return VerificationResult(found=False, verified=False)

    status = effective_status(doc, now)
    verified = status == EffectiveStatus.active
    logger.info("Verified %s: status=%s verified=%s", doc.document_number, status.value, verified)
    return VerificationResult(found=True, verified=verified, data=await _projection(db, doc, status))


async def verify_payload(db: AsyncSession, text: str, now: datetime | None = None) -> VerificationResult:
    """Verify a scanned QR payload: signature first, then a normal lookup."""
    payload = codec.decode(text)
    return await verify(db, payload["document_number"], payload["verification_code"], now)


async def _transition(
    db: AsyncSession,
    model: type[IssuableDocument],
    document_id: str,
    event: Event,
    values: dict,
    now: datetime,
) -> IssuableDocument:
    target = target_status(model.kind, event)
    res = await db.execute(
        update(model)
        .where(model.id == document_id, transition_guard(model, now))
        .values(status=target, **values)
        .execution_options(synchronize_session=False)
    )
    # con 0 filas no hay nada que deshacer; commit no expira lo ya cargado en la sesión
    await db.commit()
    if res.rowcount != 1:
        doc = await db.get(model, document_id, populate_existing=True)
        if doc is None:
            raise NotFoundError(f"{model.kind.value.capitalize()} not found")
        GUARDS[event](doc, now)
        # el guard pasa ahora pero el UPDATE no: otro request ganó la carrera
        raise ConflictError("Document was modified concurrently")

    doc = await db.get(model, document_id, populate_existing=True)
    logger.info("%s %s -> %s", model.kind.value, doc.document_number, target.value)
    return doc


async def dispense(
    db: AsyncSession,
    prescription_id: str,
    pharmacy: str,
    notes: str | None = None,
    now: datetime | None = None,
) -> Prescription:
    now = now or utcnow()
    return await _transition(
        db, Prescription, prescription_id, Event.dispense,
        {"dispensed_by": pharmacy, "dispensed_at": now, "dispense_notes": notes},
        now,
    )


async def cancel(
    db: AsyncSession,
    kind: DocumentKind,
    document_id: str,
    reason: str | None = None,
    actor: Actor | None = None,
    now: datetime | None = None,
) -> IssuableDocument:
    now = now or utcnow()
    return await _transition(
        db, DOCUMENT_MODELS[kind], document_id, Event.cancel,
        {
            "cancelled_reason": reason or "Cancelled by issuer",
            "cancelled_at": now,
            "cancelled_by": actor.user_id if actor else None,
        },
        now,
    )
