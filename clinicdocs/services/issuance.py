"""
Issuance of prescriptions and medical certificates.

Both kinds go through :func:`issue`: check the parties, compute the validity
window, reserve identifiers, render the verification payload and persist the
document in ``active`` status with a single commit. Each attempt runs in a
savepoint; a unique-constraint violation (verification code already taken by
any document, see ``verification_codes``) rolls back only that attempt,
returning the reserved sequence number, and retries with a fresh code.
"""
import logging
import uuid
from collections.abc import Callable
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdocs.core.config import settings
from clinicdocs.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from clinicdocs.core.logging import mask_code
from clinicdocs.models import DOCUMENT_MODELS, IssuableDocument
from clinicdocs.models.appointment import Appointment
from clinicdocs.models.certificate import Certificate
from clinicdocs.models.doctor import Doctor
from clinicdocs.models.document import DocumentKind, DocumentStatus, VerificationCode
from clinicdocs.models.patient import Patient
from clinicdocs.models.prescription import Prescription, PrescriptionItem
from clinicdocs.models.user import RoleEnum
from clinicdocs.schemas.certificate import CertificateCreate
from clinicdocs.schemas.prescription import PrescriptionCreate
from clinicdocs.services import codec
from clinicdocs.services.actor import Actor
from clinicdocs.services.identifiers import next_document_number, next_verification_code
from clinicdocs.services.lifecycle import utcnow

logger = logging.getLogger(__name__)

Window = tuple[datetime, datetime]


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


async def _check_parties(
    db: AsyncSession,
    patient_id: str,
    doctor_id: str,
    appointment_id: str | None,
    actor: Actor | None,
) -> str:
    """Validate patient, doctor and appointment; return the patient's display name."""
    patient_name = await db.scalar(select(Patient.name).where(Patient.id == patient_id))
    if patient_name is None:
        raise NotFoundError("Patient not found")

    doctor = (await db.execute(
        select(Doctor.id, Doctor.user_id).where(Doctor.id == doctor_id)
    )).one_or_none()
    if doctor is None:
        raise NotFoundError("Doctor not found")

    # un médico sólo firma a su nombre; admin puede emitir por cualquiera
    if actor is not None and actor.role == RoleEnum.doctor and doctor.user_id != actor.user_id:
        raise ForbiddenError("Doctors can only issue documents in their own name")

    if appointment_id:
        appt_patient = await db.scalar(
            select(Appointment.patient_id).where(Appointment.id == appointment_id)
        )
        if appt_patient is None:
            raise ValidationError("Appointment not found")
        if appt_patient != patient_id:
            raise ValidationError("Appointment does not belong to the patient")

    return patient_name


async def issue(
    db: AsyncSession,
    kind: DocumentKind,
    *,
    patient_id: str,
    doctor_id: str,
    appointment_id: str | None,
    window: Callable[[datetime], Window],
    build: Callable[[], IssuableDocument],
    actor: Actor | None = None,
    now: datetime | None = None,
) -> IssuableDocument:
    """Create a document of ``kind``.

    ``window`` maps the issue timestamp to ``(valid_from, valid_until)`` and
    ``build`` returns a fresh, unsaved instance holding the kind-specific
    payload; the common fields are filled in here.
    """
    issued_at = (now or utcnow()).replace(microsecond=0)
    patient_name = await _check_parties(db, patient_id, doctor_id, appointment_id, actor)

    valid_from, valid_until = window(issued_at)
    if valid_from > valid_until:
        raise ValidationError("valid_from must not be after valid_until")

    max_attempts = settings.VERIFY_CODE_MAX_ATTEMPTS
    for attempt in range(1, max_attempts + 1):
        doc = build()
        if not isinstance(doc, DOCUMENT_MODELS[kind]):
            raise TypeError(f"build() returned {type(doc).__name__} for {kind.value}")

        doc.id = str(uuid.uuid4())
        code = next_verification_code(kind)
        doc.verification_code = code
        doc.patient_id = patient_id
        doc.doctor_id = doctor_id
        doc.appointment_id = appointment_id
        doc.issued_at = issued_at
        doc.valid_from = valid_from
        doc.valid_until = valid_until
        doc.status = DocumentStatus.active
        try:
            # un savepoint por intento: si choca, sólo se deshace este intento
            async with db.begin_nested():
                doc.document_number = await next_document_number(db, kind, issued_at.year)
                doc.qr_payload = codec.encode(doc, patient_name)
                doc.qr_code = codec.render_qr(doc.qr_payload)
                db.add(doc)
                db.add(VerificationCode(code=code, kind=kind, document_id=doc.id))
                await db.flush()
        except IntegrityError:
            logger.warning(
                "Identifier collision issuing %s (code %s, attempt %d/%d)",
                kind.value, mask_code(code), attempt, max_attempts,
            )
            continue

        await db.commit()
        logger.info("Issued %s %s for patient %s", kind.value, doc.document_number, patient_id)
        return doc

    await db.rollback()
    logger.error("Gave up issuing %s after %d identifier collisions", kind.value, max_attempts)
    raise ConflictError(f"Could not assign unique identifiers to the {kind.value}")


async def issue_prescription(
    db: AsyncSession,
    data: PrescriptionCreate,
    actor: Actor | None = None,
    now: datetime | None = None,
) -> Prescription:
    if not data.medications:
        raise ValidationError("At least one medication is required")

    def window(issued_at: datetime) -> Window:
        if data.valid_until is not None:
            return issued_at, _naive_utc(data.valid_until)
        return issued_at, issued_at + timedelta(days=settings.PRESCRIPTION_VALID_DAYS)

    def build() -> Prescription:
        return Prescription(
            diagnosis=data.diagnosis,
            instructions=data.instructions,
            notes=data.notes,
            items=[
                PrescriptionItem(
                    position=idx,
                    drug=it.drug,
                    dose=it.dose,
                    frequency=it.frequency,
                    duration=it.duration,
                    notes=it.notes,
                )
                for idx, it in enumerate(data.medications)
            ],
        )

    return await issue(
        db, DocumentKind.prescription,
        patient_id=data.patient_id, doctor_id=data.doctor_id, appointment_id=data.appointment_id,
        window=window, build=build, actor=actor, now=now,
    )


def certificate_dates(data: CertificateCreate, issued_on: date) -> tuple[date, date]:
    """Start and end date of a certificate; the end date is inclusive."""
    start = data.start_date or issued_on
    if data.auto_calculate_end_date:
        return start, start + timedelta(days=data.rest_days)
    if data.end_date is None:
        raise ValidationError("end_date is required unless auto_calculate_end_date is set")
    return start, data.end_date


async def issue_certificate(
    db: AsyncSession,
    data: CertificateCreate,
    actor: Actor | None = None,
    now: datetime | None = None,
) -> Certificate:
    issued_on = (now or utcnow()).date()
    start, end = certificate_dates(data, issued_on)

    def window(issued_at: datetime) -> Window:
        return datetime.combine(start, time.min), datetime.combine(end, time(23, 59, 59))

    def build() -> Certificate:
        return Certificate(
            certificate_type=data.certificate_type,
            diagnosis=data.diagnosis,
            rest_days=data.rest_days,
            start_date=start,
            end_date=end,
            observations=data.observations,
            restrictions=data.restrictions,
        )

    return await issue(
        db, DocumentKind.certificate,
        patient_id=data.patient_id, doctor_id=data.doctor_id, appointment_id=data.appointment_id,
        window=window, build=build, actor=actor, now=now,
    )
