from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import date

from clinicdocs.api.deps import DISPENSERS, ISSUERS, require_roles
from clinicdocs.core.db import get_db
from clinicdocs.models.document import DocumentKind
from clinicdocs.models.prescription import Prescription
from clinicdocs.schemas.document import CancelIn, DocumentStats
from clinicdocs.schemas.prescription import DispenseIn, PrescriptionCreate, PrescriptionOut
from clinicdocs.services import issuance, queries, verification
from clinicdocs.services.actor import Actor
from clinicdocs.services.lifecycle import EffectiveStatus, effective_status

router = APIRouter(prefix="/prescriptions", tags=["Prescriptions"])

async def _out(db: AsyncSession, rx: Prescription) -> PrescriptionOut:
    out = PrescriptionOut.model_validate(rx, from_attributes=True)
    out.effective_status = effective_status(rx)
    out.doctor = await queries.doctor_snapshot(db, rx.doctor_id)
    return out

@router.post("", response_model=PrescriptionOut, status_code=201)
async def create_prescription(
    payload: PrescriptionCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_roles(*ISSUERS)),
):
    rx = await issuance.issue_prescription(db, payload, actor)
    return await _out(db, rx)

@router.get("", response_model=List[PrescriptionOut])
async def list_prescriptions(
    db: AsyncSession = Depends(get_db),
    _: Actor = Depends(require_roles(*DISPENSERS)),
    status: Optional[EffectiveStatus] = None,
    patient_id: Optional[str] = None,
    doctor_id: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    rows = await queries.list_documents(
        db, DocumentKind.prescription,
        status=status, patient_id=patient_id, doctor_id=doctor_id,
        date_from=date_from, date_to=date_to, limit=limit, offset=offset,
    )
    return [await _out(db, rx) for rx in rows]

@router.get("/stats", response_model=DocumentStats)
async def prescription_stats(
    db: AsyncSession = Depends(get_db),
    _: Actor = Depends(require_roles(*ISSUERS)),
):
    return await queries.document_stats(db, DocumentKind.prescription)

@router.get("/{rx_id}", response_model=PrescriptionOut)
async def get_prescription(
    rx_id: str,
    db: AsyncSession = Depends(get_db),
    _: Actor = Depends(require_roles(*DISPENSERS)),
):
    rx = await queries.get_document(db, DocumentKind.prescription, rx_id)
    return await _out(db, rx)

@router.put("/{rx_id}/dispense", response_model=PrescriptionOut)
async def dispense_prescription(
    rx_id: str,
    body: DispenseIn,
    db: AsyncSession = Depends(get_db),
    _: Actor = Depends(require_roles(*DISPENSERS)),
):
    rx = await verification.dispense(db, rx_id, body.pharmacy, body.notes)
    return await _out(db, rx)

@router.put("/{rx_id}/cancel", response_model=PrescriptionOut)
async def cancel_prescription(
    rx_id: str,
    body: CancelIn,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_roles(*ISSUERS)),
):
    rx = await verification.cancel(db, DocumentKind.prescription, rx_id, body.reason, actor)
    return await _out(db, rx)
