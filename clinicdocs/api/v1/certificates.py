from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import date

from clinicdocs.api.deps import ISSUERS, require_roles
from clinicdocs.core.db import get_db
from clinicdocs.models.certificate import Certificate, CertificateType
from clinicdocs.models.document import DocumentKind
from clinicdocs.schemas.certificate import CertificateCreate, CertificateOut
from clinicdocs.schemas.document import CancelIn, DocumentStats
from clinicdocs.services import issuance, queries, verification
from clinicdocs.services.actor import Actor
from clinicdocs.services.lifecycle import EffectiveStatus, effective_status

router = APIRouter(prefix="/medical-certificates", tags=["Medical Certificates"])

async def _out(db: AsyncSession, cert: Certificate) -> CertificateOut:
    out = CertificateOut.model_validate(cert)
    out.effective_status = effective_status(cert)
    out.doctor = await queries.doctor_snapshot(db, cert.doctor_id)
    return out

@router.post("", response_model=CertificateOut, status_code=201)
async def create_certificate(
    payload: CertificateCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_roles(*ISSUERS)),
):
    cert = await issuance.issue_certificate(db, payload, actor)
    return await _out(db, cert)

@router.get("", response_model=List[CertificateOut])
async def list_certificates(
    db: AsyncSession = Depends(get_db),
    _: Actor = Depends(require_roles(*ISSUERS)),
    status: Optional[EffectiveStatus] = None,
    patient_id: Optional[str] = None,
    doctor_id: Optional[str] = None,
    certificate_type: Optional[CertificateType] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    rows = await queries.list_documents(
        db, DocumentKind.certificate,
        status=status, patient_id=patient_id, doctor_id=doctor_id, certificate_type=certificate_type,
        date_from=date_from, date_to=date_to, limit=limit, offset=offset,
    )
    return [await _out(db, cert) for cert in rows]

@router.get("/stats", response_model=DocumentStats)
async def certificate_stats(
    db: AsyncSession = Depends(get_db),
    _: Actor = Depends(require_roles(*ISSUERS)),
):
    return await queries.document_stats(db, DocumentKind.certificate)

@router.get("/{cert_id}", response_model=CertificateOut)
async def get_certificate(
    cert_id: str,
    db: AsyncSession = Depends(get_db),
    _: Actor = Depends(require_roles(*ISSUERS)),
):
    cert = await queries.get_document(db, DocumentKind.certificate, cert_id)
    return await _out(db, cert)

@router.put("/{cert_id}/cancel", response_model=CertificateOut)
async def cancel_certificate(
    cert_id: str,
    body: CancelIn,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_roles(*ISSUERS)),
):
    cert = await verification.cancel(db, DocumentKind.certificate, cert_id, body.reason, actor)
    return await _out(db, cert)
