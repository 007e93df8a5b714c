from __future__ import annotations
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime

from clinicdocs.models.certificate import CertificateType
from clinicdocs.models.document import DocumentStatus
from clinicdocs.services.lifecycle import EffectiveStatus

class CertificateCreate(BaseModel):
    patient_id: str
    doctor_id: str
    appointment_id: Optional[str] = None
    certificate_type: CertificateType = CertificateType.trabalho
    diagnosis: Optional[str] = None
    rest_days: int = Field(0, ge=0)
    start_date: Optional[date] = None   # por defecto: fecha de emisión
    end_date: Optional[date] = None
    auto_calculate_end_date: bool = False
    observations: Optional[str] = None
    restrictions: Optional[str] = None

class CertificateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    document_number: str
    verification_code: str
    patient_id: str
    doctor_id: str
    appointment_id: Optional[str] = None
    certificate_type: CertificateType
    diagnosis: Optional[str] = None
    rest_days: int
    start_date: date
    end_date: date
    observations: Optional[str] = None
    restrictions: Optional[str] = None
    issued_at: datetime
    valid_from: datetime
    valid_until: datetime
    status: DocumentStatus
    effective_status: Optional[EffectiveStatus] = None
    qr_payload: Optional[str] = None
    qr_code: Optional[str] = None
    cancelled_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    doctor: Optional[dict] = None
