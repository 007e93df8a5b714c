from __future__ import annotations
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field

from clinicdocs.models.certificate import CertificateType
from clinicdocs.models.document import DocumentKind
from clinicdocs.services.lifecycle import EffectiveStatus

class VerifyIn(BaseModel):
    verification_code: Optional[str] = None
    document_number: Optional[str] = None

class VerifyPayloadIn(BaseModel):
    payload: str = Field(min_length=1)

class VerificationData(BaseModel):
    """Public projection of a document. No clinical content."""
    kind: DocumentKind
    document_number: str
    patient_name: str
    doctor_name: str
    doctor_license: Optional[str] = None
    doctor_specialty: Optional[str] = None
    certificate_type: Optional[CertificateType] = None
    issued_at: datetime
    valid_from: datetime
    valid_until: datetime
    status: EffectiveStatus

class VerificationResult(BaseModel):
    found: bool
    verified: bool
    data: Optional[VerificationData] = None
