from __future__ import annotations
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime

from clinicdocs.models.document import DocumentStatus
from clinicdocs.services.lifecycle import EffectiveStatus

class RxItemIn(BaseModel):
    drug: str = Field(min_length=1)
    dose: str
    frequency: str
    duration: str
    notes: Optional[str] = None

class PrescriptionCreate(BaseModel):
    patient_id: str
    doctor_id: str
    appointment_id: Optional[str] = None
    medications: List[RxItemIn] = Field(min_length=1)
    diagnosis: Optional[str] = None
    instructions: Optional[str] = None
    notes: Optional[str] = None
    valid_until: Optional[datetime] = None  # por defecto: emisión + 30 días

class RxItemOut(RxItemIn):
    model_config = ConfigDict(from_attributes=True)
    id: int
    position: int

class PrescriptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    document_number: str
    verification_code: str
    patient_id: str
    doctor_id: str
    appointment_id: Optional[str] = None
    issued_at: datetime
    valid_from: datetime
    valid_until: datetime
    status: DocumentStatus
    effective_status: Optional[EffectiveStatus] = None
    medications: List[RxItemOut] = Field(default_factory=list)
    diagnosis: Optional[str] = None
    instructions: Optional[str] = None
    notes: Optional[str] = None
    qr_payload: Optional[str] = None
    qr_code: Optional[str] = None
    dispensed_by: Optional[str] = None
    dispensed_at: Optional[datetime] = None
    dispense_notes: Optional[str] = None
    cancelled_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    doctor: Optional[dict] = None

class DispenseIn(BaseModel):
    pharmacy: str = Field(min_length=1)
    notes: Optional[str] = None
