from typing import Optional
from pydantic import BaseModel


class CancelIn(BaseModel):
    reason: Optional[str] = None


class DocumentStats(BaseModel):
    total: int
    active: int
    dispensed: int
    cancelled: int
    expired: int
    recent: int  # emitidos en los últimos 30 días
