from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Text, DateTime, ForeignKey, Integer
from clinicdocs.core.db import Base
from clinicdocs.models.document import DocumentKind, IssuableDocumentMixin

class Prescription(IssuableDocumentMixin, Base):
    __tablename__ = "prescriptions"
    kind = DocumentKind.prescription

    diagnosis: Mapped[Optional[str]] = mapped_column(Text, default=None)
    instructions: Mapped[Optional[str]] = mapped_column(Text, default=None)
    notes: Mapped[Optional[str]] = mapped_column(Text, default=None)

    dispensed_by: Mapped[Optional[str]] = mapped_column(String(255), default=None)
    dispensed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)
    dispense_notes: Mapped[Optional[str]] = mapped_column(Text, default=None)

    items: Mapped[list["PrescriptionItem"]] = relationship(
        back_populates="prescription", cascade="all, delete-orphan",
        order_by="PrescriptionItem.position", lazy="selectin",
    )

    @property
    def medications(self) -> list["PrescriptionItem"]:
        return self.items


class PrescriptionItem(Base):
    __tablename__ = "prescription_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    prescription_id: Mapped[str] = mapped_column(ForeignKey("prescriptions.id", ondelete="CASCADE"), index=True)

    position: Mapped[int] = mapped_column(Integer, default=0)
    drug: Mapped[str] = mapped_column(String(255))
    dose: Mapped[str] = mapped_column(String(255))
    frequency: Mapped[str] = mapped_column(String(255))
    duration: Mapped[str] = mapped_column(String(255))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    prescription: Mapped["Prescription"] = relationship(back_populates="items")
