from __future__ import annotations
import enum
from typing import Optional
from datetime import date
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Text, Date, Integer, Enum
from clinicdocs.core.db import Base
from clinicdocs.models.document import DocumentKind, IssuableDocumentMixin


class CertificateType(str, enum.Enum):
    trabalho = "trabalho"
    estudos = "estudos"
    atividade_fisica = "atividade_fisica"
    comparecimento = "comparecimento"
    repouso = "repouso"
    outros = "outros"


class Certificate(IssuableDocumentMixin, Base):
    __tablename__ = "certificates"
    kind = DocumentKind.certificate

    certificate_type: Mapped[CertificateType] = mapped_column(Enum(CertificateType), index=True)
    diagnosis:    Mapped[Optional[str]] = mapped_column(Text, default=None)
    rest_days:    Mapped[int]  = mapped_column(Integer, nullable=False, default=0)
    start_date:   Mapped[date] = mapped_column(Date, nullable=False)
    end_date:     Mapped[date] = mapped_column(Date, nullable=False)
    observations: Mapped[Optional[str]] = mapped_column(Text, default=None)
    restrictions: Mapped[Optional[str]] = mapped_column(Text, default=None)
