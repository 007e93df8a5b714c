"""issuable documents: prescriptions, certificates, sequences

Revision ID: 5b1f0c2a9e41
Revises:
Create Date: 2025-11-03 10:12:40.511203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '5b1f0c2a9e41'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# tipos que usan varias tablas: en postgres se crean una sola vez en upgrade()
SHARED_ENUMS = {
    "documentstatus": ("active", "dispensed", "cancelled"),
    "documentkind": ("prescription", "certificate"),
}


def _shared_enum(name: str) -> sa.Enum:
    values = SHARED_ENUMS[name]
    return sa.Enum(*values, name=name).with_variant(
        postgresql.ENUM(*values, name=name, create_type=False), "postgresql"
    )


document_status = _shared_enum("documentstatus")
document_kind = _shared_enum("documentkind")
certificate_type = sa.Enum(
    "trabalho", "estudos", "atividade_fisica", "comparecimento", "repouso", "outros",
    name="certificatetype",
)


def _document_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("document_number", sa.String(20), nullable=False, unique=True),
        sa.Column("verification_code", sa.String(16), nullable=False, unique=True),
        sa.Column("patient_id", sa.String(36), sa.ForeignKey("patients.id"), nullable=False, index=True),
        sa.Column("doctor_id", sa.String(36), sa.ForeignKey("doctors.id"), nullable=False, index=True),
        sa.Column("appointment_id", sa.String(36), sa.ForeignKey("appointments.id"), nullable=True),
        sa.Column("issued_at", sa.DateTime(), nullable=False, index=True),
        sa.Column("valid_from", sa.DateTime(), nullable=False),
        sa.Column("valid_until", sa.DateTime(), nullable=False),
        sa.Column("status", document_status, nullable=False, index=True),
        sa.Column("qr_payload", sa.Text(), nullable=True),
        sa.Column("qr_code", sa.Text(), nullable=True),
        sa.Column("cancelled_reason", sa.Text(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_by", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        for name, values in SHARED_ENUMS.items():
            postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    # tablas del proveedor de identidad / agenda (sólo lo que leemos)
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True, index=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("role", sa.Enum("patient", "doctor", "admin", "pharmacist", name="roleenum"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )
    op.create_table(
        "doctors",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=True, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("specialty", sa.String(100), nullable=False),
        sa.Column("license", sa.String(64), nullable=True),
    )
    op.create_table(
        "patients",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=True, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("doc_id", sa.String(64), nullable=True),
    )
    op.create_table(
        "appointments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("doctor_id", sa.String(36), sa.ForeignKey("doctors.id"), nullable=False, index=True),
        sa.Column("patient_id", sa.String(36), sa.ForeignKey("patients.id"), nullable=False, index=True),
        sa.Column("starts_at", sa.DateTime(), nullable=False, index=True),
        sa.Column("status", sa.Enum("pending", "confirmed", "cancelled", name="apptstatus"), nullable=False),
    )

    op.create_table(
        "document_sequences",
        sa.Column("kind", document_kind, primary_key=True),
        sa.Column("year", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("last_value", sa.Integer(), nullable=False),
    )

    op.create_table(
        "verification_codes",
        sa.Column("code", sa.String(16), primary_key=True),
        sa.Column("kind", document_kind, nullable=False),
        sa.Column("document_id", sa.String(36), nullable=False),
        sa.UniqueConstraint("kind", "document_id", name="uq_verification_codes_document"),
    )

    op.create_table(
        "prescriptions",
        *_document_columns(),
        sa.Column("diagnosis", sa.Text(), nullable=True),
        sa.Column("instructions", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("dispensed_by", sa.String(255), nullable=True),
        sa.Column("dispensed_at", sa.DateTime(), nullable=True),
        sa.Column("dispense_notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_prescriptions_number_code", "prescriptions", ["document_number", "verification_code"])

    op.create_table(
        "prescription_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("prescription_id", sa.String(36),
                  sa.ForeignKey("prescriptions.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("drug", sa.String(255), nullable=False),
        sa.Column("dose", sa.String(255), nullable=False),
        sa.Column("frequency", sa.String(255), nullable=False),
        sa.Column("duration", sa.String(255), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
    )

    op.create_table(
        "certificates",
        *_document_columns(),
        sa.Column("certificate_type", certificate_type, nullable=False, index=True),
        sa.Column("diagnosis", sa.Text(), nullable=True),
        sa.Column("rest_days", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("observations", sa.Text(), nullable=True),
        sa.Column("restrictions", sa.Text(), nullable=True),
    )
    op.create_index("ix_certificates_number_code", "certificates", ["document_number", "verification_code"])


def downgrade() -> None:
    op.drop_index("ix_certificates_number_code", table_name="certificates")
    op.drop_table("certificates")
    op.drop_table("prescription_items")
    op.drop_index("ix_prescriptions_number_code", table_name="prescriptions")
    op.drop_table("prescriptions")
    op.drop_table("verification_codes")
    op.drop_table("document_sequences")
    op.drop_table("appointments")
    op.drop_table("patients")
    op.drop_table("doctors")
    op.drop_table("users")

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        for name, values in SHARED_ENUMS.items():
            postgresql.ENUM(*values, name=name).drop(bind, checkfirst=True)
