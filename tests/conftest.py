"""
Shared pytest fixtures.

Every test gets its own SQLite file (several connections are needed for the
concurrency tests, so ``:memory:`` will not do) with the schema created from
the ORM metadata.
"""
import base64
import json
import os
from datetime import datetime
from types import SimpleNamespace

os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("DOCUMENT_SIGNING_KEY", "test-signing-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from clinicdocs.core.db import Base, get_db
from clinicdocs.core.security import create_access_token
from clinicdocs.main import app
from clinicdocs.models import Appointment, Doctor, Patient, User
from clinicdocs.models.user import RoleEnum
from clinicdocs.schemas.certificate import CertificateCreate
from clinicdocs.schemas.prescription import PrescriptionCreate, RxItemIn

# fecha fija para todo lo que depende del reloj
NOW = datetime(2024, 3, 10, 12, 0, 0)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'clinicdocs.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def parties(session_factory) -> SimpleNamespace:
    """Users, doctors, patients and appointments the documents point at."""
    ns = SimpleNamespace(
        admin_user="u-admin",
        doctor_user="u-doctor",
        other_doctor_user="u-doctor-2",
        pharmacist_user="u-pharma",
        patient_user="u-patient",
        doctor="d-1",
        other_doctor="d-2",
        patient="p-1",
        other_patient="p-2",
        appointment="a-1",
        other_appointment="a-2",
    )
    async with session_factory() as s:
        s.add_all([
            User(id=ns.admin_user, email="admin@clinic.test", full_name="Admin", role=RoleEnum.admin),
            User(id=ns.doctor_user, email="ana@clinic.test", full_name="Ana Souza", role=RoleEnum.doctor),
            User(id=ns.other_doctor_user, email="rui@clinic.test", full_name="Rui Lima", role=RoleEnum.doctor),
            User(id=ns.pharmacist_user, email="farma@clinic.test", full_name="Farma", role=RoleEnum.pharmacist),
            User(id=ns.patient_user, email="joao@clinic.test", full_name="João Silva", role=RoleEnum.patient),
        ])
        await s.flush()
        s.add_all([
            Doctor(id=ns.doctor, user_id=ns.doctor_user, name="Dra. Ana Souza",
                   specialty="Clínica Geral", license="CRM-SP 123456"),
            Doctor(id=ns.other_doctor, user_id=ns.other_doctor_user, name="Dr. Rui Lima",
                   specialty="Ortopedia", license="CRM-RJ 654321"),
            Patient(id=ns.patient, user_id=ns.patient_user, name="João Silva", doc_id="123.456.789-00"),
            Patient(id=ns.other_patient, name="Maria Costa"),
        ])
        await s.flush()
        s.add_all([
            Appointment(id=ns.appointment, doctor_id=ns.doctor, patient_id=ns.patient, starts_at=NOW),
            Appointment(id=ns.other_appointment, doctor_id=ns.doctor, patient_id=ns.other_patient, starts_at=NOW),
        ])
        await s.commit()
    return ns


@pytest.fixture
def rx_data(parties):
    def make(**overrides) -> PrescriptionCreate:
        fields = dict(
            patient_id=parties.patient,
            doctor_id=parties.doctor,
            medications=[RxItemIn(drug="Amoxicilina 500mg", dose="1 cápsula",
                                  frequency="8/8h", duration="7 dias")],
            diagnosis="Amigdalite bacteriana",
            instructions="Tomar após as refeições",
        )
        fields.update(overrides)
        return PrescriptionCreate(**fields)
    return make


@pytest.fixture
def cert_data(parties):
    def make(**overrides) -> CertificateCreate:
        fields = dict(
            patient_id=parties.patient,
            doctor_id=parties.doctor,
            certificate_type="trabalho",
            diagnosis="Lombalgia",
            rest_days=5,
            start_date=NOW.date(),
            auto_calculate_end_date=True,
        )
        fields.update(overrides)
        return CertificateCreate(**fields)
    return make


@pytest_asyncio.fixture
async def client(session_factory):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def auth(user_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


def tamper_payload(token: str, **changes) -> str:
    """Rewrite claims of a signed payload while keeping the original signature."""
    header, _, signature = token.split(".")
    claims = {**jwt.get_unverified_claims(token), **changes}
    body = base64.urlsafe_b64encode(json.dumps(claims).encode("utf-8")).rstrip(b"=").decode("ascii")
    return ".".join((header, body, signature))
