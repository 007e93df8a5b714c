"""
Hammer tests: many sessions against the same database at once.

Each task uses its own session, so every issuance or transition runs in its own
transaction the same way concurrent requests would.
"""
import asyncio

from sqlalchemy import func, select

from clinicdocs.core.errors import ValidationError
from clinicdocs.models.document import DocumentStatus
from clinicdocs.models.prescription import Prescription
from clinicdocs.services import issuance, verification

from conftest import NOW

N = 50


async def test_concurrent_issuance_yields_distinct_identifiers(session_factory, rx_data, cert_data):
    async def issue_rx():
        async with session_factory() as s:
            rx = await issuance.issue_prescription(s, rx_data(), now=NOW)
            return rx.document_number, rx.verification_code

    async def issue_cert():
        async with session_factory() as s:
            cert = await issuance.issue_certificate(s, cert_data(), now=NOW)
            return cert.document_number, cert.verification_code

    results = await asyncio.gather(*(issue_rx() for _ in range(N)), *(issue_cert() for _ in range(10)))
    rx_numbers = {n for n, _ in results if n.startswith("RX-")}
    codes = {c for _, c in results}

    assert len(rx_numbers) == N
    assert rx_numbers == {f"RX-2024-{i:06d}" for i in range(1, N + 1)}
    assert len({n for n, _ in results if n.startswith("MC-")}) == 10
    assert len(codes) == N + 10

    async with session_factory() as s:
        stored = await s.scalar(select(func.count(func.distinct(Prescription.document_number))))
    assert stored == N


async def test_concurrent_dispense_succeeds_once(session_factory, db, rx_data):
    rx = await issuance.issue_prescription(db, rx_data(), now=NOW)

    async def attempt(i):
        async with session_factory() as s:
            try:
                await verification.dispense(s, rx.id, f"Farmácia {i}", now=NOW)
                return True
            except ValidationError:
                return False

    outcomes = await asyncio.gather(*(attempt(i) for i in range(10)))
    assert outcomes.count(True) == 1

    async with session_factory() as s:
        stored = await s.get(Prescription, rx.id)
    assert stored.status == DocumentStatus.dispensed


async def test_concurrent_dispense_and_cancel_only_one_wins(session_factory, db, rx_data):
    rx = await issuance.issue_prescription(db, rx_data(), now=NOW)

    async def run(op):
        async with session_factory() as s:
            try:
                await op(s)
                return True
            except ValidationError:
                return False

    ops = [
        lambda s: verification.dispense(s, rx.id, "Farmácia Central", now=NOW),
        lambda s: verification.cancel(s, rx.kind, rx.id, "erro de digitação", now=NOW),
    ] * 5
    outcomes = await asyncio.gather(*(run(op) for op in ops))
    assert outcomes.count(True) == 1
