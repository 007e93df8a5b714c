import re

import pytest

from clinicdocs.core.errors import ConflictError, ValidationError
from clinicdocs.models.document import DocumentKind
from clinicdocs.services.identifiers import (
    CODE_ALPHABET,
    MAX_SEQUENCE,
    format_document_number,
    is_well_formed_code,
    next_document_number,
    next_verification_code,
    parse_document_number,
)

NUMBER_RE = re.compile(r"^[A-Z]{2}-\d{4}-\d{6}$")


def test_document_number_format():
    assert format_document_number(DocumentKind.prescription, 2024, 123) == "RX-2024-000123"
    assert format_document_number(DocumentKind.certificate, 2024, 1) == "MC-2024-000001"


def test_document_number_out_of_range():
    with pytest.raises(ConflictError):
        format_document_number(DocumentKind.prescription, 2024, MAX_SEQUENCE + 1)
    with pytest.raises(ConflictError):
        format_document_number(DocumentKind.prescription, 2024, 0)


def test_parse_document_number():
    assert parse_document_number("MC-2025-000042") == (DocumentKind.certificate, 2025, 42)
    for bad in ("RX-2024-123", "XX-2024-000001", "rx-2024-000001", "", "RX-2024-0000001"):
        with pytest.raises(ValidationError):
            parse_document_number(bad)


def test_verification_code_policy_is_shared_by_all_kinds():
    codes = [next_verification_code(kind) for kind in DocumentKind for _ in range(200)]
    assert {len(c) for c in codes} == {8}
    assert set("".join(codes)) <= set(CODE_ALPHABET)
    assert not set("01IO") & set(CODE_ALPHABET)
    assert all(is_well_formed_code(c) for c in codes)
    assert len(set(codes)) > 390


def test_is_well_formed_code_rejects_ambiguous_characters():
    assert not is_well_formed_code("ABCDEF0I")
    assert not is_well_formed_code("ABC")


async def test_sequence_is_per_kind_and_year(db):
    assert await next_document_number(db, DocumentKind.prescription, 2024) == "RX-2024-000001"
    assert await next_document_number(db, DocumentKind.prescription, 2024) == "RX-2024-000002"
    assert await next_document_number(db, DocumentKind.certificate, 2024) == "MC-2024-000001"
    assert await next_document_number(db, DocumentKind.prescription, 2025) == "RX-2025-000001"
    await db.commit()

    number = await next_document_number(db, DocumentKind.prescription, 2024)
    assert NUMBER_RE.match(number)
    assert number == "RX-2024-000003"


async def test_rolled_back_reservation_is_returned(db):
    assert await next_document_number(db, DocumentKind.certificate, 2024) == "MC-2024-000001"
    await db.commit()
    assert await next_document_number(db, DocumentKind.certificate, 2024) == "MC-2024-000002"
    await db.rollback()
    assert await next_document_number(db, DocumentKind.certificate, 2024) == "MC-2024-000002"
