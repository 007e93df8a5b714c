"""
Document numbers and verification codes.

A document number reads ``<PREFIX>-<year>-<sequence>`` (``RX-2024-000123``).
The sequence comes from the ``document_sequences`` row of that kind and year,
created or incremented by a single upsert inside the issuing transaction. The
row lock taken by that statement serialises concurrent issuers until they
commit, and a rollback gives the number back.

Verification codes are random and independent of the number. The same
alphabet and length are used for every kind of document; uniqueness is left to
the unique constraint on the column (see services.issuance for the retry loop).
"""
import re
import secrets

from sqlalchemy import select
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdocs.core.config import settings
from clinicdocs.core.errors import ConflictError, ValidationError
from clinicdocs.models.document import DocumentKind, DocumentSequence


PREFIXES: dict[DocumentKind, str] = {
    DocumentKind.prescription: "RX",
    DocumentKind.certificate: "MC",
}
KINDS_BY_PREFIX = {prefix: kind for kind, prefix in PREFIXES.items()}

UPSERT_INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}

# sin 0/O ni 1/I para que se pueda dictar por teléfono
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

DOCUMENT_NUMBER_RE = re.compile(r"^([A-Z]{2})-(\d{4})-(\d{6})$")
MAX_SEQUENCE = 999_999


def format_document_number(kind: DocumentKind, year: int, seq: int) -> str:
    if not 1 <= seq <= MAX_SEQUENCE:
        raise ConflictError(f"{kind.value} sequence for {year} is exhausted")
    return f"{PREFIXES[kind]}-{year:04d}-{seq:06d}"


def parse_document_number(text: str) -> tuple[DocumentKind, int, int]:
    m = DOCUMENT_NUMBER_RE.match(text or "")
    if not m or m.group(1) not in KINDS_BY_PREFIX:
        raise ValidationError("malformed document number")
    return KINDS_BY_PREFIX[m.group(1)], int(m.group(2)), int(m.group(3))


def next_verification_code(kind: DocumentKind | None = None, length: int | None = None) -> str:
    # kind no cambia la regla: una sola política para todos los documentos
    n = length or settings.VERIFY_CODE_LENGTH
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(n))


def is_well_formed_code(code: str) -> bool:
    return len(code) == settings.VERIFY_CODE_LENGTH and all(c in CODE_ALPHABET for c in code)


def _increment_statement(dialect_name: str, kind: DocumentKind, year: int):
    """``INSERT ... ON CONFLICT`` that creates the counter at 1 or bumps it by one."""
    if dialect_name == "mysql":
        stmt = mysql_insert(DocumentSequence).values(kind=kind, year=year, last_value=1)
        return stmt.on_duplicate_key_update(last_value=DocumentSequence.last_value + 1)
    if dialect_name in UPSERT_INSERTS:
        stmt = UPSERT_INSERTS[dialect_name](DocumentSequence).values(kind=kind, year=year, last_value=1)
        return stmt.on_conflict_do_update(
            index_elements=["kind", "year"],
            set_={"last_value": DocumentSequence.last_value + 1},
        )
    raise NotImplementedError(f"no atomic sequence for dialect {dialect_name!r}")


async def next_document_number(db: AsyncSession, kind: DocumentKind, year: int) -> str:
    """Reserve the next number for ``kind``/``year`` in the caller's transaction.

    The reservation becomes durable when the caller commits.
    """
    await db.execute(_increment_statement(db.get_bind().dialect.name, kind, year))
    seq = await db.scalar(
        select(DocumentSequence.last_value).where(
            DocumentSequence.kind == kind, DocumentSequence.year == year
        )
    )
    if seq is None:
        raise ConflictError(f"could not reserve a {kind.value} number")
    return format_document_number(kind, year, seq)
