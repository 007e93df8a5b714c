import importlib.util
from pathlib import Path

from sqlalchemy.dialects import postgresql

MIGRATION = Path(__file__).resolve().parents[1] / "alembic" / "versions" / "5b1f0c2a9e41_issuable_documents.py"


def load_migration():
    found = importlib.util.spec_from_file_location("issuable_documents_migration", MIGRATION)
    module = importlib.util.module_from_spec(found)
    found.loader.exec_module(module)
    return module


def test_shared_enum_types_are_created_once_on_postgres():
    migration = load_migration()
    dialect = postgresql.dialect()

    for name, enum_type in (("documentstatus", migration.document_status),
                            ("documentkind", migration.document_kind)):
        impl = enum_type.dialect_impl(dialect)
        assert isinstance(impl, postgresql.ENUM)
        assert impl.name == name
        # upgrade() crea el tipo; las columnas no lo vuelven a crear
        assert impl.create_type is False
        assert tuple(impl.enums) == migration.SHARED_ENUMS[name]
