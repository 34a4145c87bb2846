from __future__ import annotations

import importlib.util
from pathlib import Path
from types import ModuleType

from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect

from sitebind.db import Base
import sitebind.models  # noqa: F401

PROJECT_ROOT = Path(__file__).resolve().parents[1]
MIGRATIONS_DIR = PROJECT_ROOT / "alembic" / "versions"


def _load_migration_module(module_name: str) -> ModuleType:
    migration_path = MIGRATIONS_DIR / f"{module_name}.py"
    spec = importlib.util.spec_from_file_location(f"migration_{module_name}", migration_path)
    if spec is None or spec.loader is None:
        raise RuntimeError(f"Unable to load migration module: {migration_path}")

    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _run(engine, step) -> None:
    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            step()


def test_initial_migration_matches_models_and_downgrades(tmp_path: Path) -> None:
    module = _load_migration_module("0001_initial")
    assert module.revision == "0001_initial"
    assert module.down_revision is None

    engine = create_engine(f"sqlite:///{tmp_path / 'migration.db'}")
    _run(engine, module.upgrade)

    inspector = inspect(engine)
    assert set(inspector.get_table_names()) == set(Base.metadata.tables)
    for name, table in Base.metadata.tables.items():
        migrated = {column["name"] for column in inspector.get_columns(name)}
        assert migrated == {column.name for column in table.columns}, name

    _run(engine, module.downgrade)
    assert inspect(engine).get_table_names() == []
