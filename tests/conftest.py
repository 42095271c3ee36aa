# Point the catalog at a throwaway SQLite file before src.db is imported
import os
import tempfile

_db_dir = tempfile.mkdtemp(prefix="catalog-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_db_dir, 'catalog.db')}"

import pytest  # noqa: E402

from src.db import Base, engine  # noqa: E402


@pytest.fixture(autouse=True)
def clean_database():
    """Fresh tables for every test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
