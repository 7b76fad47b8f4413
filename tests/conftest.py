"""
Shared test fixtures: SQLite test database, test client, formula template factory.
"""

import os
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Point the app at the test database before importing app modules
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["AUTO_SEED"] = "false"

from fence_bom.database import Base, get_db
from fence_bom.bom_calculator import get_interpreter
from fence_bom.formulas import FormulaInterpreter, FormulaTemplate
from fence_bom.formulas.store import SqlTemplateSource
from fence_bom.formulas.templates import RoundingLevel
from fence_bom.main import app


TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    """Direct database session for test setup/assertions."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def session_factory():
    return TestingSessionLocal


@pytest.fixture
def interpreter(session_factory):
    """Fresh interpreter (empty template cache) reading the test database."""
    interp = FormulaInterpreter(SqlTemplateSource(session_factory))
    app.dependency_overrides[get_interpreter] = lambda: interp
    yield interp
    app.dependency_overrides.pop(get_interpreter, None)


@pytest.fixture
def client(interpreter):
    """FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def seeded_client(client):
    """Test client with the default fence catalog loaded."""
    response = client.get("/api/catalog/seed")
    assert response.status_code == 200
    return client


@pytest.fixture
def make_template():
    """Factory for in-memory formula templates."""
    counter = {"n": 0}

    def _make(component_code, formula, rounding_level="sku", priority=0,
              product_style_id=None, product_type_id="wood-vertical", component_name=None):
        counter["n"] += 1
        return FormulaTemplate(
            id="t%d" % counter["n"],
            product_type_id=product_type_id,
            product_style_id=product_style_id,
            component_type_id="ct-" + component_code,
            component_code=component_code,
            formula=formula,
            rounding_level=RoundingLevel(rounding_level),
            priority=priority,
            component_name=component_name,
        )

    return _make
