"""
Shared pytest fixtures for the OPEX Framework test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - store / ctx: SqlAlchemyStore and AggregationContext on the test DB
    - catalogue: two pillars with three elements (E1, E2 under SAF; E3 under QUA)
"""

import pytest

from opex import create_app
from opex.models import db as _db
from opex.models.framework import Element, LevelScore, Pillar
from opex.services import stats_cache
from opex.services.context import AggregationContext
from opex.services.store import SqlAlchemyStore


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        stats_cache.invalidate_all()
        yield
        stats_cache.invalidate_all()
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def store():
    return SqlAlchemyStore(_db.session)


@pytest.fixture()
def ctx(store):
    return AggregationContext.create(store, language="pt", local_language="pt")


@pytest.fixture()
def en_ctx(store):
    return AggregationContext.create(store, language="en", local_language="pt")


# ── Seed helpers ─────────────────────────────────────────────────────────


def add_pillar(code, name=None, name_en=None, is_active=True):
    pillar = Pillar(code=code, name=name or f"Pilar {code}", name_en=name_en, is_active=is_active)
    _db.session.add(pillar)
    _db.session.flush()
    return pillar


def add_element(pillar, code, name=None, is_active=True):
    element = Element(pillar_id=pillar.id, code=code, name=name or f"Elemento {code}", is_active=is_active)
    _db.session.add(element)
    _db.session.flush()
    return element


def add_score(element, country, score, level="FOUNDATION", notes=None):
    row = LevelScore(element_id=element.id, country=country, level=level, score=score, notes=notes)
    _db.session.add(row)
    _db.session.flush()
    return row


@pytest.fixture()
def catalogue():
    """SAF pillar (E1, E2) and QUA pillar (E3)."""
    saf = add_pillar("SAF", "Segurança", "Safety")
    qua = add_pillar("QUA", "Qualidade", "Quality")
    e1 = add_element(saf, "SAF-01", "Permissão de trabalho")
    e2 = add_element(saf, "SAF-02", "Bloqueio e etiquetagem")
    e3 = add_element(qua, "QUA-01", "Controle de processo")
    return {"SAF": saf, "QUA": qua, "E1": e1, "E2": e2, "E3": e3}


@pytest.fixture()
def brazil_scores(catalogue):
    """Brazil FOUNDATION scores: E1=100, E2=60, E3=0."""
    add_score(catalogue["E1"], "Brazil", 100)
    add_score(catalogue["E2"], "Brazil", 60)
    add_score(catalogue["E3"], "Brazil", 0)
    return catalogue
