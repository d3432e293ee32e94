"""Store adapter — the persistence boundary of the aggregation core.

``StoreAdapter`` is the query contract the aggregators and mutators depend
on. ``SqlAlchemyStore`` implements it over the Flask-SQLAlchemy session and
normalizes every row into the typed records of ``opex.services.records``
exactly once, here at the edge.

Transaction policy: write methods use flush() for ID generation, never
commit(). The caller (route handler) is responsible for db.session.commit().
Database errors are not caught; they reach the caller unchanged.
"""

from __future__ import annotations

import abc
import logging
from collections.abc import Iterable

from sqlalchemy.orm import joinedload

from opex.core.exceptions import NotFoundError
from opex.models import db
from opex.models.framework import ActionPlan, Element, LevelScore, Pillar
from opex.services.records import (
    ActionPlanRecord,
    ElementRecord,
    LevelScoreRecord,
    LocalizedText,
    PillarRecord,
)

logger = logging.getLogger(__name__)


class StoreAdapter(abc.ABC):
    """Query and write capabilities the core requires from persistence."""

    # ── Aggregation reads ────────────────────────────────────────────────

    @abc.abstractmethod
    def query_level_scores(
        self, level: str, country: str | None = None, score_less_than: int | None = None,
    ) -> list[LevelScoreRecord]: ...

    @abc.abstractmethod
    def query_elements_by_ids(self, ids: Iterable[int]) -> list[ElementRecord]: ...

    @abc.abstractmethod
    def query_action_plans_by_element_ids(
        self, ids: Iterable[int], level: str | None = None,
    ) -> list[ActionPlanRecord]: ...

    @abc.abstractmethod
    def query_active_element_count(self) -> int: ...

    # ── Action plan writes ───────────────────────────────────────────────

    @abc.abstractmethod
    def insert_action_plan(self, record: dict) -> int: ...

    @abc.abstractmethod
    def update_action_plan(self, plan_id: int, partial: dict) -> None: ...

    @abc.abstractmethod
    def update_action_plan_status(self, plan_id: int, status: str) -> None: ...

    # ── Listing / catalogue ──────────────────────────────────────────────

    @abc.abstractmethod
    def query_action_plans(
        self, country: str | None = None, status: str | None = None, level: str | None = None,
    ) -> list[ActionPlanRecord]: ...

    @abc.abstractmethod
    def get_action_plan(self, plan_id: int) -> ActionPlanRecord | None: ...

    @abc.abstractmethod
    def query_pillars(self, include_inactive: bool = False) -> list[PillarRecord]: ...

    @abc.abstractmethod
    def query_elements(
        self, pillar_id: int | None = None, include_inactive: bool = False,
    ) -> list[ElementRecord]: ...

    @abc.abstractmethod
    def insert_pillar(self, record: dict) -> int: ...

    @abc.abstractmethod
    def update_pillar(self, pillar_id: int, partial: dict) -> None: ...

    @abc.abstractmethod
    def insert_element(self, record: dict) -> int: ...

    @abc.abstractmethod
    def update_element(self, element_id: int, partial: dict) -> None: ...

    @abc.abstractmethod
    def upsert_level_score(
        self, element_id: int, country: str, level: str, score: int, notes: str | None,
    ) -> LevelScoreRecord: ...


# ── Row → record mapping ─────────────────────────────────────────────────


def _pillar_record(row: Pillar | None) -> PillarRecord | None:
    if row is None:
        return None
    return PillarRecord(
        id=row.id,
        code=row.code,
        name=LocalizedText(local=row.name, en=row.name_en),
        description=LocalizedText(local=row.description, en=row.description_en),
        is_active=bool(row.is_active),
    )


def _element_record(row: Element) -> ElementRecord:
    return ElementRecord(
        id=row.id,
        code=row.code,
        name=LocalizedText(local=row.name, en=row.name_en),
        is_active=bool(row.is_active),
        pillar_id=row.pillar_id,
        pillar=_pillar_record(row.pillar),
    )


def _score_record(row: LevelScore) -> LevelScoreRecord:
    return LevelScoreRecord(
        element_id=row.element_id,
        country=row.country,
        level=row.level,
        score=row.score,
        notes=row.notes,
        updated_at=row.updated_at,
    )


def _plan_record(row: ActionPlan) -> ActionPlanRecord:
    return ActionPlanRecord(
        id=row.id,
        element_id=row.element_id,
        country=row.country,
        maturity_level=row.maturity_level,
        problem=LocalizedText(local=row.problem_local, en=row.problem_en, legacy=row.problem),
        action=LocalizedText(local=row.action_local, en=row.action_en, legacy=row.solution),
        owner_name=row.owner_name,
        due_date=row.due_date,
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SqlAlchemyStore(StoreAdapter):
    """StoreAdapter backed by the Flask-SQLAlchemy session."""

    def __init__(self, session=None):
        self.session = session or db.session

    def _get_or_raise(self, model, pk):
        obj = self.session.get(model, pk)
        if obj is None:
            raise NotFoundError(resource=model.__name__, resource_id=pk)
        return obj

    @staticmethod
    def _apply(obj, partial: dict):
        for key, value in partial.items():
            setattr(obj, key, value)

    # ── Aggregation reads ────────────────────────────────────────────────

    def query_level_scores(self, level, country=None, score_less_than=None):
        query = self.session.query(LevelScore).filter(LevelScore.level == level)
        if country is not None:
            query = query.filter(LevelScore.country == country)
        if score_less_than is not None:
            query = query.filter(LevelScore.score < score_less_than)
        return [_score_record(r) for r in query.order_by(LevelScore.score, LevelScore.id).all()]

    def query_elements_by_ids(self, ids):
        ids = list(set(ids))
        if not ids:
            return []
        rows = (
            self.session.query(Element)
            .options(joinedload(Element.pillar))
            .filter(Element.id.in_(ids))
            .all()
        )
        return [_element_record(r) for r in rows]

    def query_action_plans_by_element_ids(self, ids, level=None):
        ids = list(set(ids))
        if not ids:
            return []
        query = self.session.query(ActionPlan).filter(ActionPlan.element_id.in_(ids))
        if level is not None:
            query = query.filter(ActionPlan.maturity_level == level)
        return [_plan_record(r) for r in query.order_by(ActionPlan.created_at, ActionPlan.id).all()]

    def query_active_element_count(self):
        return (
            self.session.query(Element)
            .join(Pillar, Element.pillar_id == Pillar.id)
            .filter(Element.is_active.is_(True), Pillar.is_active.is_(True))
            .count()
        )

    # ── Action plan writes ───────────────────────────────────────────────

    def insert_action_plan(self, record):
        self._get_or_raise(Element, record["element_id"])
        plan = ActionPlan(**record)
        self.session.add(plan)
        self.session.flush()
        logger.debug("Inserted action plan id=%s element=%s", plan.id, plan.element_id)
        return plan.id

    def update_action_plan(self, plan_id, partial):
        plan = self._get_or_raise(ActionPlan, plan_id)
        self._apply(plan, partial)
        self.session.flush()

    def update_action_plan_status(self, plan_id, status):
        plan = self._get_or_raise(ActionPlan, plan_id)
        plan.status = status
        self.session.flush()

    # ── Listing / catalogue ──────────────────────────────────────────────

    def query_action_plans(self, country=None, status=None, level=None):
        query = self.session.query(ActionPlan)
        if country is not None:
            query = query.filter(ActionPlan.country == country)
        if status is not None:
            query = query.filter(ActionPlan.status == status)
        if level is not None:
            query = query.filter(ActionPlan.maturity_level == level)
        return [_plan_record(r) for r in query.order_by(ActionPlan.created_at, ActionPlan.id).all()]

    def get_action_plan(self, plan_id):
        row = self.session.get(ActionPlan, plan_id)
        return _plan_record(row) if row else None

    def query_pillars(self, include_inactive=False):
        query = self.session.query(Pillar)
        if not include_inactive:
            query = query.filter(Pillar.is_active.is_(True))
        return [_pillar_record(r) for r in query.order_by(Pillar.code).all()]

    def query_elements(self, pillar_id=None, include_inactive=False):
        query = self.session.query(Element).options(joinedload(Element.pillar))
        if pillar_id is not None:
            query = query.filter(Element.pillar_id == pillar_id)
        if not include_inactive:
            query = query.filter(Element.is_active.is_(True))
        return [_element_record(r) for r in query.order_by(Element.code, Element.id).all()]

    def insert_pillar(self, record):
        pillar = Pillar(**record)
        self.session.add(pillar)
        self.session.flush()
        return pillar.id

    def update_pillar(self, pillar_id, partial):
        pillar = self._get_or_raise(Pillar, pillar_id)
        self._apply(pillar, partial)
        self.session.flush()

    def insert_element(self, record):
        self._get_or_raise(Pillar, record["pillar_id"])
        element = Element(**record)
        self.session.add(element)
        self.session.flush()
        return element.id

    def update_element(self, element_id, partial):
        element = self._get_or_raise(Element, element_id)
        if "pillar_id" in partial:
            self._get_or_raise(Pillar, partial["pillar_id"])
        self._apply(element, partial)
        self.session.flush()

    def upsert_level_score(self, element_id, country, level, score, notes):
        self._get_or_raise(Element, element_id)
        row = (
            self.session.query(LevelScore)
            .filter_by(element_id=element_id, country=country, level=level)
            .first()
        )
        if row is None:
            row = LevelScore(element_id=element_id, country=country, level=level)
            self.session.add(row)
        row.score = score
        row.notes = notes
        self.session.flush()
        return _score_record(row)
