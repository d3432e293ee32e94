"""Typed records for the aggregation core.

Entity records (``PillarRecord``, ``ElementRecord``, ``LevelScoreRecord``,
``ActionPlanRecord``) are produced once by the store adapter; aggregation
code never inspects raw rows. View models (``BacklogEntry``,
``DashboardStats``, ``PillarStats``, ``GlobalCountryStats``, ``LevelStats``,
``ActionPlanView``) are what the services hand to the blueprints.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from opex.utils.helpers import round_percentage


@dataclass(frozen=True)
class LocalizedText:
    """Bilingual text: canonical local value, English overlay, legacy column."""

    local: str | None = None
    en: str | None = None
    legacy: str | None = None

    def for_language(self, language: str, local_language: str) -> str | None:
        if language == local_language:
            return self.local
        if language == "en":
            return self.en
        return None


# ── Entity records ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class PillarRecord:
    id: int
    code: str
    name: LocalizedText
    description: LocalizedText
    is_active: bool

    def to_dict(self, ctx):
        return {
            "id": self.id,
            "code": self.code,
            "name": ctx.localize(self.name),
            "name_local": self.name.local,
            "name_en": self.name.en,
            "description": ctx.localize(self.description),
            "is_active": self.is_active,
        }


@dataclass(frozen=True)
class ElementRecord:
    id: int
    code: str | None
    name: LocalizedText
    is_active: bool
    pillar_id: int | None
    pillar: PillarRecord | None

    @property
    def is_countable(self) -> bool:
        """True when the element is active and its pillar, if resolvable, is active."""
        return self.is_active and (self.pillar is None or self.pillar.is_active)

    def to_dict(self, ctx):
        return {
            "id": self.id,
            "pillar_id": self.pillar_id,
            "code": self.code,
            "name": ctx.localize(self.name),
            "name_local": self.name.local,
            "name_en": self.name.en,
            "is_active": self.is_active,
        }


@dataclass(frozen=True)
class LevelScoreRecord:
    element_id: int
    country: str
    level: str
    score: int
    notes: str | None = None
    updated_at: datetime | None = None

    def to_dict(self):
        return {
            "element_id": self.element_id,
            "country": self.country,
            "level": self.level,
            "score": self.score,
            "notes": self.notes,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class ActionPlanRecord:
    id: int
    element_id: int
    country: str
    maturity_level: str
    problem: LocalizedText
    action: LocalizedText
    owner_name: str
    due_date: date | None
    status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ── View models ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class BacklogEntry:
    """One gap: an (element, country) pair below completion at a level."""

    element: ElementRecord
    country: str
    level: str
    score: int
    notes: str | None
    action_plans: tuple[ActionPlanRecord, ...] = ()

    @property
    def key(self) -> tuple[int, str]:
        return (self.element.id, self.country)

    @property
    def has_plan(self) -> bool:
        return len(self.action_plans) > 0

    def to_dict(self, ctx):
        pillar = self.element.pillar
        return {
            "element_id": self.element.id,
            "element_code": self.element.code,
            "element_name": ctx.localize(self.element.name),
            "pillar_id": pillar.id if pillar else None,
            "pillar_code": pillar.code if pillar else None,
            "pillar_name": ctx.localize(pillar.name) if pillar else None,
            "country": self.country,
            "level": self.level,
            "score": self.score,
            "notes": self.notes,
            "action_plans": [
                {
                    "id": p.id,
                    "status": p.status,
                    "problem": ctx.localize(p.problem),
                    "action": ctx.localize(p.action),
                    "owner_name": p.owner_name,
                    "due_date": p.due_date.isoformat() if p.due_date else None,
                    "created_at": p.created_at.isoformat() if p.created_at else None,
                }
                for p in self.action_plans
            ],
        }


@dataclass(frozen=True)
class DashboardStats:
    total_elements: int
    gap_elements: int
    elements_without_plan: int
    maturity_counts: dict[str, int]

    def to_dict(self):
        return {
            "total_elements": self.total_elements,
            "gap_elements": self.gap_elements,
            "elements_without_plan": self.elements_without_plan,
            "maturity_counts": dict(self.maturity_counts),
        }


@dataclass
class PillarStats:
    pillar_id: int | str
    code: str
    name: str
    gap_elements: int = 0
    elements_with_plan: int = 0
    elements_without_plan: int = 0

    @property
    def coverage(self) -> int:
        if self.gap_elements == 0:
            return 100
        return round_percentage(self.elements_with_plan * 100, self.gap_elements)

    def to_dict(self):
        return {
            "pillar_id": self.pillar_id,
            "code": self.code,
            "name": self.name,
            "gap_elements": self.gap_elements,
            "elements_with_plan": self.elements_with_plan,
            "elements_without_plan": self.elements_without_plan,
            "coverage": self.coverage,
        }


@dataclass(frozen=True)
class PillarSummary:
    pillar_id: int | str
    pillar_code: str
    pillar_name: str
    gap_count: int
    avg_score: int

    def to_dict(self):
        return {
            "pillar_id": self.pillar_id,
            "pillar_code": self.pillar_code,
            "pillar_name": self.pillar_name,
            "gap_count": self.gap_count,
            "avg_score": self.avg_score,
        }


@dataclass(frozen=True)
class GlobalCountryStats:
    country: str
    total_elements: int
    gap_elements: int
    elements_with_plan: int
    elements_without_plan: int
    total_action_plans: int
    completed_action_plans: int
    foundation_avg_score: int
    foundation_complete_count: int
    pillar_summary: list[PillarSummary] = field(default_factory=list)

    def to_dict(self):
        return {
            "country": self.country,
            "total_elements": self.total_elements,
            "gap_elements": self.gap_elements,
            "elements_with_plan": self.elements_with_plan,
            "elements_without_plan": self.elements_without_plan,
            "total_action_plans": self.total_action_plans,
            "completed_action_plans": self.completed_action_plans,
            "foundation_avg_score": self.foundation_avg_score,
            "foundation_complete_count": self.foundation_complete_count,
            "pillar_summary": [p.to_dict() for p in self.pillar_summary],
        }


@dataclass(frozen=True)
class LevelStats:
    level: str
    total: int
    completed: int
    avg_score: int
    completion_percentage: int
    is_locked: bool

    def to_dict(self):
        return {
            "level": self.level,
            "total": self.total,
            "completed": self.completed,
            "avg_score": self.avg_score,
            "completion_percentage": self.completion_percentage,
            "is_locked": self.is_locked,
        }


@dataclass(frozen=True)
class ActionPlanView:
    """An action plan joined with its element and pillar, text resolved."""

    plan: ActionPlanRecord
    element: ElementRecord
    problem: str
    action: str

    def to_dict(self, ctx):
        plan = self.plan
        pillar = self.element.pillar
        return {
            "id": plan.id,
            "element_id": plan.element_id,
            "country": plan.country,
            "maturity_level": plan.maturity_level,
            "problem": self.problem,
            "action": self.action,
            "problem_local": plan.problem.local,
            "action_local": plan.action.local,
            "problem_en": plan.problem.en,
            "action_en": plan.action.en,
            "owner_name": plan.owner_name,
            "due_date": plan.due_date.isoformat() if plan.due_date else None,
            "status": plan.status,
            "created_at": plan.created_at.isoformat() if plan.created_at else None,
            "updated_at": plan.updated_at.isoformat() if plan.updated_at else None,
            "element": {
                "id": self.element.id,
                "code": self.element.code,
                "name": ctx.localize(self.element.name),
                "pillar": {
                    "id": pillar.id,
                    "code": pillar.code,
                    "name": ctx.localize(pillar.name),
                } if pillar else None,
            },
        }


@dataclass(frozen=True)
class ElementScores:
    """One element's scores for one country across every maturity level."""

    element: ElementRecord
    country: str | None
    scores: dict[str, LevelScoreRecord | None]

    def to_dict(self, ctx):
        pillar = self.element.pillar
        return {
            "element_id": self.element.id,
            "element_code": self.element.code,
            "element_name": ctx.localize(self.element.name),
            "pillar_id": pillar.id if pillar else None,
            "pillar_code": pillar.code if pillar else None,
            "pillar_name": ctx.localize(pillar.name) if pillar else None,
            "country": self.country,
            "levels": {
                level: {
                    "score": s.score,
                    "notes": s.notes,
                    "updated_at": s.updated_at.isoformat() if s.updated_at else None,
                } if s else None
                for level, s in self.scores.items()
            },
        }
