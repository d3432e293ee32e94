"""
OPEX Framework
Maturity framework domain models.

Models:
    - Pillar: top-level grouping of assessment elements
    - Element: checklist item owned by exactly one Pillar
    - LevelScore: score of one element for one country at one maturity level
    - ActionPlan: bilingual remediation record for a gap

Pillars and elements are never hard-deleted; ``is_active`` is the soft
delete flag and every aggregation excludes inactive rows.
"""

from datetime import datetime, timezone

from opex.models import db

# ── Shared constants ─────────────────────────────────────────────────────

# Ordered from least to most rigorous
MATURITY_LEVELS = ("FOUNDATION", "BRONZE", "SILVER", "GOLD", "PLATINUM")
DEFAULT_LEVEL = "FOUNDATION"

ACTION_PLAN_STATUSES = ("PLANNED", "IN_PROGRESS", "DONE", "CANCELLED")
DEFAULT_STATUS = "PLANNED"
STATUS_DONE = "DONE"

# Synthetic query-time country spanning every real country
GLOBAL_COUNTRY = "Global"

COMPLETE_SCORE = 100


def _utcnow():
    return datetime.now(timezone.utc)


class Pillar(db.Model):
    """
    Top-level category of the framework (e.g. Safety, Quality).

    ``name`` / ``description`` hold the local-language text; the ``_en``
    columns are optional English overlays.
    """

    __tablename__ = "pillars"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(30), nullable=False, unique=True, comment="Short mnemonic, e.g. SAF")
    name = db.Column(db.String(200), nullable=False)
    name_en = db.Column(db.String(200), nullable=True)
    description = db.Column(db.Text, nullable=True)
    description_en = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    elements = db.relationship("Element", back_populates="pillar", lazy="dynamic")

    def __repr__(self):
        return f"<Pillar {self.id}: {self.code}>"


class Element(db.Model):
    """Checklist item scored per country and maturity level."""

    __tablename__ = "elements"

    id = db.Column(db.Integer, primary_key=True)
    pillar_id = db.Column(
        db.Integer, db.ForeignKey("pillars.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    code = db.Column(db.String(30), nullable=True)
    name = db.Column(db.String(300), nullable=False)
    name_en = db.Column(db.String(300), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    pillar = db.relationship("Pillar", back_populates="elements")

    def __repr__(self):
        return f"<Element {self.id}: {self.code}>"


class LevelScore(db.Model):
    """
    Score (0..100) of one element for one country at one maturity level.

    A score of exactly 100 means the element is complete for that level;
    anything below is a gap.
    """

    __tablename__ = "level_scores"
    __table_args__ = (
        db.UniqueConstraint("element_id", "country", "level", name="uq_level_scores_element_country_level"),
        db.Index("ix_level_scores_level_country", "level", "country"),
    )

    id = db.Column(db.Integer, primary_key=True)
    element_id = db.Column(
        db.Integer, db.ForeignKey("elements.id", ondelete="CASCADE"), nullable=False, index=True
    )
    country = db.Column(db.String(100), nullable=False)
    level = db.Column(db.String(20), nullable=False, comment="FOUNDATION | BRONZE | SILVER | GOLD | PLATINUM")
    score = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f"<LevelScore {self.element_id}/{self.country}/{self.level}: {self.score}>"


class ActionPlan(db.Model):
    """
    Remediation record tied to one element, one country and one level.

    Text lives in three layers: ``problem_local`` / ``action_local`` are the
    canonical local-language fields, ``problem_en`` / ``action_en`` are
    optional English overlays (NULL means "not translated yet"), and
    ``problem`` / ``solution`` are the legacy single-language columns kept in
    sync with the local text.
    """

    __tablename__ = "action_plans"
    __table_args__ = (
        db.Index("ix_action_plans_element_level", "element_id", "maturity_level"),
    )

    id = db.Column(db.Integer, primary_key=True)
    element_id = db.Column(
        db.Integer, db.ForeignKey("elements.id", ondelete="CASCADE"), nullable=False, index=True
    )
    country = db.Column(db.String(100), nullable=False, index=True)
    maturity_level = db.Column(db.String(20), nullable=False, default=DEFAULT_LEVEL)

    problem = db.Column(db.Text, nullable=True)
    solution = db.Column(db.Text, nullable=True)
    problem_local = db.Column(db.Text, nullable=True)
    action_local = db.Column(db.Text, nullable=True)
    problem_en = db.Column(db.Text, nullable=True)
    action_en = db.Column(db.Text, nullable=True)

    owner_name = db.Column(db.String(200), nullable=False)
    due_date = db.Column(db.Date, nullable=True)
    status = db.Column(
        db.String(20), nullable=False, default=DEFAULT_STATUS,
        comment="PLANNED | IN_PROGRESS | DONE | CANCELLED",
    )

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f"<ActionPlan {self.id}: element={self.element_id} {self.country} {self.status}>"
