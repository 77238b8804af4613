"""
Progress Record model — monthly physical/financial progress for a Project.

Field groups:
    BASIC_FIELDS      descriptive + cost snapshot, owned by physicalStaff
    PHYSICAL_FIELDS   physical progress, owned by physicalStaff
    FINANCIAL_FIELDS  financial progress, owned by financialStaff
    DERIVED_FIELDS    server-computed, never user-editable

Lifecycle:
    draft ──save──▶ draft ──submit──▶ submitted
    (submitted → draft only when PROGRESS_ALLOW_REOPEN is enabled)
"""

import uuid
from datetime import datetime, timezone

from pmis.models import db

STATUS_DRAFT = "draft"
STATUS_SUBMITTED = "submitted"
PROGRESS_STATUSES = (STATUS_DRAFT, STATUS_SUBMITTED)

PROGRESS_TRANSITIONS = {
    STATUS_DRAFT: [STATUS_DRAFT, STATUS_SUBMITTED],
    STATUS_SUBMITTED: [],
}

# Only reachable when PROGRESS_ALLOW_REOPEN is on
REOPEN_TRANSITION = (STATUS_SUBMITTED, STATUS_DRAFT)

BASIC_FIELDS = frozenset({
    "progress_name",
    "main_objective",
    "location",
    "funding_source",
    "total_cost_original",
    "total_cost_current",
    "awarded_amount",
    "revised_end_date",
})

PROGRESS_IMAGE_FIELDS = (
    "physical_progress_image1",
    "physical_progress_image2",
    "physical_progress_image3",
)

QUARTER_FIELDS = (
    "quarter1_target_percentage",
    "quarter2_target_percentage",
    "quarter3_target_percentage",
    "quarter4_target_percentage",
)

PHYSICAL_FIELDS = frozenset({
    "overall_target",
    "progress_as_of_prev_dec_percentage",
    "target_year",
    "target_month",
    "progress_date",
    "current_year_descriptive_target",
    *QUARTER_FIELDS,
    "year_end_progress_description",
    "year_end_progress_percentage",
    "cumulative_target_at_year_end",
    "cumulative_progress_description_at_year_end",
    *PROGRESS_IMAGE_FIELDS,
    "physical_target_failure_reasons",
    "contractors",
    "consultants",
})

FINANCIAL_FIELDS = frozenset({
    "allocation_current_year",
    "expenditure_target",
    "imprest_requested",
    "imprest_received",
    "actual_expenditure",
    "bills_in_hand",
    "price_escalation",
    "cumulative_expenditure_at_year_end",
    "financial_target_failure_reasons",
})

# Financial amounts that take part in currency display conversion
FINANCIAL_AMOUNT_FIELDS = tuple(sorted(FINANCIAL_FIELDS - {"financial_target_failure_reasons"}))

DERIVED_FIELDS = frozenset({"cumulative_progress_percentage_of_overall_target"})

PERCENTAGE_FIELDS = frozenset({
    "progress_as_of_prev_dec_percentage",
    *QUARTER_FIELDS,
    "year_end_progress_percentage",
    "cumulative_progress_percentage_of_overall_target",
})

# Text columns holding a list of names
LIST_TEXT_FIELDS = frozenset({"contractors", "consultants"})

CONTENT_FIELDS = BASIC_FIELDS | PHYSICAL_FIELDS | FINANCIAL_FIELDS

MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


def _current_year():
    return datetime.now(timezone.utc).year


class ProgressRecord(db.Model):
    """One progress report for a project, filled in by physical then financial staff."""

    __tablename__ = "progress_records"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # ── Basic ──
    progress_name = db.Column(db.String(300), nullable=True)
    main_objective = db.Column(db.Text, nullable=True)
    location = db.Column(db.String(300), nullable=True)
    funding_source = db.Column(db.String(200), nullable=True)
    total_cost_original = db.Column(db.Float, nullable=True)
    total_cost_current = db.Column(db.Float, nullable=True)
    awarded_amount = db.Column(db.Float, nullable=True)
    revised_end_date = db.Column(db.Date, nullable=True)

    # ── Physical ──
    overall_target = db.Column(db.Text, nullable=True)
    progress_as_of_prev_dec_percentage = db.Column(db.Float, nullable=True)
    target_year = db.Column(db.Integer, nullable=True, default=_current_year)
    target_month = db.Column(db.String(20), nullable=True)
    progress_date = db.Column(db.Date, nullable=True)
    current_year_descriptive_target = db.Column(db.Text, nullable=True)
    quarter1_target_percentage = db.Column(db.Float, nullable=True)
    quarter2_target_percentage = db.Column(db.Float, nullable=True)
    quarter3_target_percentage = db.Column(db.Float, nullable=True)
    quarter4_target_percentage = db.Column(db.Float, nullable=True)
    year_end_progress_description = db.Column(db.Text, nullable=True)
    year_end_progress_percentage = db.Column(db.Float, nullable=True)
    cumulative_target_at_year_end = db.Column(db.Text, nullable=True)
    cumulative_progress_description_at_year_end = db.Column(db.Text, nullable=True)
    cumulative_progress_percentage_of_overall_target = db.Column(
        db.Float, nullable=True, comment="Derived — see progress_calculator",
    )
    physical_progress_image1 = db.Column(db.String(255), nullable=True)
    physical_progress_image2 = db.Column(db.String(255), nullable=True)
    physical_progress_image3 = db.Column(db.String(255), nullable=True)
    physical_target_failure_reasons = db.Column(db.Text, nullable=True)
    contractors = db.Column(db.Text, nullable=True)
    consultants = db.Column(db.Text, nullable=True)

    # ── Financial (native currency, LKR) ──
    allocation_current_year = db.Column(db.Float, nullable=True)
    expenditure_target = db.Column(db.Float, nullable=True)
    imprest_requested = db.Column(db.Float, nullable=True)
    imprest_received = db.Column(db.Float, nullable=True)
    actual_expenditure = db.Column(db.Float, nullable=True)
    bills_in_hand = db.Column(db.Float, nullable=True)
    price_escalation = db.Column(db.Float, nullable=True)
    cumulative_expenditure_at_year_end = db.Column(db.Float, nullable=True)
    financial_target_failure_reasons = db.Column(db.Text, nullable=True)

    # ── Workflow ──
    status = db.Column(db.String(20), nullable=False, default=STATUS_DRAFT, comment="draft | submitted")
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    submitted_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    version = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    project = db.relationship("Project", back_populates="progress_records")

    __table_args__ = (
        db.Index("ix_progress_project_status", "project_id", "status"),
    )

    # Every UPDATE carries "WHERE version = <loaded>"; the service sets the
    # next value itself so each save bumps it exactly once
    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    def to_dict(self, include_project=False):
        d = {"id": self.id, "project_id": self.project_id}
        for name in sorted(CONTENT_FIELDS | DERIVED_FIELDS):
            value = getattr(self, name)
            d[name] = value.isoformat() if hasattr(value, "isoformat") else value
        d.update({
            "status": self.status,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "submitted_by": self.submitted_by,
            "version": self.version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        })
        if include_project and self.project is not None:
            d["project"] = self.project.to_dict()
        return d

    def __repr__(self) -> str:
        return f"<ProgressRecord {self.id} project={self.project_id} {self.status}>"
