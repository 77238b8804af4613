"""Project domain model — the monitored unit that progress records report against."""

import uuid
from datetime import datetime, timezone

from pmis.models import db

DEPARTMENT_TYPES = ("Local", "Foreign", "Grant")
DEPARTMENT_CATEGORIES = ("GOSL", "MOHE")
EXTENDED_CHOICES = ("Yes", "No")

DEFAULT_CURRENCY = "LKR"

# Columns that hold opaque file-store references
PROJECT_FILE_FIELDS = ("project_image", "project_pdf", "extension_pdf")

# Fields a create/update payload may set; id, created_by and timestamps are system-owned
PROJECT_WRITABLE_FIELDS = (
    "project_name",
    "department_type", "department_category", "institution", "department",
    "duration_start", "duration_end",
    "tec", "tec_currency", "awarded_amount", "revised_date",
    "start_date", "estimated_end_date", "project_extended", "extended_date",
    "return_periods_start", "return_periods_end",
    "funding_source", "capital_works", "location", "land_location", "responsible_dept",
    "project_image", "project_pdf", "extension_pdf",
    "npd_date", "cabinet_papers_no", "cabinet_papers_date",
    "remarks", "is_draft",
)


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


class Project(db.Model):
    """A government project owned by its creator and scoped to an institution."""

    __tablename__ = "projects"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_name = db.Column(db.String(300), nullable=False, index=True)

    # ── Department ──
    department_type = db.Column(
        db.String(20), nullable=False, default="Local", comment="Local | Foreign | Grant",
    )
    department_category = db.Column(db.String(20), nullable=True, comment="GOSL | MOHE")
    institution = db.Column(db.String(200), nullable=True, index=True)
    department = db.Column(db.String(200), nullable=True)

    # ── Duration / timeline ──
    duration_start = db.Column(db.Date, nullable=True)
    duration_end = db.Column(db.Date, nullable=True)
    start_date = db.Column(db.Date, nullable=False)
    estimated_end_date = db.Column(db.Date, nullable=False)
    project_extended = db.Column(db.String(3), nullable=False, default="No", comment="Yes | No")
    extended_date = db.Column(db.Date, nullable=True)
    return_periods_start = db.Column(db.Date, nullable=True)
    return_periods_end = db.Column(db.Date, nullable=True)

    # ── Financial ──
    tec = db.Column(db.Float, nullable=True, comment="Total estimated cost")
    tec_currency = db.Column(db.String(3), nullable=False, default=DEFAULT_CURRENCY)
    awarded_amount = db.Column(db.Float, nullable=True)
    revised_date = db.Column(db.Date, nullable=True)

    # ── Funding & location ──
    funding_source = db.Column(db.String(200), nullable=True)
    capital_works = db.Column(db.Boolean, nullable=False, default=False)
    location = db.Column(db.String(300), nullable=True)
    land_location = db.Column(db.String(300), nullable=True)
    responsible_dept = db.Column(db.String(200), nullable=True)

    # ── Attachments (file-store references) ──
    project_image = db.Column(db.String(255), nullable=True)
    project_pdf = db.Column(db.String(255), nullable=True)
    extension_pdf = db.Column(db.String(255), nullable=True)

    # ── Cabinet ──
    npd_date = db.Column(db.Date, nullable=True)
    cabinet_papers_no = db.Column(db.String(100), nullable=True)
    cabinet_papers_date = db.Column(db.Date, nullable=True)

    remarks = db.Column(db.Text, nullable=True)
    is_draft = db.Column(db.Boolean, nullable=False, default=False)

    created_by = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    progress_records = db.relationship(
        "ProgressRecord",
        back_populates="project",
        lazy="dynamic",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ProgressRecord.created_at",
    )

    __table_args__ = (
        db.Index("ix_projects_creator_institution", "created_by", "institution"),
    )

    def to_dict(self):
        d = {"id": self.id}
        for name in PROJECT_WRITABLE_FIELDS:
            value = getattr(self, name)
            d[name] = value.isoformat() if hasattr(value, "isoformat") else value
        d["created_by"] = self.created_by
        d["created_at"] = self.created_at.isoformat() if self.created_at else None
        d["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        return d

    def __repr__(self) -> str:
        return f"<Project {self.id} {self.project_name!r}>"
