"""
Completions Tracker
Completions domain models — tags, ITRs, punch list and preservation.

Models:
    - Tag: equipment instance under a subsystem
    - ITR: Inspection & Test Record (type A construction, type B precommissioning)
    - PunchItem: defect / open action (category A blocks energization)
    - PreservationTask: recurring maintenance on a tag
"""

from completions.models import db, iso, new_uuid, utcnow


# ── Constants ────────────────────────────────────────────────────────────────

DISCIPLINES = {"MECH", "ELEC", "INST", "CIVIL", "PIPE", "OTHER"}
ITR_TYPES = {"A", "B"}
ITR_STATUSES = {"NOT_STARTED", "IN_PROGRESS", "COMPLETED", "REJECTED"}
PUNCH_CATEGORIES = ("A", "B", "C")
PUNCH_STATUSES = {"OPEN", "IN_PROGRESS", "CLOSED"}
PUNCH_OPEN_STATUSES = ("OPEN", "IN_PROGRESS")
PRESERVATION_STATUSES = {"OK", "OVERDUE"}


class Tag(db.Model):
    __tablename__ = "tags"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    subsystem_id = db.Column(
        db.String(36),
        db.ForeignKey("subsystems.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tag_code = db.Column(db.String(80), nullable=False)
    discipline = db.Column(db.String(10), nullable=False, default="OTHER")
    description = db.Column(db.Text, nullable=True)
    device_type = db.Column(db.String(100), nullable=True)
    criticality = db.Column(db.String(10), nullable=False, default="MEDIUM")
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    preservation_tasks = db.relationship(
        "PreservationTask", backref="tag", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "subsystem_id": self.subsystem_id,
            "tag_code": self.tag_code,
            "discipline": self.discipline,
            "description": self.description,
            "device_type": self.device_type,
            "criticality": self.criticality,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class ITR(db.Model):
    __tablename__ = "itrs"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    subsystem_id = db.Column(
        db.String(36),
        db.ForeignKey("subsystems.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tag_id = db.Column(
        db.String(36), db.ForeignKey("tags.id", ondelete="SET NULL"), nullable=True,
    )
    itr_code = db.Column(db.String(80), nullable=False)
    itr_type = db.Column(db.String(1), nullable=False, comment="A | B")
    discipline = db.Column(db.String(10), nullable=False, default="OTHER")
    status = db.Column(db.String(20), nullable=False, default="NOT_STARTED", index=True)
    comments = db.Column(db.Text, nullable=True)
    last_update = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    subsystem = db.relationship(
        "Subsystem",
        backref=db.backref(
            "itrs", lazy="dynamic", cascade="all, delete-orphan", passive_deletes=True,
        ),
    )

    __table_args__ = (
        db.CheckConstraint("itr_type IN ('A', 'B')", name="ck_itrs_type"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "subsystem_id": self.subsystem_id,
            "tag_id": self.tag_id,
            "itr_code": self.itr_code,
            "itr_type": self.itr_type,
            "discipline": self.discipline,
            "status": self.status,
            "comments": self.comments,
            "last_update": iso(self.last_update),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class PunchItem(db.Model):
    __tablename__ = "punch_items"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    subsystem_id = db.Column(
        db.String(36),
        db.ForeignKey("subsystems.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tag_id = db.Column(
        db.String(36), db.ForeignKey("tags.id", ondelete="SET NULL"), nullable=True,
    )
    category = db.Column(db.String(1), nullable=False, comment="A | B | C")
    description = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="OPEN", index=True)
    raised_by = db.Column(db.String(150), nullable=True)
    due_date = db.Column(db.Date, nullable=True)
    closed_date = db.Column(db.Date, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.CheckConstraint("category IN ('A', 'B', 'C')", name="ck_punch_items_category"),
    )

    @property
    def is_open(self) -> bool:
        return self.status in PUNCH_OPEN_STATUSES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "subsystem_id": self.subsystem_id,
            "tag_id": self.tag_id,
            "category": self.category,
            "description": self.description,
            "status": self.status,
            "raised_by": self.raised_by,
            "due_date": iso(self.due_date),
            "closed_date": iso(self.closed_date),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class PreservationTask(db.Model):
    __tablename__ = "preservation_tasks"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    tag_id = db.Column(
        db.String(36),
        db.ForeignKey("tags.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    description = db.Column(db.Text, nullable=False)
    frequency_days = db.Column(db.Integer, nullable=False)
    last_done_date = db.Column(db.Date, nullable=True)
    next_due_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(10), nullable=False, default="OK", comment="OK | OVERDUE")
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_dict(self, include_tag: bool = False) -> dict:
        d = {
            "id": self.id,
            "tag_id": self.tag_id,
            "description": self.description,
            "frequency_days": self.frequency_days,
            "last_done_date": iso(self.last_done_date),
            "next_due_date": iso(self.next_due_date),
            "status": self.status,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if include_tag:
            d["tag_code"] = self.tag.tag_code if self.tag else None
        return d
