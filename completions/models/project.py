"""Project → System → Subsystem hierarchy models."""

from completions.models import db, iso, new_uuid, utcnow


# ── Constants ────────────────────────────────────────────────────────────────

PROJECT_STATUSES = {"PLANNING", "EXECUTION", "COMPLETIONS", "CLOSED"}
SYSTEM_STATUSES = {"NOT_STARTED", "IN_PROGRESS", "READY_FOR_ENERGIZATION", "ENERGIZED"}
CRITICALITIES = {"LOW", "MEDIUM", "HIGH"}


class Project(db.Model):
    """Top-level completions project (facility, plant, train...)."""

    __tablename__ = "projects"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    code = db.Column(db.String(50), nullable=False, unique=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    location = db.Column(db.String(200), nullable=True)
    status = db.Column(
        db.String(20), nullable=False, default="PLANNING",
        comment="PLANNING | EXECUTION | COMPLETIONS | CLOSED",
    )
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    systems = db.relationship(
        "System", backref="project", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "location": self.location,
            "status": self.status,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Project {self.code}>"


class System(db.Model):
    """Commissioning system; the unit that gets energized."""

    __tablename__ = "systems"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(30), nullable=False, default="NOT_STARTED")
    criticality = db.Column(db.String(10), nullable=False, default="MEDIUM")
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    subsystems = db.relationship(
        "Subsystem", backref="system", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    __table_args__ = (
        db.UniqueConstraint("project_id", "code", name="uq_systems_project_code"),
    )

    def to_dict(self, include_project: bool = False) -> dict:
        d = {
            "id": self.id,
            "project_id": self.project_id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "criticality": self.criticality,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if include_project:
            d["project"] = self.project.to_dict() if self.project else None
        return d

    def __repr__(self):
        return f"<System {self.code}>"


class Subsystem(db.Model):
    """Subdivision of a system; ITRs, punch items and tags hang from it."""

    __tablename__ = "subsystems"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    system_id = db.Column(
        db.String(36),
        db.ForeignKey("systems.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(30), nullable=False, default="NOT_STARTED")
    planned_start_date = db.Column(db.Date, nullable=True)
    planned_end_date = db.Column(db.Date, nullable=True)
    actual_start_date = db.Column(db.Date, nullable=True)
    actual_end_date = db.Column(db.Date, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.UniqueConstraint("system_id", "code", name="uq_subsystems_system_code"),
    )

    def to_dict(self, include_system: bool = False) -> dict:
        d = {
            "id": self.id,
            "system_id": self.system_id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "planned_start_date": iso(self.planned_start_date),
            "planned_end_date": iso(self.planned_end_date),
            "actual_start_date": iso(self.actual_start_date),
            "actual_end_date": iso(self.actual_end_date),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if include_system:
            d["system"] = self.system.to_dict(include_project=True) if self.system else None
        return d

    def __repr__(self):
        return f"<Subsystem {self.code}>"
