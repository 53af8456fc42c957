"""AI Copilot insight records (append-only)."""

from completions.models import db, iso, new_uuid, utcnow


class Insight(db.Model):
    """Question/answer pair produced by the insight responder."""

    __tablename__ = "ai_insights"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    system_id = db.Column(
        db.String(36), db.ForeignKey("systems.id", ondelete="CASCADE"), nullable=True, index=True,
    )
    subsystem_id = db.Column(
        db.String(36), db.ForeignKey("subsystems.id", ondelete="SET NULL"), nullable=True,
    )
    title = db.Column(db.String(100), nullable=False)
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, index=True)

    project = db.relationship("Project")
    system = db.relationship("System")

    def to_dict(self, include_refs: bool = False) -> dict:
        d = {
            "id": self.id,
            "project_id": self.project_id,
            "system_id": self.system_id,
            "subsystem_id": self.subsystem_id,
            "title": self.title,
            "content": self.content,
            "created_at": iso(self.created_at),
        }
        if include_refs:
            d["project"] = (
                {"code": self.project.code, "name": self.project.name} if self.project else None
            )
            d["system"] = (
                {"code": self.system.code, "name": self.system.name} if self.system else None
            )
        return d
