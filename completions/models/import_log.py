"""Bulk import audit log."""

from completions.models import db, iso, new_uuid, utcnow

IMPORT_TYPES = {"csv", "api"}
IMPORT_STATUSES = {"processing", "completed", "partial", "failed"}


class ImportLog(db.Model):
    """One row per CSV/API import run, finalised once the rows are processed."""

    __tablename__ = "import_logs"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    user_id = db.Column(
        db.String(36), db.ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True,
    )
    import_type = db.Column(db.String(10), nullable=False, comment="csv | api")
    entity_type = db.Column(db.String(50), nullable=False)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    system_id = db.Column(
        db.String(36), db.ForeignKey("systems.id", ondelete="SET NULL"), nullable=True,
    )
    file_name = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(20), nullable=False, default="processing")
    records_processed = db.Column(db.Integer, nullable=False, default=0)
    records_success = db.Column(db.Integer, nullable=False, default=0)
    records_failed = db.Column(db.Integer, nullable=False, default=0)
    error_details = db.Column(db.JSON, nullable=True)
    metadata_ = db.Column("metadata", db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "import_type": self.import_type,
            "entity_type": self.entity_type,
            "project_id": self.project_id,
            "system_id": self.system_id,
            "file_name": self.file_name,
            "status": self.status,
            "records_processed": self.records_processed,
            "records_success": self.records_success,
            "records_failed": self.records_failed,
            "error_details": self.error_details,
            "metadata": self.metadata_,
            "created_at": iso(self.created_at),
        }
