from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class StoredCollection(db.Model):
    """
    One named record collection, persisted as a JSON list.

    The engine only ever reads or replaces a whole collection (get_all /
    set_all), so a row per collection is the unit of locking and of
    optimistic versioning.
    """
    __tablename__ = "stored_collections"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_stored_collections_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, index=True)
    records = db.Column(db.JSON, nullable=False, default=list)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<StoredCollection id={self.id} name={self.name!r} records={len(self.records or [])}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "record_count": len(self.records or []),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
