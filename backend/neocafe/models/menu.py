from __future__ import annotations

from ..extensions import db
from neocafe.time_utils import to_utc_z


class MenuItem(db.Model):
    """Food and drink catalog entry. Prices in cents."""
    __tablename__ = "menu_items"
    __table_args__ = (
        db.Index("ix_menu_items_category_name", "category", "name"),
        db.CheckConstraint("price_cents > 0", name="ck_menu_items_price_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    price_cents = db.Column(db.Integer, nullable=False)
    category = db.Column(db.String(64), nullable=False, index=True)
    image_url = db.Column(db.String(512), nullable=True)
    is_available = db.Column(db.Boolean, nullable=False, default=True, index=True)
    preparation_time_minutes = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "category": self.category,
            "image_url": self.image_url,
            "is_available": self.is_available,
            "preparation_time_minutes": self.preparation_time_minutes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
