from __future__ import annotations

from ..extensions import db
from gemalery.time_utils import to_utc_z, utcnow


MAX_ACTIVE_ADDRESSES = 5


class Customer(db.Model):
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, unique=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True, index=True)
    phone = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("customer", uselist=False))

    def __repr__(self) -> str:
        return f"<Customer id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "created_at": to_utc_z(self.created_at),
        }


class CustomerAddress(db.Model):
    """
    Address book entry.

    SOFT DELETE: is_deleted rows stay for history but are invisible to
    checkout and to the active-address limit (MAX_ACTIVE_ADDRESSES).
    """
    __tablename__ = "customer_addresses"
    __table_args__ = (
        db.Index("ix_addresses_customer_active", "customer_id", "is_deleted"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    label = db.Column(db.String(64), nullable=True)
    recipient_name = db.Column(db.String(255), nullable=False)
    recipient_phone = db.Column(db.String(64), nullable=False)
    address_line = db.Column(db.Text, nullable=False)
    province = db.Column(db.String(120), nullable=True)
    city = db.Column(db.String(120), nullable=True)
    subdistrict = db.Column(db.String(120), nullable=True)
    postal_code = db.Column(db.String(16), nullable=True)
    lat = db.Column(db.Float, nullable=True)
    lng = db.Column(db.Float, nullable=True)
    google_place_id = db.Column(db.String(255), nullable=True)

    is_default = db.Column(db.Boolean, nullable=False, default=False)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    customer = db.relationship("Customer", backref=db.backref("addresses", lazy=True))

    def snapshot(self) -> dict:
        """Denormalized copy frozen onto an order."""
        return {
            "address_id": self.id,
            "label": self.label,
            "recipient_name": self.recipient_name,
            "recipient_phone": self.recipient_phone,
            "address_line": self.address_line,
            "province": self.province,
            "city": self.city,
            "subdistrict": self.subdistrict,
            "postal_code": self.postal_code,
            "lat": self.lat,
            "lng": self.lng,
            "google_place_id": self.google_place_id,
        }

    def to_dict(self) -> dict:
        data = self.snapshot()
        data.pop("address_id")
        data.update({
            "id": self.id,
            "customer_id": self.customer_id,
            "is_default": self.is_default,
            "is_deleted": self.is_deleted,
            "created_at": to_utc_z(self.created_at),
        })
        return data
