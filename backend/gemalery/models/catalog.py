from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from gemalery.time_utils import to_utc_z


def _money(value) -> str | None:
    # Decimals are serialized as strings so JSON never carries float drift
    return str(value) if value is not None else None


def normalize_sku(sku: str) -> str:
    return sku.strip().lower()


class ProductCategory(db.Model):
    """
    Product grouping that also carries fixed operational costs.

    The per-unit operational cost of a category is the sum of its
    CategoryOperationalCostComponent amounts. It is added to a variant's
    purchase price to seed cogs_current when the variant is created.
    """
    __tablename__ = "product_categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    components = db.relationship(
        "CategoryOperationalCostComponent",
        backref="category",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="CategoryOperationalCostComponent.id",
    )

    def __repr__(self) -> str:
        return f"<ProductCategory id={self.id} name={self.name!r}>"

    @property
    def operational_cost_unit(self) -> Decimal:
        return sum((c.amount for c in self.components), Decimal("0"))

    def to_dict(self, *, product_count: int | None = None) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "operational_cost_unit": _money(self.operational_cost_unit),
            "components": [c.to_dict() for c in self.components],
            "created_at": to_utc_z(self.created_at),
        }
        if product_count is not None:
            data["product_count"] = product_count
        return data


class CategoryOperationalCostComponent(db.Model):
    __tablename__ = "category_operational_cost_components"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("product_categories.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    amount = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category_id": self.category_id,
            "name": self.name,
            "amount": _money(self.amount),
        }


class Product(db.Model):
    """Product master data. Sellable units are its ProductVariant rows."""
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_active", "category_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("product_categories.id"), nullable=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("ProductCategory", backref=db.backref("products", lazy=True))
    variants = db.relationship(
        "ProductVariant",
        backref="product",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ProductVariant.id",
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def to_dict(self, *, include_variants: bool = True) -> dict:
        data = {
            "id": self.id,
            "category_id": self.category_id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_variants:
            data["variants"] = [v.to_dict() for v in self.variants]
        return data


class ProductVariant(db.Model):
    """
    Sellable unit with its own stock and running cost.

    SKU DESIGN DECISION:
    sku keeps the casing the operator typed; sku_normalized is the lower-cased
    copy and carries the unique constraint, so "ab-1" and "AB-1" collide in
    the database itself rather than in application code.

    CONCURRENCY:
    stock_on_hand and cogs_current are read-modify-write fields. version_id
    makes every UPDATE conditional on the version that was read; a
    concurrent writer turns the flush into StaleDataError, which the unit
    of work retries.
    """
    __tablename__ = "product_variants"
    __table_args__ = (
        db.UniqueConstraint("sku_normalized", name="uq_variants_sku_normalized"),
        db.Index("ix_variants_stock", "stock_on_hand"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    sku_normalized = db.Column(db.String(64), nullable=False)
    barcode = db.Column(db.String(64), nullable=True, index=True)

    price = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0"))
    weight_gram = db.Column(db.Integer, nullable=False, default=0)
    stock_on_hand = db.Column(db.Integer, nullable=False, default=0)

    # Running weighted-average unit cost; four places keep the average stable
    cogs_current = db.Column(db.Numeric(16, 4), nullable=False, default=Decimal("0"))
    default_purchase_price = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0"))
    default_operational_cost_unit = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0"))

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
        return f"<ProductVariant id={self.id} sku={self.sku!r} stock={self.stock_on_hand}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "sku": self.sku,
            "barcode": self.barcode,
            "price": _money(self.price),
            "weight_gram": self.weight_gram,
            "stock_on_hand": self.stock_on_hand,
            "cogs_current": _money(self.cogs_current),
            "default_purchase_price": _money(self.default_purchase_price),
            "default_operational_cost_unit": _money(self.default_operational_cost_unit),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
