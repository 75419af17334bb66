"""SQLAlchemy models for the product catalog.

Defines product roots, their options and option values, the concrete
product variants and the bridge rows linking variants to option values.
Every table is soft deleted through ``archived_on``.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from dairycart.infrastructure.database import Base


def utcnow() -> datetime:
    """Current UTC time, used for column defaults and archival stamps."""
    return datetime.now(timezone.utc)


_ACTIVE = text("archived_on IS NULL")


class ProductRoot(Base):
    """Template shared by all variants of a conceptual product.

    Attributes:
        id: Surrogate key (creation order).
        name: Product name copied onto each variant.
        sku_prefix: Prefix for every variant SKU, unique among active roots.
        taxable: Default taxable flag for variants.
        cost_cents: Default cost in cents.
        price_cents: Default price in cents.
        product_*: Default product dimensions.
        package_*: Default package dimensions.
        quantity_per_package: Default units per package.
        available_on: When variants become available.
        created_on: Creation timestamp.
        updated_on: Last update timestamp.
        archived_on: Archive timestamp, None while active.
    """

    __tablename__ = "product_roots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    subtitle: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    sku_prefix: Mapped[str] = mapped_column(String(100), nullable=False)
    manufacturer: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    brand: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    taxable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cost_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    product_weight: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    product_height: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    product_width: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    product_length: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    package_weight: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    package_height: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    package_width: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    package_length: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    quantity_per_package: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    available_on: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    created_on: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_on: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=utcnow
    )
    archived_on: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    __table_args__ = (
        Index(
            "uq_product_roots_active_sku_prefix",
            "sku_prefix",
            unique=True,
            postgresql_where=_ACTIVE,
            sqlite_where=_ACTIVE,
        ),
    )

    # Fields copied onto every variant at materialization time
    INHERITED_FIELDS = (
        "name",
        "subtitle",
        "description",
        "manufacturer",
        "brand",
        "taxable",
        "cost_cents",
        "price_cents",
        "product_weight",
        "product_height",
        "product_width",
        "product_length",
        "package_weight",
        "package_height",
        "package_width",
        "package_length",
        "quantity_per_package",
        "available_on",
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<ProductRoot(id={self.id}, sku_prefix={self.sku_prefix})>"

    @property
    def is_active(self) -> bool:
        return self.archived_on is None

    def inherited_values(self) -> dict:
        """Snapshot of the fields a new variant copies from this root."""
        return {name: getattr(self, name) for name in self.INHERITED_FIELDS}

    def to_dict(self) -> dict:
        """Convert to dictionary.

        Returns:
            Dictionary representation.
        """
        data = {"id": self.id, "sku_prefix": self.sku_prefix}
        data.update(self.inherited_values())
        data["available_on"] = _isoformat(self.available_on)
        data["created_on"] = _isoformat(self.created_on)
        data["updated_on"] = _isoformat(self.updated_on)
        data["archived_on"] = _isoformat(self.archived_on)
        return data


class ProductOption(Base):
    """A named dimension of variation (e.g. "Color") of one product root."""

    __tablename__ = "product_options"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_root_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("product_roots.id"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    created_on: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_on: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=utcnow
    )
    archived_on: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<ProductOption(id={self.id}, name={self.name})>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_root_id": self.product_root_id,
            "name": self.name,
            "created_on": _isoformat(self.created_on),
            "updated_on": _isoformat(self.updated_on),
            "archived_on": _isoformat(self.archived_on),
        }


class ProductOptionValue(Base):
    """One concrete value (e.g. "Red") of a product option."""

    __tablename__ = "product_option_values"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_option_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("product_options.id"),
        nullable=False,
        index=True,
    )
    value: Mapped[str] = mapped_column(String(200), nullable=False)
    created_on: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_on: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=utcnow
    )
    archived_on: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<ProductOptionValue(id={self.id}, value={self.value})>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_option_id": self.product_option_id,
            "value": self.value,
            "created_on": _isoformat(self.created_on),
            "updated_on": _isoformat(self.updated_on),
            "archived_on": _isoformat(self.archived_on),
        }


class Product(Base):
    """A concrete, sellable variant of a product root.

    Inherited fields are copied from the root when the variant is
    materialized and are edited independently afterwards. ``sku`` and
    ``option_summary`` are always derived from the bridge set.
    """

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_root_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("product_roots.id"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    subtitle: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    option_summary: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
    sku: Mapped[str] = mapped_column(String(500), nullable=False)
    upc: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    manufacturer: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    brand: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quantity_per_package: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    taxable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    on_sale: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sale_price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cost_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    product_weight: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    product_height: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    product_width: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    product_length: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    package_weight: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    package_height: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    package_width: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    package_length: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    available_on: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    created_on: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_on: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=utcnow
    )
    archived_on: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    __table_args__ = (
        Index(
            "uq_products_active_sku",
            "sku",
            unique=True,
            postgresql_where=_ACTIVE,
            sqlite_where=_ACTIVE,
        ),
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Product(id={self.id}, sku={self.sku})>"

    @property
    def is_active(self) -> bool:
        return self.archived_on is None

    def to_dict(self) -> dict:
        """Convert to dictionary.

        Returns:
            Dictionary representation.
        """
        return {
            "id": self.id,
            "product_root_id": self.product_root_id,
            "name": self.name,
            "subtitle": self.subtitle,
            "description": self.description,
            "option_summary": self.option_summary,
            "sku": self.sku,
            "upc": self.upc,
            "manufacturer": self.manufacturer,
            "brand": self.brand,
            "quantity": self.quantity,
            "quantity_per_package": self.quantity_per_package,
            "taxable": self.taxable,
            "price": {
                "amount": self.price_cents,
                "on_sale": self.on_sale,
                "sale_amount": self.sale_price_cents,
            },
            "cost_cents": self.cost_cents,
            "product_weight": self.product_weight,
            "product_height": self.product_height,
            "product_width": self.product_width,
            "product_length": self.product_length,
            "package_weight": self.package_weight,
            "package_height": self.package_height,
            "package_width": self.package_width,
            "package_length": self.package_length,
            "available_on": _isoformat(self.available_on),
            "created_on": _isoformat(self.created_on),
            "updated_on": _isoformat(self.updated_on),
            "archived_on": _isoformat(self.archived_on),
        }


class ProductVariantBridge(Base):
    """Join row recording that a product selects an option value."""

    __tablename__ = "product_variant_bridge"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("products.id"),
        nullable=False,
        index=True,
    )
    product_option_value_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("product_option_values.id"),
        nullable=False,
        index=True,
    )
    created_on: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    archived_on: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ProductVariantBridge(product_id={self.product_id}, "
            f"value_id={self.product_option_value_id})>"
        )


# Case-insensitive uniqueness of active sibling names
Index(
    "uq_product_options_active_name",
    ProductOption.product_root_id,
    func.lower(ProductOption.name),
    unique=True,
    postgresql_where=ProductOption.archived_on.is_(None),
    sqlite_where=ProductOption.archived_on.is_(None),
)
Index(
    "uq_product_option_values_active_value",
    ProductOptionValue.product_option_id,
    func.lower(ProductOptionValue.value),
    unique=True,
    postgresql_where=ProductOptionValue.archived_on.is_(None),
    sqlite_where=ProductOptionValue.archived_on.is_(None),
)


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
