"""Input schemas for catalog operations.

Pydantic models validating product root creation, root edits and variant
edits before they reach a unit of work.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

SKU_PREFIX_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class OptionCreate(BaseModel):
    """An option supplied inline when creating a root."""

    name: str = Field(..., min_length=1, max_length=200, description="Option name (e.g., 'Color')")
    values: list[str] = Field(
        default_factory=list, description="Option values in display order"
    )

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("option name must not be blank")
        return v


class ProductRootFields(BaseModel):
    """Editable fields shared by creation and update."""

    model_config = ConfigDict(extra="forbid")

    subtitle: str = Field(default="", max_length=500)
    description: str = Field(default="")
    manufacturer: str = Field(default="", max_length=200)
    brand: str = Field(default="", max_length=200)
    taxable: bool = Field(default=False)
    cost_cents: int = Field(default=0, ge=0, description="Cost in cents")
    price_cents: int = Field(default=0, ge=0, description="Price in cents")
    product_weight: float = Field(default=0.0, ge=0)
    product_height: float = Field(default=0.0, ge=0)
    product_width: float = Field(default=0.0, ge=0)
    product_length: float = Field(default=0.0, ge=0)
    package_weight: float = Field(default=0.0, ge=0)
    package_height: float = Field(default=0.0, ge=0)
    package_width: float = Field(default=0.0, ge=0)
    package_length: float = Field(default=0.0, ge=0)
    quantity_per_package: int = Field(default=1, ge=1)
    available_on: datetime | None = Field(default=None)


class ProductRootCreate(ProductRootFields):
    """Request to create a product root, optionally with options inline."""

    name: str = Field(..., min_length=1, max_length=500)
    sku_prefix: str = Field(
        ...,
        min_length=1,
        max_length=100,
        pattern=SKU_PREFIX_PATTERN,
        description="Lowercase, hyphen-separated prefix for every variant SKU",
    )
    options: list[OptionCreate] = Field(default_factory=list)

    def root_values(self) -> dict[str, Any]:
        """Column values for the ProductRoot row."""
        values = self.model_dump(exclude={"options"})
        if values["available_on"] is None:
            del values["available_on"]
        return values


class ProductRootUpdate(BaseModel):
    """Partial edit of a product root.

    The SKU prefix is immutable once variants exist, so it is not
    accepted here.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=500)
    subtitle: str | None = Field(default=None, max_length=500)
    description: str | None = None
    manufacturer: str | None = Field(default=None, max_length=200)
    brand: str | None = Field(default=None, max_length=200)
    taxable: bool | None = None
    cost_cents: int | None = Field(default=None, ge=0)
    price_cents: int | None = Field(default=None, ge=0)
    product_weight: float | None = Field(default=None, ge=0)
    product_height: float | None = Field(default=None, ge=0)
    product_width: float | None = Field(default=None, ge=0)
    product_length: float | None = Field(default=None, ge=0)
    package_weight: float | None = Field(default=None, ge=0)
    package_height: float | None = Field(default=None, ge=0)
    package_width: float | None = Field(default=None, ge=0)
    package_length: float | None = Field(default=None, ge=0)
    quantity_per_package: int | None = Field(default=None, ge=1)
    available_on: datetime | None = None

    def changes(self) -> dict[str, Any]:
        """Fields explicitly set on this update."""
        return self.model_dump(exclude_unset=True, exclude_none=True)


class ProductUpdate(BaseModel):
    """Partial edit of a single variant.

    SKU and option summary are derived from the variant's bridges and are
    read-only.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=500)
    subtitle: str | None = Field(default=None, max_length=500)
    description: str | None = None
    upc: str | None = Field(default=None, max_length=50)
    manufacturer: str | None = Field(default=None, max_length=200)
    brand: str | None = Field(default=None, max_length=200)
    quantity: int | None = Field(default=None, ge=0, description="Units in stock")
    quantity_per_package: int | None = Field(default=None, ge=1)
    taxable: bool | None = None
    price_cents: int | None = Field(default=None, ge=0)
    on_sale: bool | None = None
    sale_price_cents: int | None = Field(default=None, ge=0)
    cost_cents: int | None = Field(default=None, ge=0)
    product_weight: float | None = Field(default=None, ge=0)
    product_height: float | None = Field(default=None, ge=0)
    product_width: float | None = Field(default=None, ge=0)
    product_length: float | None = Field(default=None, ge=0)
    package_weight: float | None = Field(default=None, ge=0)
    package_height: float | None = Field(default=None, ge=0)
    package_width: float | None = Field(default=None, ge=0)
    package_length: float | None = Field(default=None, ge=0)
    available_on: datetime | None = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude_none=True)
