"""Product Catalog.

Provides the variant materialization engine: option registry, variant
materializer, bridge index, archival cascade and the catalog service that
runs them in one transaction per change.
"""

from dairycart.catalog.archival import ArchivalCascade, CascadeResult, Node
from dairycart.catalog.bridges import VariantBridgeIndex, combination_key
from dairycart.catalog.filters import DEFAULT_LIMIT, MAX_LIMIT, PaginatedResult, QueryFilter
from dairycart.catalog.materializer import (
    MaterializationResult,
    VariantMaterializer,
    diff_variants,
    plan_variants,
)
from dairycart.catalog.models import (
    Product,
    ProductOption,
    ProductOptionValue,
    ProductRoot,
    ProductVariantBridge,
)
from dairycart.catalog.options import OptionListing, OptionRegistry
from dairycart.catalog.repository import CatalogRepository
from dairycart.catalog.schemas import OptionCreate, ProductRootCreate, ProductRootUpdate
from dairycart.catalog.service import CatalogService
from dairycart.catalog.slugs import build_option_summary, build_sku, slugify

__all__ = [
    # Models
    "Product",
    "ProductOption",
    "ProductOptionValue",
    "ProductRoot",
    "ProductVariantBridge",
    # Slugs
    "build_option_summary",
    "build_sku",
    "slugify",
    # Filtering
    "DEFAULT_LIMIT",
    "MAX_LIMIT",
    "PaginatedResult",
    "QueryFilter",
    # Components
    "ArchivalCascade",
    "CascadeResult",
    "CatalogRepository",
    "MaterializationResult",
    "Node",
    "OptionListing",
    "OptionRegistry",
    "VariantBridgeIndex",
    "VariantMaterializer",
    "combination_key",
    "diff_variants",
    "plan_variants",
    # Schemas
    "OptionCreate",
    "ProductRootCreate",
    "ProductRootUpdate",
    # Service
    "CatalogService",
]
