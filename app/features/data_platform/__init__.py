"""Data platform feature: reference tables and the sell-out ledger.

- Reference tables: Client, Product, CatalogCacheEntry
- Ledger: SalesRecord
"""

from app.features.data_platform.models import (
    NO_STORE_CODE,
    CatalogCacheEntry,
    Client,
    Product,
    SalesRecord,
    normalize_store_code,
)

__all__ = [
    "NO_STORE_CODE",
    "CatalogCacheEntry",
    "Client",
    "Product",
    "SalesRecord",
    "normalize_store_code",
]
