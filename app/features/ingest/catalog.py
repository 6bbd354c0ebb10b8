"""Bulk product-code resolution against the catalog references.

Codes are gathered in a pre-scan pass and resolved in chunked ``IN (...)``
queries against the catalog cache and the product table, so a file with
thousands of rows costs O(unique codes / chunk size) queries instead of
O(rows).
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.features.data_platform.models import CatalogCacheEntry, Product

logger = get_logger(__name__)


@dataclass(frozen=True)
class CatalogEntry:
    """Catalog cache data for one barcode."""

    catalog_code: str
    barcode: str
    description: str | None
    brand: str | None


@dataclass(frozen=True)
class CatalogMatch:
    """Everything known about one code; either half may be missing."""

    entry: CatalogEntry | None
    product_id: int | None

    @property
    def complete(self) -> bool:
        """Both references know the code."""
        return self.entry is not None and self.product_id is not None


@dataclass(frozen=True)
class CatalogSnapshot:
    """Read-only maps produced by one bulk resolution.

    Attributes:
        entries: Code -> catalog cache entry.
        product_ids: Code -> product identity id.
    """

    entries: Mapping[str, CatalogEntry] = field(default_factory=dict)
    product_ids: Mapping[str, int] = field(default_factory=dict)

    def match(self, code: str) -> CatalogMatch:
        """Look a code up in both maps."""
        return CatalogMatch(entry=self.entries.get(code), product_id=self.product_ids.get(code))


def chunked(codes: Iterable[str], size: int) -> Iterator[list[str]]:
    """Split codes into sorted chunks of at most ``size``."""
    ordered = sorted(codes)
    for start in range(0, len(ordered), size):
        yield ordered[start : start + size]


@runtime_checkable
class CatalogResolverProtocol(Protocol):
    """Protocol for catalog lookups."""

    async def resolve_entries(
        self, db: AsyncSession, codes: set[str]
    ) -> dict[str, CatalogEntry]:
        """Resolve codes against the catalog cache."""
        ...

    async def resolve_product_ids(self, db: AsyncSession, codes: set[str]) -> dict[str, int]:
        """Resolve codes against the product table."""
        ...


class CatalogResolver:
    """Resolves barcodes against the catalog cache and product table."""

    def __init__(self, chunk_size: int = 900) -> None:
        self.chunk_size = chunk_size

    async def resolve_entries(
        self, db: AsyncSession, codes: set[str]
    ) -> dict[str, CatalogEntry]:
        """Resolve codes against the catalog cache.

        When the cache holds several entries for a barcode, the oldest one
        (lowest id) wins.

        Args:
            db: Async database session.
            codes: Barcodes to resolve.

        Returns:
            Dictionary mapping barcode -> CatalogEntry for found codes.
        """
        found: dict[str, CatalogEntry] = {}
        for chunk in chunked(codes, self.chunk_size):
            stmt = (
                select(
                    CatalogCacheEntry.barcode,
                    CatalogCacheEntry.catalog_code,
                    CatalogCacheEntry.description,
                    CatalogCacheEntry.brand,
                )
                .where(CatalogCacheEntry.barcode.in_(chunk))
                .order_by(CatalogCacheEntry.id)
            )
            result = await db.execute(stmt)
            for row in result:
                found.setdefault(
                    row.barcode,
                    CatalogEntry(
                        catalog_code=row.catalog_code,
                        barcode=row.barcode,
                        description=row.description,
                        brand=row.brand,
                    ),
                )
        return found

    async def resolve_product_ids(self, db: AsyncSession, codes: set[str]) -> dict[str, int]:
        """Resolve codes against the product table.

        Args:
            db: Async database session.
            codes: Barcodes to resolve.

        Returns:
            Dictionary mapping barcode -> product_id for found products.
        """
        found: dict[str, int] = {}
        for chunk in chunked(codes, self.chunk_size):
            stmt = select(Product.barcode, Product.id).where(Product.barcode.in_(chunk))
            result = await db.execute(stmt)
            for row in result:
                found[row.barcode] = row.id
        return found


async def resolve_catalog(
    db: AsyncSession,
    codes: set[str],
    resolver: CatalogResolverProtocol,
) -> CatalogSnapshot:
    """Resolve a code set against both references in bulk.

    Args:
        db: Async database session.
        codes: Candidate codes gathered by the pre-scan.
        resolver: Catalog resolver.

    Returns:
        Snapshot of the resolved entries and product ids.
    """
    if not codes:
        return CatalogSnapshot()

    entries = await resolver.resolve_entries(db, codes)
    product_ids = await resolver.resolve_product_ids(db, codes)

    logger.info(
        "ingest.catalog_resolved",
        requested=len(codes),
        catalog_hits=len(entries),
        product_hits=len(product_ids),
    )
    return CatalogSnapshot(entries=entries, product_ids=product_ids)


class CatalogMemo:
    """Bounded per-run memo of code lookups, hits and misses alike.

    Least recently used codes are evicted once ``max_size`` is reached.
    """

    def __init__(self, max_size: int = 50000) -> None:
        self.max_size = max_size
        self._items: OrderedDict[str, CatalogMatch] = OrderedDict()

    def get(self, code: str) -> CatalogMatch | None:
        """Return the memoized match, or None if the code was never looked up."""
        match = self._items.get(code)
        if match is not None:
            self._items.move_to_end(code)
        return match

    def remember(self, code: str, match: CatalogMatch) -> None:
        """Memoize a lookup outcome."""
        self._items[code] = match
        self._items.move_to_end(code)
        while len(self._items) > self.max_size:
            self._items.popitem(last=False)

    def __contains__(self, code: object) -> bool:
        return code in self._items

    def __len__(self) -> int:
        return len(self._items)


class RunCatalog:
    """Catalog view for one ingestion run.

    Bulk-warmed from the pre-scan, then consulted row by row. Codes the
    warm-up did not cover (or the memo already evicted) are resolved on
    demand and memoized, so no code is queried twice while it stays in
    the memo.
    """

    def __init__(
        self,
        db: AsyncSession,
        resolver: CatalogResolverProtocol,
        memo: CatalogMemo,
    ) -> None:
        self.db = db
        self.resolver = resolver
        self.memo = memo
        self.queries = 0

    async def warm(self, codes: Iterable[str]) -> CatalogSnapshot:
        """Resolve every code not yet memoized in one bulk pass.

        Args:
            codes: Candidate codes.

        Returns:
            Snapshot of the codes resolved by this call.
        """
        pending = {code for code in codes if code not in self.memo}
        snapshot = await resolve_catalog(self.db, pending, self.resolver)
        if pending:
            self.queries += 1
        for code in pending:
            self.memo.remember(code, snapshot.match(code))
        return snapshot

    async def match(self, code: str) -> CatalogMatch:
        """Look one code up, memo first."""
        memoized = self.memo.get(code)
        if memoized is not None:
            return memoized

        snapshot = await self.warm([code])
        logger.debug("ingest.catalog_memo_miss", code=code)
        return snapshot.match(code)
