# FILE: catalog_search/catalog.py
"""
Read-only view of the product catalog.

The catalog itself (CRUD, validation, caching) belongs to the shop service.
Search only needs the full list of (id, name) pairs, in a stable order.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Protocol

from sqlalchemy import Column, Integer, String, select
from sqlalchemy.orm import sessionmaker

from catalog_search.db import Base

logger = logging.getLogger(__name__)


class Product(Base):
    """
    Mapping of the shop's products table.

    Only the columns search reads are mapped; this module never writes.
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)


@dataclass(frozen=True)
class CatalogItem:
    id: int
    name: str


class CatalogReader(Protocol):
    async def list_items(self) -> List[CatalogItem]:
        ...


class SqlCatalogReader:
    """Enumerates the whole catalog (no pagination) ordered by id."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _list_items_sync(self) -> List[CatalogItem]:
        db = self._session_factory()
        try:
            rows = db.execute(select(Product.id, Product.name).order_by(Product.id)).all()
            return [CatalogItem(id=row.id, name=row.name) for row in rows]
        finally:
            db.close()

    async def list_items(self) -> List[CatalogItem]:
        items = await asyncio.to_thread(self._list_items_sync)
        logger.debug(f"[catalog] Enumerated {len(items)} products")
        return items


__all__ = ["Product", "CatalogItem", "CatalogReader", "SqlCatalogReader"]
