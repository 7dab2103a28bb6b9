"""
Category catalog.

A category keeps an ordered list of product references (``products``). It is
a back-index of Product.category, not an ownership relation: it is kept in
sync by ProductCatalog through ``add_product_to_named_category`` and
``remove_product_from_category``.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from bson import ObjectId
from pymongo.errors import DuplicateKeyError, PyMongoError

from database import DocumentStore, parse_object_id
from errors import CatalogError, ConflictError, InternalFailureError, NotFoundError, store_errors
from schemas import to_category_with_products

logger = logging.getLogger(__name__)


def name_filter(field: str, value: str) -> Dict[str, Any]:
    """Case-insensitive exact match on ``field``; regex characters match literally."""
    return {field: {"$regex": f"^{re.escape(value)}$", "$options": "i"}}


def name_key(name: str) -> str:
    # lower(), not casefold(): must agree with the regex "i" option
    return name.lower()


@dataclass
class LinkResult:
    """Outcome of a best-effort linkage between a product and a category."""

    ok: bool
    error: Optional[Exception] = None

    @classmethod
    def success(cls) -> "LinkResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, error: Exception) -> "LinkResult":
        return cls(ok=False, error=error)


def attempt(fn: Callable[..., Any], *args) -> LinkResult:
    try:
        fn(*args)
    except (CatalogError, PyMongoError) as exc:
        return LinkResult.failure(exc)
    return LinkResult.success()


class CategoryCatalog:
    def __init__(self, categories: DocumentStore, products: DocumentStore):
        self.categories = categories
        self.products = products

    # ---------- Lookups ----------

    def _find_by_name(self, name: str) -> Optional[dict]:
        return self.categories.find_one(name_filter("name", name))

    def find_by_name(self, name: str) -> dict:
        with store_errors("Failed to fetch category"):
            category = self._find_by_name(name)
        if not category:
            raise NotFoundError(f'Category "{name}" not found')
        return category

    def find_by_id(self, category_id: str) -> dict:
        _id = parse_object_id(category_id)
        if _id is None:
            raise NotFoundError(f'Category with ID "{category_id}" not found')
        with store_errors("Failed to fetch category"):
            category = self.categories.find_by_id(_id)
        if not category:
            raise NotFoundError(f'Category with ID "{category_id}" not found')
        return category

    def _resolve_products(self, refs: List[ObjectId]) -> List[dict]:
        if not refs:
            return []
        by_id = {p["_id"]: p for p in self.products.find({"_id": {"$in": list(refs)}})}
        return [by_id[ref] for ref in refs if ref in by_id]

    def list_all_with_products(self) -> List[dict]:
        with store_errors("Failed to fetch categories"):
            return [
                to_category_with_products(c, self._resolve_products(c.get("products") or []))
                for c in self.categories.find()
            ]

    def get_products_for_category(self, name: str) -> List[dict]:
        category = self.find_by_name(name)
        with store_errors("Failed to fetch category products"):
            products = self._resolve_products(category.get("products") or [])
        return to_category_with_products(category, products)["products"]

    # ---------- Mutations ----------

    def create(self, name: str) -> dict:
        with store_errors("Error creating category."):
            if self._find_by_name(name):
                raise ConflictError(f'Category "{name}" already exists.')
            try:
                return self.categories.insert({"name": name, "nameKey": name_key(name), "products": []})
            except DuplicateKeyError as exc:
                raise ConflictError(f'Category "{name}" already exists.') from exc

    def find_or_create_by_name(self, name: str) -> dict:
        with store_errors("Error creating category during find-or-create."):
            category = self._find_by_name(name)
            if category:
                return category
            try:
                category = self.categories.insert({"name": name, "nameKey": name_key(name), "products": []})
                logger.info('Created category "%s"', name)
                return category
            except DuplicateKeyError:
                # Another writer created it first
                category = self._find_by_name(name)
            if not category:
                logger.error('Category "%s" missing after a duplicate-key race', name)
                raise InternalFailureError("Failed to create or find category after race condition.")
            return category

    def update(self, category_id: str, name: Optional[str] = None) -> dict:
        category = self.find_by_id(category_id)
        if name is None or name == category["name"]:
            return category
        with store_errors("Error updating category."):
            clash = self.categories.find_one({**name_filter("name", name), "_id": {"$ne": category["_id"]}})
            if clash:
                raise ConflictError(f'Category "{name}" already exists.')
            try:
                updated = self.categories.update_by_id(category["_id"], {"name": name, "nameKey": name_key(name)})
            except DuplicateKeyError as exc:
                raise ConflictError(f'Category "{name}" already exists.') from exc
        if not updated:
            raise NotFoundError(f'Category with ID "{category_id}" not found')
        return updated

    def remove(self, category_id: str) -> dict:
        category = self.find_by_id(category_id)
        if category.get("products"):
            logger.warning(
                'Deleting category "%s" which still references %d product(s)',
                category["name"], len(category["products"]),
            )
        with store_errors("Error deleting category."):
            deleted = self.categories.delete_by_id(category["_id"])
        if not deleted:
            raise NotFoundError(f'Category with ID "{category_id}" not found')
        return category

    def add_product_to_named_category(self, name: str, product_ref: ObjectId) -> None:
        category = self.find_or_create_by_name(name)
        with store_errors("Error linking product to category."):
            self.categories.add_to_set(category["_id"], "products", product_ref)

    def remove_product_from_category(self, name: str, product_ref: ObjectId) -> None:
        with store_errors("Error unlinking product from category."):
            category = self._find_by_name(name)
            if not category:
                return
            self.categories.pull(category["_id"], "products", product_ref)
