"""
Product catalog.

Products name their category by string. Every mutation also keeps the
category's product list in step, best-effort: a failed linkage is logged and
the product operation still succeeds. There is no transaction spanning the
two collections.
"""

import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from categories import CategoryCatalog, LinkResult, attempt, name_filter
from database import DocumentStore, parse_object_id
from errors import BadRequestError, ConflictError, NotFoundError, store_errors
from schemas import ProductCreate, ProductUpdate, to_product_dto

logger = logging.getLogger(__name__)

# Stored products always carry these; an update may change but not clear them
REQUIRED_FIELDS = ("id", "title", "description", "category", "price", "availableSizes", "variants", "moq")


def _check_moq(moq: Optional[int]) -> None:
    if moq is not None and moq < 1:
        raise BadRequestError("moq must be at least 1")


def _conflict_message(existing: dict, business_id: Optional[str]) -> str:
    if business_id is not None and existing.get("id") == business_id:
        return f'Product with ID "{business_id}" already exists'
    return f'Product with title "{existing.get("title")}" already exists'


class ProductCatalog:
    def __init__(self, products: DocumentStore, categories: CategoryCatalog):
        self.products = products
        self.categories = categories

    def _log_link(self, result: LinkResult, action: str, category: str, product_ref: ObjectId) -> None:
        if not result.ok:
            logger.error(
                'Failed to %s product %s and category "%s": %s',
                action, product_ref, category, result.error,
            )

    def _require_mongo_id(self, mongo_id: str) -> ObjectId:
        if not mongo_id:
            raise BadRequestError("MongoDB ID is required")
        _id = parse_object_id(mongo_id)
        if _id is None:
            raise BadRequestError(f'Invalid product ID "{mongo_id}"')
        return _id

    def _find_clash(self, business_id: Optional[str], title: Optional[str],
                    exclude: Optional[ObjectId] = None) -> Optional[dict]:
        clauses = []
        if business_id is not None:
            clauses.append({"id": business_id})
        if title is not None:
            clauses.append({"title": title})
        if not clauses:
            return None
        filt: Dict[str, Any] = {"$or": clauses}
        if exclude is not None:
            filt["_id"] = {"$ne": exclude}
        return self.products.find_one(filt)

    # ---------- Reads ----------

    def find_all(self) -> List[dict]:
        with store_errors("Failed to fetch products"):
            return [to_product_dto(p) for p in self.products.find()]

    def find_by_id(self, business_id: str) -> dict:
        if not business_id:
            raise BadRequestError("Product ID is required")
        with store_errors("Failed to fetch product"):
            product = self.products.find_one({"id": business_id})
        if not product:
            raise NotFoundError(f'Product with ID "{business_id}" not found')
        return to_product_dto(product)

    def find_by_mongo_id(self, mongo_id: str) -> dict:
        _id = self._require_mongo_id(mongo_id)
        with store_errors("Failed to fetch product"):
            product = self.products.find_by_id(_id)
        if not product:
            raise NotFoundError(f'Product with MongoDB ID "{mongo_id}" not found')
        return to_product_dto(product)

    def find_by_title(self, title: str) -> dict:
        if not title:
            raise BadRequestError("Product title is required")
        with store_errors("Failed to fetch product"):
            product = self.products.find_one(name_filter("title", title))
        if not product:
            raise NotFoundError(f'Product with title "{title}" not found')
        return to_product_dto(product)

    def get_products_by_category(self, category_name: str) -> List[dict]:
        if not category_name:
            raise BadRequestError("Category name is required")
        with store_errors("Failed to fetch products by category"):
            return [to_product_dto(p) for p in self.products.find(name_filter("category", category_name))]

    # ---------- Mutations ----------

    def create(self, payload: ProductCreate) -> dict:
        data = payload.model_dump(by_alias=True, exclude_none=True)
        if not data.get("id") or not data.get("title") or not data.get("category"):
            raise BadRequestError("ID, title, and category are required fields")
        _check_moq(data.get("moq"))

        with store_errors("Failed to create product"):
            existing = self._find_clash(data["id"], data["title"])
            if existing:
                raise ConflictError(_conflict_message(existing, data["id"]))
            try:
                saved = self.products.insert(data)
            except DuplicateKeyError as exc:
                existing = self._find_clash(data["id"], data["title"])
                raise ConflictError(
                    _conflict_message(existing, data["id"]) if existing else "Product already exists"
                ) from exc

        result = attempt(self.categories.add_product_to_named_category, saved["category"], saved["_id"])
        self._log_link(result, "link", saved["category"], saved["_id"])
        return to_product_dto(saved)

    def update(self, mongo_id: str, payload: ProductUpdate) -> dict:
        _id = self._require_mongo_id(mongo_id)
        changes = payload.model_dump(by_alias=True, exclude_unset=True)
        _check_moq(changes.get("moq"))
        for field in ("id", "title", "category"):
            if field in changes and not changes[field]:
                raise BadRequestError(f"{field} cannot be empty")
        for field in REQUIRED_FIELDS:
            if field in changes and changes[field] is None:
                raise BadRequestError(f"{field} cannot be null")

        with store_errors("Failed to update product"):
            current = self.products.find_by_id(_id)
            if not current:
                raise NotFoundError(f'Product with MongoDB ID "{mongo_id}" not found')

            new_id = changes.get("id") if changes.get("id") != current.get("id") else None
            new_title = changes.get("title") if changes.get("title") != current.get("title") else None
            clash = self._find_clash(new_id, new_title, exclude=_id)
            if clash:
                raise ConflictError(_conflict_message(clash, new_id))

        old_category = current.get("category")
        new_category = changes.get("category")
        if new_category is not None and new_category != old_category:
            if old_category:
                result = attempt(self.categories.remove_product_from_category, old_category, _id)
                self._log_link(result, "unlink", old_category, _id)
            result = attempt(self.categories.add_product_to_named_category, new_category, _id)
            self._log_link(result, "link", new_category, _id)

        with store_errors("Failed to update product"):
            try:
                updated = self.products.update_by_id(_id, changes)
            except DuplicateKeyError as exc:
                raise ConflictError(_conflict_message(changes, new_id)) from exc
        if not updated:
            raise NotFoundError(f'Product with MongoDB ID "{mongo_id}" not found')
        return to_product_dto(updated)

    def remove(self, mongo_id: str) -> dict:
        _id = self._require_mongo_id(mongo_id)
        with store_errors("Failed to delete product"):
            product = self.products.find_by_id(_id)
        if not product:
            raise NotFoundError(f'Product with MongoDB ID "{mongo_id}" not found')

        if product.get("category"):
            result = attempt(self.categories.remove_product_from_category, product["category"], _id)
            self._log_link(result, "unlink", product["category"], _id)

        with store_errors("Failed to delete product"):
            deleted = self.products.delete_by_id(_id)
        if not deleted:
            raise NotFoundError(f'Product with MongoDB ID "{mongo_id}" not found')
        return to_product_dto(product)
