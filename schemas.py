"""
Database Schemas for the Product Catalog

Each Pydantic model describes a request body or a response shape. Documents
are stored in MongoDB with the same camelCase field names used on the wire:
- Product -> "product" collection
- Category -> "category" collection
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _flatten_stock(value: Any) -> Any:
    # Older documents wrap the size map as {"stock": {...}}
    if isinstance(value, dict) and isinstance(value.get("stock"), dict):
        return value["stock"]
    return value


class Discount(CamelModel):
    is_active: bool = Field(..., description="Whether the discount applies")
    percentage: float = Field(..., ge=0, le=100, description="Discount percentage")
    discounted_price: float = Field(..., ge=0, description="Price after discount")


class Variant(CamelModel):
    color: str = Field(..., description="Variant color")
    images: List[str] = Field(default_factory=list, description="Image URLs")
    stock: Dict[str, int] = Field(default_factory=dict, description="Quantity per size label")

    @field_validator("stock", mode="before")
    @classmethod
    def unwrap_stock(cls, value):
        return _flatten_stock(value)


class ProductCreate(CamelModel):
    id: str = Field(..., description="Business identifier, e.g. prod_001")
    title: str = Field(..., description="Product title")
    description: str = Field(..., description="Product description")
    brand: Optional[str] = None
    category: str = Field(..., description="Category name")
    gender: Optional[str] = None
    price: float = Field(..., ge=0, description="Price")
    discount: Optional[Discount] = None
    available_sizes: List[str] = Field(default_factory=list)
    variants: List[Variant] = Field(default_factory=list)
    material: Optional[str] = None
    care_instructions: Optional[List[str]] = None
    rating: Optional[float] = Field(None, ge=0, le=5, description="Average rating")
    reviews: Optional[int] = Field(None, ge=0, description="Number of reviews")
    tags: Optional[List[str]] = None
    moq: int = Field(..., description="Minimum order quantity")


class ProductUpdate(CamelModel):
    id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    gender: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    discount: Optional[Discount] = None
    available_sizes: Optional[List[str]] = None
    variants: Optional[List[Variant]] = None
    material: Optional[str] = None
    care_instructions: Optional[List[str]] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    reviews: Optional[int] = Field(None, ge=0)
    tags: Optional[List[str]] = None
    moq: Optional[int] = None


class ProductOut(ProductCreate):
    mongo_id: str = Field(..., alias="_id", description="Store-assigned identifier")
    description: Optional[str] = None
    moq: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, description="Category name, e.g. Shirts")


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, description="New category name")


class CategoryOut(CamelModel):
    mongo_id: str = Field(..., alias="_id")
    name: str
    products: List[str] = Field(default_factory=list, description="Product ids")
    created_at: datetime
    updated_at: datetime


class CategoryWithProducts(CamelModel):
    mongo_id: str = Field(..., alias="_id")
    name: str
    products: List[ProductOut] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


# ---------- Document -> response transforms ----------

def _timestamps(doc: dict) -> Dict[str, datetime]:
    now = datetime.now(timezone.utc)
    return {
        "createdAt": doc.get("createdAt") or now,
        "updatedAt": doc.get("updatedAt") or now,
    }


def to_product_dto(doc: dict) -> dict:
    """Plain dict for a stored product with a flat stock map per variant."""
    d = dict(doc)
    d["_id"] = str(d["_id"])
    d["variants"] = [
        {
            "color": v.get("color"),
            "images": list(v.get("images") or []),
            "stock": {size: int(qty) for size, qty in (_flatten_stock(v.get("stock")) or {}).items()},
        }
        for v in (doc.get("variants") or [])
    ]
    d.update(_timestamps(doc))
    return d


def to_category_dto(doc: dict) -> dict:
    return {
        "_id": str(doc["_id"]),
        "name": doc["name"],
        "products": [str(ref) for ref in doc.get("products") or []],
        **_timestamps(doc),
    }


def to_category_with_products(doc: dict, products: List[dict]) -> dict:
    return {
        "_id": str(doc["_id"]),
        "name": doc["name"],
        "products": [to_product_dto(p) for p in products],
        **_timestamps(doc),
    }
