"""
Pytest configuration - shared fixtures
"""
import sys
import os

import mongomock
import pytest
from fastapi.testclient import TestClient

# Modules live at the repository root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from cache import ResponseCache, get_cache
from categories import CategoryCatalog
from database import CATEGORY_COLLECTION, PRODUCT_COLLECTION, DocumentStore, ensure_indexes, get_db
from main import app
from products import ProductCatalog
from schemas import ProductCreate


def product_payload(**overrides) -> dict:
    """Request body for a valid product, camelCase as sent by clients."""
    data = {
        "id": "prod_001",
        "title": "Classic Tee",
        "description": "Soft cotton unisex t-shirt",
        "brand": "Basics",
        "category": "Shirts",
        "gender": "unisex",
        "price": 19.99,
        "discount": {"isActive": True, "percentage": 10, "discountedPrice": 17.99},
        "availableSizes": ["S", "M", "L"],
        "variants": [
            {"color": "white", "images": ["https://example.com/tee-white.jpg"], "stock": {"S": 5, "M": 7}},
        ],
        "tags": ["cotton"],
        "moq": 1,
    }
    data.update(overrides)
    return data


def make_product(**overrides) -> ProductCreate:
    return ProductCreate(**product_payload(**overrides))


@pytest.fixture
def mongo_db():
    """In-memory MongoDB with the production indexes"""
    database = mongomock.MongoClient()["catalog_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def category_catalog(mongo_db) -> CategoryCatalog:
    return CategoryCatalog(
        DocumentStore(mongo_db[CATEGORY_COLLECTION]),
        DocumentStore(mongo_db[PRODUCT_COLLECTION]),
    )


@pytest.fixture
def product_catalog(mongo_db, category_catalog) -> ProductCatalog:
    return ProductCatalog(DocumentStore(mongo_db[PRODUCT_COLLECTION]), category_catalog)


@pytest.fixture
def cache() -> ResponseCache:
    return ResponseCache(max_size=100, default_ttl=300)


@pytest.fixture
def client(mongo_db, cache):
    """FastAPI client wired to the in-memory database and a fresh cache"""
    app.dependency_overrides[get_db] = lambda: mongo_db
    app.dependency_overrides[get_cache] = lambda: cache
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
