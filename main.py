import logging
import os
from contextlib import asynccontextmanager
from typing import List

from fastapi import Depends, FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database

import database
from cache import (
    ALL_CATEGORIES_KEY,
    ALL_PRODUCTS_KEY,
    CacheInvalidator,
    ResponseCache,
    category_products_key,
    get_cache,
    product_id_key,
    product_title_key,
)
from categories import CategoryCatalog
from config import settings
from database import CATEGORY_COLLECTION, PRODUCT_COLLECTION, DocumentStore, ensure_indexes, get_db
from errors import CatalogError
from products import ProductCatalog
from schemas import (
    CategoryCreate,
    CategoryOut,
    CategoryUpdate,
    CategoryWithProducts,
    ProductCreate,
    ProductOut,
    ProductUpdate,
    to_category_dto,
)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        logger.info("Ensuring database indexes...")
        ensure_indexes(database.db)
    else:
        logger.warning("DATABASE_URL / DATABASE_NAME not set; database unavailable")
    yield
    logger.info("Shutting down application...")


docs_enabled = settings.ENVIRONMENT != "production"
app = FastAPI(
    title="Product Catalog API",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if docs_enabled else None,
    redoc_url="/redoc" if docs_enabled else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

API = settings.API_PREFIX


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Dependencies

def get_category_catalog(db: Database = Depends(get_db)) -> CategoryCatalog:
    return CategoryCatalog(DocumentStore(db[CATEGORY_COLLECTION]), DocumentStore(db[PRODUCT_COLLECTION]))


def get_product_catalog(
    db: Database = Depends(get_db),
    categories: CategoryCatalog = Depends(get_category_catalog),
) -> ProductCatalog:
    return ProductCatalog(DocumentStore(db[PRODUCT_COLLECTION]), categories)


def get_invalidator(cache: ResponseCache = Depends(get_cache)) -> CacheInvalidator:
    return CacheInvalidator(cache)


@app.get("/")
def root():
    return {"message": "Product Catalog Backend is running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if settings.DATABASE_URL else "❌ Not Set",
        "database_name": "✅ Set" if settings.DATABASE_NAME else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        db = get_db()
        response["database"] = "✅ Available"
        response["connection_status"] = "Connected"
        response["collections"] = db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
    except CatalogError:
        response["database"] = "⚠️ Available but not initialized"
    except Exception as e:
        response["database"] = f"⚠️ Connected but Error: {str(e)[:50]}"
    return response


@app.get(f"{API}/cache/stats")
def cache_stats(cache: ResponseCache = Depends(get_cache)):
    return cache.stats()


# Product endpoints

@app.post(f"{API}/products", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductCreate,
    catalog: ProductCatalog = Depends(get_product_catalog),
    invalidator: CacheInvalidator = Depends(get_invalidator),
):
    product = catalog.create(payload)
    invalidator.product_created()
    return product


@app.get(f"{API}/products", response_model=List[ProductOut])
def list_products(
    catalog: ProductCatalog = Depends(get_product_catalog),
    invalidator: CacheInvalidator = Depends(get_invalidator),
):
    return invalidator.read_through(ALL_PRODUCTS_KEY, lambda: jsonable_encoder(catalog.find_all()))


@app.get(f"{API}/products/name/{{product_name}}", response_model=ProductOut)
def get_product_by_name(
    product_name: str,
    catalog: ProductCatalog = Depends(get_product_catalog),
    invalidator: CacheInvalidator = Depends(get_invalidator),
):
    # URL-friendly names use hyphens for spaces
    title = product_name.replace("-", " ")
    return invalidator.read_through(
        product_title_key(title), lambda: jsonable_encoder(catalog.find_by_title(title))
    )


@app.get(f"{API}/products/ref/{{business_id}}", response_model=ProductOut)
def get_product_by_business_id(business_id: str, catalog: ProductCatalog = Depends(get_product_catalog)):
    return catalog.find_by_id(business_id)


@app.get(f"{API}/products/category/{{category_name}}", response_model=List[ProductOut])
def list_products_in_category(category_name: str, catalog: ProductCatalog = Depends(get_product_catalog)):
    return catalog.get_products_by_category(category_name)


@app.get(f"{API}/products/{{product_id}}", response_model=ProductOut)
def get_product(
    product_id: str,
    catalog: ProductCatalog = Depends(get_product_catalog),
    invalidator: CacheInvalidator = Depends(get_invalidator),
):
    return invalidator.read_through(
        product_id_key(product_id), lambda: jsonable_encoder(catalog.find_by_mongo_id(product_id))
    )


@app.put(f"{API}/products/{{product_id}}", response_model=ProductOut)
def update_product(
    product_id: str,
    payload: ProductUpdate,
    catalog: ProductCatalog = Depends(get_product_catalog),
    invalidator: CacheInvalidator = Depends(get_invalidator),
):
    before = catalog.find_by_mongo_id(product_id)
    product = catalog.update(product_id, payload)
    new_title = product["title"] if product["title"] != before["title"] else None
    invalidator.product_updated(product_id, new_title=new_title)
    return product


@app.delete(f"{API}/products/{{product_id}}")
def delete_product(
    product_id: str,
    catalog: ProductCatalog = Depends(get_product_catalog),
    invalidator: CacheInvalidator = Depends(get_invalidator),
):
    catalog.remove(product_id)
    invalidator.product_deleted(product_id)
    return {"status": "deleted", "_id": product_id}


# Category endpoints

@app.post(f"{API}/categories", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
def create_category(
    payload: CategoryCreate,
    catalog: CategoryCatalog = Depends(get_category_catalog),
    invalidator: CacheInvalidator = Depends(get_invalidator),
):
    category = catalog.create(payload.name)
    invalidator.category_created()
    return to_category_dto(category)


@app.get(f"{API}/categories", response_model=List[CategoryWithProducts])
def list_categories(
    catalog: CategoryCatalog = Depends(get_category_catalog),
    invalidator: CacheInvalidator = Depends(get_invalidator),
):
    return invalidator.read_through(
        ALL_CATEGORIES_KEY, lambda: jsonable_encoder(catalog.list_all_with_products())
    )


@app.get(f"{API}/categories/{{category_name}}", response_model=List[ProductOut])
def get_category_products(
    category_name: str,
    catalog: CategoryCatalog = Depends(get_category_catalog),
    invalidator: CacheInvalidator = Depends(get_invalidator),
):
    return invalidator.read_through(
        category_products_key(category_name),
        lambda: jsonable_encoder(catalog.get_products_for_category(category_name)),
    )


@app.put(f"{API}/categories/{{category_id}}", response_model=CategoryOut)
def update_category(
    category_id: str,
    payload: CategoryUpdate,
    catalog: CategoryCatalog = Depends(get_category_catalog),
    invalidator: CacheInvalidator = Depends(get_invalidator),
):
    before = catalog.find_by_id(category_id)
    category = catalog.update(category_id, payload.name)
    renamed = category["name"] if category["name"] != before["name"] else None
    invalidator.category_updated(new_name=renamed)
    return to_category_dto(category)


@app.delete(f"{API}/categories/{{category_id}}", response_model=CategoryOut)
def delete_category(
    category_id: str,
    catalog: CategoryCatalog = Depends(get_category_catalog),
    invalidator: CacheInvalidator = Depends(get_invalidator),
):
    category = catalog.remove(category_id)
    invalidator.category_deleted()
    return to_category_dto(category)


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", settings.PORT))
    uvicorn.run(app, host="0.0.0.0", port=port)
