"""
api/routes/products.py -- Product catalogue routes.

Routes:
  GET    /api/products        -- visible products, newest first (requires auth)
  GET    /api/products/{id}   -- one product (requires auth)
  POST   /api/products        -- create (admin)
  PUT    /api/products/{id}   -- partial update, incl. isActive (admin)
  DELETE /api/products/{id}   -- hard delete (admin)

Customers only ever see active products; an inactive product is a 404 for
them. Administrators see everything.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Request
from fastapi.responses import JSONResponse

from api.envelope import ok
from api.models import ProductCreate, ProductResponse, ProductUpdate
from auth.dependencies import get_current_identity, require_admin
from auth.models import Identity, Role
from auth.store import MAX_ID
from catalog.models import Product
from catalog.store import ProductStore
from core.errors import NotFound, ValidationError

# Every product route requires authentication; writes add the admin guard.
router = APIRouter(prefix="/products", dependencies=[Depends(get_current_identity)])

# Ids beyond the SQLite INTEGER range cannot exist and would overflow the driver.
ProductId = Annotated[int, Path(ge=1, le=MAX_ID)]


def _visible_or_404(store: ProductStore, product_id: int, identity: Identity) -> Product:
    product = store.get_product(product_id)
    if product is None or (not product.is_active and identity.role != Role.admin):
        raise NotFound("Product not found.", code="product_not_found")
    return product


@router.get("")
def list_products(request: Request, identity: Identity = Depends(get_current_identity)) -> JSONResponse:
    store: ProductStore = request.app.state.product_store
    products = store.list_products(include_inactive=identity.role == Role.admin)
    return ok(
        "Products retrieved successfully",
        data={"products": [ProductResponse.from_product(p).to_wire() for p in products], "count": len(products)},
    )


@router.get("/{product_id}")
def get_product(
    request: Request,
    product_id: ProductId,
    identity: Identity = Depends(get_current_identity),
) -> JSONResponse:
    store: ProductStore = request.app.state.product_store
    product = _visible_or_404(store, product_id, identity)
    return ok("Product retrieved successfully", data={"product": ProductResponse.from_product(product).to_wire()})


@router.post("", status_code=201)
def create_product(
    request: Request,
    body: ProductCreate,
    identity: Identity = Depends(require_admin),
) -> JSONResponse:
    store: ProductStore = request.app.state.product_store
    product_id = store.create_product(
        Product(
            name=body.name,
            description=body.description,
            price=body.price,
            stock=body.stock,
            category=body.category,
            tags=body.tags,
            image_url=body.image_url,
            created_by=identity.account_id,
        )
    )
    created = store.get_product(product_id)
    return ok(
        "Product created successfully",
        data={"product": ProductResponse.from_product(created).to_wire()},
        status_code=201,
    )


@router.put("/{product_id}", dependencies=[Depends(require_admin)])
def update_product(request: Request, product_id: ProductId, body: ProductUpdate) -> JSONResponse:
    store: ProductStore = request.app.state.product_store
    updates = body.model_dump(exclude_none=True)
    if not updates:
        raise ValidationError("No fields to update.", code="no_changes")
    if not store.update_product(product_id, **updates):
        raise NotFound("Product not found.", code="product_not_found")
    updated = store.get_product(product_id)
    return ok("Product updated successfully", data={"product": ProductResponse.from_product(updated).to_wire()})


@router.delete("/{product_id}", dependencies=[Depends(require_admin)])
def delete_product(request: Request, product_id: ProductId) -> JSONResponse:
    store: ProductStore = request.app.state.product_store
    if not store.delete_product(product_id):
        raise NotFound("Product not found.", code="product_not_found")
    return ok("Product deleted successfully")
