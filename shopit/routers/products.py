from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from ..config import Settings
from ..database import get_db
from ..deps import get_current_user, get_image_store, get_settings, require_admin
from ..models import User
from ..usecases import products as products_uc
from ..usecases.products import ProductFields
from ..validator import Validator

router = APIRouter(prefix="/api/v1/product", tags=["products"])


def _int_field(v: Validator, raw: str, key: str, minimum: int = 0, maximum: Optional[int] = None) -> int:
    raw = (raw or "").strip()
    if raw == "":
        return 0
    try:
        value = int(raw)
    except ValueError:
        v.add_error(key, f"{key} must be a whole number")
        return 0
    v.check(value >= minimum, key, f"{key} must be at least {minimum}")
    if maximum is not None:
        v.check(value <= maximum, key, f"{key} must be at most {maximum}")
    return value


def _product_fields(name, price, description, category, seller, stock, ratings) -> ProductFields:
    v = Validator()
    v.check(name.strip() != "", "name", "product name must be provided")
    v.check(description.strip() != "", "description", "product description must be provided")
    v.check(seller.strip() != "", "seller", "product seller must be provided")
    fields = ProductFields(
        name=name.strip(),
        price=_int_field(v, price, "price"),
        description=description.strip(),
        category=category.strip(),
        seller=seller.strip(),
        stock=_int_field(v, stock, "stock"),
        ratings=_int_field(v, ratings, "ratings", maximum=5),
    )
    v.raise_if_invalid()
    return fields


def _read_images(images: List[UploadFile]) -> List[bytes]:
    return [image.file.read() for image in images if image.filename]


@router.get("/products")
def get_products(
    keyword: str = "",
    page: int = 1,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Products page, e.g. /api/v1/product/products?keyword=apple&page=2"""
    return products_uc.get_products(db, keyword, page, settings.page_size)


@router.get("/product/{product_id}")
def get_single_product(product_id: UUID, db: Session = Depends(get_db)):
    return {"success": True, "product": products_uc.get_single_product(db, product_id)}


@router.post("/admin/product/new")
def create_product(
    name: str = Form(""),
    price: str = Form(""),
    description: str = Form(""),
    category: str = Form(""),
    seller: str = Form(""),
    stock: str = Form(""),
    ratings: str = Form(""),
    images: List[UploadFile] = File(default=[]),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    image_store=Depends(get_image_store),
):
    fields = _product_fields(name, price, description, category, seller, stock, ratings)
    product = products_uc.create_product(db, admin, fields, _read_images(images), image_store)
    return {"success": True, "product": product}


@router.get("/admin/products")
def get_admin_products(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return {"success": True, "products": products_uc.get_admin_products(db)}


@router.put("/admin/product/{product_id}")
def update_product(
    product_id: UUID,
    name: str = Form(""),
    price: str = Form(""),
    description: str = Form(""),
    category: str = Form(""),
    seller: str = Form(""),
    stock: str = Form(""),
    images: List[UploadFile] = File(default=[]),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    image_store=Depends(get_image_store),
):
    fields = _product_fields(name, price, description, category, seller, stock, "")
    product = products_uc.update_product(db, product_id, fields, _read_images(images), image_store)
    return {"success": True, "product": product}


@router.delete("/admin/product/{product_id}")
def delete_product(
    product_id: UUID,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    image_store=Depends(get_image_store),
):
    products_uc.delete_product(db, product_id, image_store)
    return {"success": True, "message": "product deleted successfully"}


@router.put("/review")
def create_product_review(
    rating: str = Form(""),
    comment: str = Form(""),
    productId: str = Form(""),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    v = Validator()
    value = _int_field(v, rating, "rating", minimum=1, maximum=5)
    v.check(rating.strip() != "", "rating", "rating must be provided")
    v.check(comment.strip() != "", "comment", "comment must be provided")
    product_id = None
    try:
        product_id = UUID(productId.strip())
    except ValueError:
        v.add_error("productId", "productId must be a valid id")
    v.raise_if_invalid()

    review = products_uc.create_product_review(db, user, product_id, value, comment.strip())
    return {"success": True, "review": review}


@router.get("/reviews")
def get_product_reviews(
    id: UUID = Query(...),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {"success": True, "reviews": products_uc.get_product_reviews(db, id)}


@router.delete("/reviews")
def delete_product_review(
    productId: UUID = Query(...),
    id: UUID = Query(...),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    products_uc.delete_product_review(db, user, productId, id)
    return {"success": True}
