from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import Image, Product, Review


def insert_product(db: Session, product: Product) -> Product:
    db.add(product)
    db.flush()
    return product


def fetch_product_by_id(db: Session, product_id: UUID, for_update: bool = False) -> Optional[Product]:
    query = db.query(Product).filter(Product.id == product_id)
    if for_update:
        # Row lock so concurrent review/stock updates serialize on the aggregate.
        query = query.with_for_update()
    return query.first()


def fetch_products_page(
    db: Session, keyword: str, page: int, page_size: int
) -> Tuple[List[Product], int]:
    """Returns one page of products ordered by creation time plus the total match count."""
    query = db.query(Product)
    if keyword:
        query = query.filter(Product.name.ilike(f"%{_escape_like(keyword)}%", escape="\\"))
    count = query.with_entities(func.count(Product.id)).scalar() or 0
    offset = (max(page, 1) - 1) * page_size
    rows = (
        query.order_by(Product.created_at.asc(), Product.id)
        .offset(offset)
        .limit(page_size)
        .all()
    )
    return rows, count


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def fetch_all_products(db: Session) -> List[Product]:
    return db.query(Product).order_by(Product.created_at.asc()).all()


def update_product(db: Session, product: Product) -> Product:
    db.add(product)
    db.flush()
    return product


def delete_product_by_id(db: Session, product_id: UUID) -> int:
    return db.query(Product).filter(Product.id == product_id).delete(synchronize_session=False)


def adjust_stock(db: Session, product: Product, quantity: int) -> Product:
    product.stock = product.stock - quantity
    db.flush()
    return product


def insert_image(db: Session, public_id: str, url: str, product_id: UUID) -> Image:
    image = Image(public_id=public_id, url=url, product_id=product_id)
    db.add(image)
    db.flush()
    return image


def fetch_images_by_product(db: Session, product_id: UUID) -> List[Image]:
    return (
        db.query(Image)
        .filter(Image.product_id == product_id)
        .order_by(Image.created_at)
        .all()
    )


def fetch_images_for_products(db: Session, product_ids: List[UUID]) -> Dict[UUID, List[Image]]:
    grouped: Dict[UUID, List[Image]] = {pid: [] for pid in product_ids}
    if not product_ids:
        return grouped
    rows = (
        db.query(Image)
        .filter(Image.product_id.in_(product_ids))
        .order_by(Image.created_at)
        .all()
    )
    for image in rows:
        grouped[image.product_id].append(image)
    return grouped


def delete_images_by_product(db: Session, product_id: UUID) -> int:
    return db.query(Image).filter(Image.product_id == product_id).delete(synchronize_session=False)


def insert_review(db: Session, review: Review) -> Review:
    db.add(review)
    db.flush()
    return review


def fetch_reviews_by_product(db: Session, product_id: UUID) -> List[Review]:
    return (
        db.query(Review)
        .filter(Review.product_id == product_id)
        .order_by(Review.created_at)
        .all()
    )


def fetch_review(db: Session, review_id: UUID) -> Optional[Review]:
    return db.query(Review).filter(Review.id == review_id).first()


def delete_review_by_id(db: Session, review_id: UUID) -> int:
    return db.query(Review).filter(Review.id == review_id).delete(synchronize_session=False)
