import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union
from uuid import UUID

from sqlalchemy.orm import Session

from ..clients.images import destroy_images
from ..database import transaction
from ..errors import NotFoundError, PermissionDenied
from ..models import ROLE_ADMIN, Image, Product, Review, User
from ..repositories import products as product_repo
from ..schemas import ImageOut, ProductOut, ProductPage, ReviewOut

logger = logging.getLogger(__name__)

IMAGE_FOLDER = "products"


@dataclass
class ProductFields:
    name: str
    price: int
    description: str
    category: str
    seller: str
    stock: int
    ratings: int = 0


def product_out(product: Product, images: Sequence[Image] = (), reviews: Sequence[Review] = ()) -> ProductOut:
    out = ProductOut.model_validate(product)
    out.images = [ImageOut.model_validate(image) for image in images]
    out.reviews = [ReviewOut.model_validate(review) for review in reviews]
    return out


def _upload_images(db: Session, image_store, product_id: UUID, images: Sequence[Union[bytes, str]]) -> List[Image]:
    saved = []
    for data in images:
        result = image_store.upload(IMAGE_FOLDER, data)
        saved.append(product_repo.insert_image(db, result.public_id, result.url, product_id))
    return saved


def create_product(
    db: Session, principal: User, fields: ProductFields, images: Sequence[Union[bytes, str]], image_store
) -> ProductOut:
    with transaction(db):
        product = product_repo.insert_product(
            db,
            Product(
                name=fields.name,
                price=fields.price,
                description=fields.description,
                category=fields.category,
                ratings=fields.ratings,
                seller=fields.seller,
                stock=fields.stock,
                num_of_reviews=0,
                user_id=principal.id,
            ),
        )
        saved = _upload_images(db, image_store, product.id, images)
    logger.info("Product %s created with %d image(s)", product.id, len(saved))
    return product_out(product, saved)


def get_products(db: Session, keyword: str, page: int, page_size: int = 12) -> ProductPage:
    """One page of the catalogue, optionally filtered by name."""
    page = max(page or 1, 1)
    products, count = product_repo.fetch_products_page(db, keyword or "", page, page_size)
    images = product_repo.fetch_images_for_products(db, [p.id for p in products])
    return ProductPage(
        product_count=count,
        res_per_page=page_size,
        filtered_products_count=len(products),
        products=[product_out(p, images.get(p.id, [])) for p in products],
    )


def get_admin_products(db: Session) -> List[ProductOut]:
    products = product_repo.fetch_all_products(db)
    images = product_repo.fetch_images_for_products(db, [p.id for p in products])
    return [product_out(p, images.get(p.id, [])) for p in products]


def _require_product(db: Session, product_id: UUID, for_update: bool = False) -> Product:
    product = product_repo.fetch_product_by_id(db, product_id, for_update=for_update)
    if product is None:
        raise NotFoundError(f"product {product_id} not found")
    return product


def get_single_product(db: Session, product_id: UUID) -> ProductOut:
    product = _require_product(db, product_id)
    images = product_repo.fetch_images_by_product(db, product_id)
    reviews = product_repo.fetch_reviews_by_product(db, product_id)
    return product_out(product, images, reviews)


def update_product(
    db: Session,
    product_id: UUID,
    fields: ProductFields,
    images: Sequence[Union[bytes, str]],
    image_store,
) -> ProductOut:
    """Updates scalar fields; new images, when given, replace all existing ones."""
    with transaction(db):
        product = _require_product(db, product_id, for_update=True)
        current = product_repo.fetch_images_by_product(db, product_id)
        replaced = []

        if images:
            replaced = [image.public_id for image in current]
            product_repo.delete_images_by_product(db, product_id)
            current = _upload_images(db, image_store, product_id, images)

        product.name = fields.name
        product.price = fields.price
        product.description = fields.description
        product.category = fields.category
        product.seller = fields.seller
        product.stock = fields.stock
        product_repo.update_product(db, product)
    # Old assets go only once the new rows are committed.
    destroy_images(image_store, replaced)
    return product_out(product, current)


def delete_product(db: Session, product_id: UUID, image_store) -> None:
    with transaction(db):
        _require_product(db, product_id)
        public_ids = [image.public_id for image in product_repo.fetch_images_by_product(db, product_id)]
        product_repo.delete_product_by_id(db, product_id)
    destroy_images(image_store, public_ids)
    logger.info("Product %s deleted", product_id)


def recompute_rating(ratings: Sequence[int]) -> tuple:
    """Returns (num_of_reviews, truncated mean rating); an empty list rates 0."""
    count = len(ratings)
    if count == 0:
        return 0, 0
    return count, sum(ratings) // count


def create_product_review(
    db: Session, principal: User, product_id: UUID, rating: int, comment: str
) -> ReviewOut:
    with transaction(db):
        product = _require_product(db, product_id, for_update=True)
        review = product_repo.insert_review(
            db,
            Review(
                name=principal.name,
                rating=rating,
                comment=comment,
                user_id=principal.id,
                product_id=product_id,
            ),
        )
        reviews = product_repo.fetch_reviews_by_product(db, product_id)
        product.num_of_reviews, product.ratings = recompute_rating([r.rating for r in reviews])
        product_repo.update_product(db, product)
    return ReviewOut.model_validate(review)


def get_product_reviews(db: Session, product_id: UUID) -> List[ReviewOut]:
    _require_product(db, product_id)
    return [ReviewOut.model_validate(r) for r in product_repo.fetch_reviews_by_product(db, product_id)]


def delete_product_review(db: Session, principal: User, product_id: UUID, review_id: UUID) -> None:
    """Removes a review (its author or an admin) and recomputes the product aggregate."""
    with transaction(db):
        product = _require_product(db, product_id, for_update=True)
        review: Optional[Review] = product_repo.fetch_review(db, review_id)
        if review is None or review.product_id != product_id:
            raise NotFoundError(f"review {review_id} not found")
        if principal.role != ROLE_ADMIN and review.user_id != principal.id:
            raise PermissionDenied("only the author or an admin can delete this review")
        product_repo.delete_review_by_id(db, review_id)
        reviews = product_repo.fetch_reviews_by_product(db, product_id)
        product.num_of_reviews, product.ratings = recompute_rating([r.rating for r in reviews])
        product_repo.update_product(db, product)
