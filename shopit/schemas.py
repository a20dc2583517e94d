"""
Request and response models.

JSON keys follow the storefront client's camelCase names; Python attributes
keep snake_case. Monetary fields are integer minor currency units.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class _Out(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class _In(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


# --- Orders ---------------------------------------------------------------

class OrderItemIn(_In):
    product_id: UUID = Field(..., alias="product")
    name: str = Field(..., min_length=1)
    price: int = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    image: str = ""


class ShippingIn(_In):
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1, alias="phoneNo")
    postal: str = Field(..., min_length=1, alias="postalCode")
    country: str = Field(..., min_length=1)


class PaymentInfoIn(_In):
    id: str = Field(..., min_length=1)
    status: str = Field(..., min_length=1)


class OrderCreate(_In):
    order_items: List[OrderItemIn] = Field(..., min_length=1, alias="orderItems")
    shipping_info: ShippingIn = Field(..., alias="shippingInfo")
    payment_info: PaymentInfoIn = Field(..., alias="paymentInfo")
    item_price: int = Field(..., ge=0, alias="itemsPrice")
    tax_price: int = Field(0, ge=0, alias="taxPrice")
    shipping_price: int = Field(0, ge=0, alias="shippingPrice")
    total_price: int = Field(..., ge=0, alias="totalPrice")


class ShippingOut(_Out):
    id: UUID = Field(serialization_alias="shippingID")
    address: str
    city: str
    phone: str = Field(serialization_alias="phoneNo")
    postal: str = Field(serialization_alias="postalCode")
    country: str
    order_id: UUID = Field(serialization_alias="orderID")


class OrderItemOut(_Out):
    id: UUID
    name: str
    price: int
    quantity: int
    image: str
    product_id: UUID = Field(serialization_alias="productID")
    order_id: UUID = Field(serialization_alias="orderID")


class PaymentOut(_Out):
    id: str
    status: str
    order_id: UUID = Field(serialization_alias="orderID")


class OrderOut(_Out):
    id: UUID
    shipping_info: Optional[ShippingOut] = Field(None, serialization_alias="shippingInfo")
    order_items: List[OrderItemOut] = Field(default_factory=list, serialization_alias="orderItems")
    payment_info: Optional[PaymentOut] = Field(None, serialization_alias="paymentInfo")
    user_id: UUID = Field(serialization_alias="userID")
    paid_at: Optional[datetime] = Field(None, serialization_alias="paidAt")
    item_price: int = Field(serialization_alias="itemsPrice")
    tax_price: int = Field(serialization_alias="taxPrice")
    shipping_price: int = Field(serialization_alias="shippingPrice")
    total_price: int = Field(serialization_alias="totalPrice")
    order_status: str = Field(serialization_alias="orderStatus")
    delivered_at: Optional[datetime] = Field(None, serialization_alias="deliveredAt")
    created_at: datetime = Field(serialization_alias="createdAt")


# --- Products -------------------------------------------------------------

class ImageOut(_Out):
    public_id: str = Field(serialization_alias="publicId")
    url: str
    product_id: UUID = Field(serialization_alias="productId")


class ReviewOut(_Out):
    id: UUID
    name: str
    rating: int
    comment: str
    user_id: UUID = Field(serialization_alias="userId")
    product_id: UUID = Field(serialization_alias="productId")
    created_at: datetime = Field(serialization_alias="createdAt")


class ProductOut(_Out):
    id: UUID
    name: str
    price: int
    description: str
    ratings: int
    images: List[ImageOut] = Field(default_factory=list)
    category: str
    seller: str
    stock: int
    num_of_reviews: int = Field(serialization_alias="numOfReviews")
    reviews: List[ReviewOut] = Field(default_factory=list)
    user_id: UUID = Field(serialization_alias="userId")
    created_at: datetime = Field(serialization_alias="createdAt")


class ProductPage(BaseModel):
    success: bool = True
    product_count: int = Field(serialization_alias="productCount")
    res_per_page: int = Field(serialization_alias="resPerPage")
    filtered_products_count: int = Field(serialization_alias="filteredProductsCount")
    products: List[ProductOut]


# --- Users ----------------------------------------------------------------

class AvatarOut(_Out):
    public_id: str = Field(serialization_alias="publicId")
    url: str


class UserOut(_Out):
    id: UUID
    name: str
    email: str
    role: str
    avatar: Optional[AvatarOut] = None
    created_at: datetime = Field(serialization_alias="createdAt")


class LoginRequest(_In):
    email: str = ""
    password: str = ""


# --- Payment --------------------------------------------------------------

class PaymentRequest(_In):
    amount: int = Field(..., gt=0)
