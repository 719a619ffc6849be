"""
Record schemas for the OmniLearn storefront.

Each model mirrors a document in one of the store namespaces
(courses, transactions, merchantSettings, coupons). Documents are stored
with camelCase keys; attributes are snake_case.
"""

import logging
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class Bonus(Record):
    title: str
    description: str = ""


class Review(Record):
    id: str
    student_name: str
    time_ago: str = ""
    rating: float = Field(5, ge=0, le=5)
    comment: str = ""


class Faq(Record):
    question: str
    answer: str


class Policies(Record):
    refund: Optional[str] = None
    privacy: Optional[str] = None
    license: Optional[str] = None
    terms: Optional[str] = None


# Collection: coupons (also nested under each course)
class Coupon(Record):
    id: str = ""
    code: str = Field(..., min_length=1, max_length=40)
    type: Literal["percent", "flat"]
    value: float = Field(..., ge=0)
    is_active: bool = True

    @model_validator(mode="after")
    def _check_percent(self):
        if self.type == "percent" and self.value > 100:
            raise ValueError("Discount percentage must be between 0 and 100")
        return self

    def matches(self, code: str) -> bool:
        return self.code.strip().upper() == code.strip().upper()


# Collection: courses
class Course(Record):
    id: str = ""
    title: str = Field(..., min_length=1, max_length=200)
    instructor: str = "OmniLearn Academy"
    price: int = Field(..., ge=0)
    original_price: Optional[int] = Field(None, ge=0)
    rating: float = Field(4.8, ge=0, le=5)
    students: int = Field(0, ge=0)
    image: str = ""
    promo_video: Optional[str] = None
    video_aspect_ratio: Optional[Literal["16:9", "9:16"]] = None
    category: str = "General"
    level: Literal["Beginner", "Intermediate", "Advanced"] = "Beginner"
    description: str = ""
    curriculum: List[str] = []
    tags: List[str] = []
    faqs: Optional[List[Faq]] = None
    policies: Optional[Policies] = None
    guarantee: Optional[str] = None
    features: Optional[List[str]] = None
    bonuses: Optional[List[Bonus]] = None
    bonus_total_value: Optional[str] = None
    support_email: Optional[str] = None
    support_phone: Optional[str] = None
    reviews: Optional[List[Review]] = None
    coupons: List[Coupon] = []
    ai_context: Optional[str] = None


class CartItem(Course):
    cart_id: str


# Collection: transactions
class Transaction(Record):
    id: str
    store_key: Optional[str] = None
    transaction_id: Optional[str] = None
    course_id: str
    course_title: str = ""
    amount: float
    original_amount: Optional[float] = None
    coupon_code: Optional[str] = None
    date: str
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    status: Literal["success", "failed", "pending"] = "pending"
    approval_status: Optional[Literal["pending", "approved", "rejected"]] = "pending"
    failure_reason: Optional[str] = None


# Document: merchantSettings
class MerchantSettings(Record):
    name: str
    upi_id: str
    merchant_id: str = ""
    number: str = ""


class CustomerDetails(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    phone: str = Field(..., pattern=r"^[0-9]{10,}$")


# View states
class CatalogView(Record):
    type: Literal["CATALOG"] = "CATALOG"
    category: Optional[str] = None


class HomeView(Record):
    type: Literal["HOME"] = "HOME"


class CourseDetailView(Record):
    type: Literal["COURSE_DETAIL"] = "COURSE_DETAIL"
    course_id: str


class CheckoutView(Record):
    type: Literal["CHECKOUT"] = "CHECKOUT"


class AdminLoginView(Record):
    type: Literal["ADMIN_LOGIN"] = "ADMIN_LOGIN"


class SellerDashboardView(Record):
    type: Literal["SELLER_DASHBOARD"] = "SELLER_DASHBOARD"


ViewState = Union[
    CatalogView,
    HomeView,
    CourseDetailView,
    CheckoutView,
    AdminLoginView,
    SellerDashboardView,
]


def parse_records(model, data: Optional[Dict[str, dict]], key_field: str = "id") -> list:
    """Turn a keyed namespace snapshot into validated records, dropping malformed ones."""
    out = []
    for key, value in (data or {}).items():
        if not isinstance(value, dict):
            logger.warning("Skipping malformed %s record %s", model.__name__, key)
            continue
        try:
            out.append(model.model_validate({**value, key_field: key}))
        except ValidationError as e:
            logger.warning("Skipping invalid %s record %s: %s", model.__name__, key, e.errors())
    return out
