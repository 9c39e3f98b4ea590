from decimal import Decimal
from typing import Any, Optional, Union

from pydantic import BaseModel, Field

AttributeValue = Union[bool, int, float, str]


class ProductCreate(BaseModel):
    """Schema for creating a new product."""
    name: str = Field(..., min_length=1, max_length=255, description="Product name")
    description: str = Field(..., description="Product description")
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, description="Product price")
    currency: str = Field("EUR", pattern=r"^[A-Za-z]{3}$", description="Price currency code")
    categories: list[str] = Field(default_factory=list, description="Category names to assign")
    attributes: dict[str, AttributeValue] = Field(
        default_factory=dict, description="Attribute name -> value to assign"
    )


class ProductUpdate(BaseModel):
    """Schema for updating an existing product. All fields are optional."""
    name: Optional[str] = Field(None, min_length=1, max_length=255, description="Product name")
    description: Optional[str] = Field(None, description="Product description")
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2, description="Product price")
    currency: Optional[str] = Field(None, pattern=r"^[A-Za-z]{3}$", description="Price currency code")


class ProductAttributeData(BaseModel):
    name: str
    value: AttributeValue


class ProductData(BaseModel):
    """Presentation record of a product."""
    id: int
    name: str
    description: str
    price: str
    price_currency: str
    active: bool
    categories: list[str]
    attributes: list[ProductAttributeData]
    icon: Optional[str] = None
    images: list[str]


class PaginationInfo(BaseModel):
    total_pages: int
    current_page_number: int
    total_items: int
    items_per_actual_page: int
    last_page_number: int
    is_next_page_exists: bool
    is_previous_page_exists: bool


class ProductListResponse(BaseModel):
    """Schema for paginated product list response."""
    products: list[ProductData]
    pagination_info: PaginationInfo


class CategoryAssign(BaseModel):
    category_name: str = Field(..., min_length=1, max_length=255)


class AttributeAssign(BaseModel):
    attribute_name: str = Field(..., min_length=1, max_length=255)
    value: AttributeValue


class ProductStats(BaseModel):
    total_products: int
    active_products: int
    inactive_products: int
    total_categories: int
    total_attributes: int


class AssetResponse(BaseModel):
    id: int
    file_name: str
    product_id: int

    @classmethod
    def from_icon(cls, icon: Any) -> "AssetResponse":
        return cls(id=icon.id, file_name=icon.icon_file, product_id=icon.product_id)

    @classmethod
    def from_image(cls, image: Any) -> "AssetResponse":
        return cls(id=image.id, file_name=image.image_file, product_id=image.product_id)
