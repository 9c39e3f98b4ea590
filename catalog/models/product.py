from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from catalog.database import Base


class Product(Base):
    """
    Product model representing a catalog item.

    Attributes:
        id: Unique identifier for the product
        name: Product name
        description: Free-form product description
        price: Product price (exact decimal, two places)
        price_currency: Upper-case 3-letter currency code of the price
        is_active: Whether the product is listed as active
        added_time: Timestamp when product was created
        last_edit_time: Timestamp when product was last edited
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    price = Column(Numeric(10, 2), nullable=False, index=True)
    price_currency = Column(String(3), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    added_time = Column(DateTime(timezone=True), nullable=False)
    last_edit_time = Column(DateTime(timezone=True), nullable=False)

    product_categories = relationship(
        "ProductCategory", back_populates="product", cascade="all, delete-orphan"
    )
    product_attributes = relationship(
        "ProductAttribute", back_populates="product", cascade="all, delete-orphan"
    )
    icon = relationship(
        "ProductIcon", back_populates="product", uselist=False, cascade="all, delete-orphan"
    )
    images = relationship(
        "ProductImage", back_populates="product", cascade="all, delete-orphan",
        order_by="ProductImage.id"
    )

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_price_non_negative"),
    )

    @property
    def category_names(self) -> list[str]:
        """Names of assigned categories, skipping links to deleted categories."""
        return [pc.category.name for pc in self.product_categories if pc.category is not None]

    @property
    def attribute_names(self) -> list[str]:
        return [pa.attribute.name for pa in self.product_attributes if pa.attribute is not None]

    @property
    def image_files(self) -> list[str]:
        return [image.image_file for image in self.images]

    @property
    def price_decimal(self) -> Decimal:
        return Decimal(str(self.price))

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', price={self.price} {self.price_currency})>"


class ProductIcon(Base):
    """Icon file owned by exactly one product."""
    __tablename__ = "product_icons"

    id = Column(Integer, primary_key=True, index=True)
    icon_file = Column(String(255), nullable=False, unique=True)
    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, unique=True
    )

    product = relationship("Product", back_populates="icon")

    def __repr__(self):
        return f"<ProductIcon(id={self.id}, icon_file='{self.icon_file}')>"


class ProductImage(Base):
    """Image file, a product may own many of them."""
    __tablename__ = "product_images"

    id = Column(Integer, primary_key=True, index=True)
    image_file = Column(String(255), nullable=False, unique=True)
    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )

    product = relationship("Product", back_populates="images")

    def __repr__(self):
        return f"<ProductImage(id={self.id}, image_file='{self.image_file}')>"
