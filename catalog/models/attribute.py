from typing import Any

from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from catalog.database import Base


def value_type(value: Any) -> str:
    """Type tag stored next to an attribute value."""
    # bool before int, bool is an int subclass
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "float"
    return "string"


def encode_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def decode_value(raw: str, type_tag: str) -> Any:
    if type_tag == "boolean":
        return raw == "true"
    if type_tag == "integer":
        return int(raw)
    if type_tag == "float":
        return float(raw)
    return raw


class Attribute(Base):
    """Controlled vocabulary entry for free-form product attributes."""
    __tablename__ = "attributes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, unique=True)

    product_attributes = relationship(
        "ProductAttribute", back_populates="attribute", passive_deletes="all"
    )

    def __repr__(self):
        return f"<Attribute(id={self.id}, name='{self.name}')>"


class ProductAttribute(Base):
    """
    Link between a product and an attribute, carrying a typed value.

    The value is stored in its string form; ``type`` records the runtime
    type it was assigned with so ``typed_value`` can decode it.
    """
    __tablename__ = "product_attributes"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    attribute_id = Column(
        Integer, ForeignKey("attributes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    value = Column(String(255), nullable=False)
    type = Column(String(20), nullable=False)

    product = relationship("Product", back_populates="product_attributes")
    attribute = relationship("Attribute", back_populates="product_attributes")

    __table_args__ = (
        UniqueConstraint("product_id", "attribute_id", name="uq_product_attribute"),
    )

    def set_value(self, value: Any) -> None:
        """Store a value and recompute its type tag."""
        self.value = encode_value(value)
        self.type = value_type(value)

    @property
    def typed_value(self) -> Any:
        return decode_value(self.value, self.type)

    def __repr__(self):
        return f"<ProductAttribute(product_id={self.product_id}, attribute_id={self.attribute_id}, value='{self.value}')>"
