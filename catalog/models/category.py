from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from catalog.database import Base


class Category(Base):
    """Controlled vocabulary entry products can be filed under."""
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, unique=True)

    # Association rows are removed by the ON DELETE CASCADE foreign key
    product_categories = relationship(
        "ProductCategory", back_populates="category", passive_deletes="all"
    )

    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}')>"


class ProductCategory(Base):
    """Link between a product and one of its categories."""
    __tablename__ = "product_categories"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id = Column(
        Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True
    )

    product = relationship("Product", back_populates="product_categories")
    category = relationship("Category", back_populates="product_categories")

    __table_args__ = (
        UniqueConstraint("product_id", "category_id", name="uq_product_category"),
    )

    def __repr__(self):
        return f"<ProductCategory(product_id={self.product_id}, category_id={self.category_id})>"
