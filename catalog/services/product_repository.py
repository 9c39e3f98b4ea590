from typing import Any, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from catalog.exceptions import ValidationError
from catalog.models.attribute import Attribute, ProductAttribute, encode_value
from catalog.models.category import Category, ProductCategory
from catalog.models.product import Product

SORT_FIELDS = {
    "name": Product.name,
    "price": Product.price,
    "added_time": Product.added_time,
    "last_edit_time": Product.last_edit_time,
}


class ProductRepository:
    """Product queries: search, vocabulary filters, sorting and pagination."""

    def __init__(self, db: Session):
        self.db = db

    def find_products(
        self,
        search: Optional[str] = None,
        attributes: Optional[Mapping[str, Any]] = None,
        categories: Optional[Sequence[str]] = None,
        page: int = 1,
        limit: int = 10,
        sort: Optional[str] = None
    ) -> Tuple[List[Product], int]:
        """
        Get one page of products matching all given filters.

        Args:
            search: Case-insensitive substring of name or description
            attributes: Attribute name -> value, product must carry all of them
            categories: Category names, product must be in all of them
            page: Page number (1-indexed)
            limit: Number of items per page
            sort: Sort field, prefix with '-' for descending order

        Returns:
            Tuple of (products on the page, total matching products)
        """
        query = self.db.query(Product)

        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))

        if categories:
            names = list(dict.fromkeys(categories))
            matching = (
                self.db.query(ProductCategory.product_id)
                .join(Category, Category.id == ProductCategory.category_id)
                .filter(Category.name.in_(names))
                .group_by(ProductCategory.product_id)
                .having(func.count(func.distinct(Category.id)) == len(names))
            )
            query = query.filter(Product.id.in_(matching))

        if attributes:
            conditions = [
                and_(Attribute.name == name, ProductAttribute.value == encode_value(value))
                for name, value in attributes.items()
            ]
            matching = (
                self.db.query(ProductAttribute.product_id)
                .join(Attribute, Attribute.id == ProductAttribute.attribute_id)
                .filter(or_(*conditions))
                .group_by(ProductAttribute.product_id)
                .having(func.count(func.distinct(Attribute.name)) == len(attributes))
            )
            query = query.filter(Product.id.in_(matching))

        total = query.count()

        query = query.order_by(*self._order_by(sort))
        offset = (page - 1) * limit
        products = query.offset(offset).limit(limit).all()

        return products, total

    def find_all(self) -> List[Product]:
        """All products, oldest first."""
        return self.db.query(Product).order_by(Product.id).all()

    def count(self, active: Optional[bool] = None) -> int:
        query = self.db.query(Product)
        if active is not None:
            query = query.filter(Product.is_active == active)
        return query.count()

    @staticmethod
    def _order_by(sort: Optional[str]):
        if not sort:
            return [Product.id.desc()]

        descending = sort.startswith("-")
        column = SORT_FIELDS.get(sort.lstrip("-"))
        if column is None:
            raise ValidationError(f"Invalid sort field: {sort}")

        return [column.desc() if descending else column.asc(), Product.id.asc()]
