import json
import math
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from catalog.config import get_settings
from catalog.context import RequestContext
from catalog.database import commit_or_raise
from catalog.exceptions import ConflictError, NotFoundError, ValidationError
from catalog.models.attribute import Attribute, ProductAttribute
from catalog.models.category import Category, ProductCategory
from catalog.models.product import Product
from catalog.services.attribute_service import AttributeService
from catalog.services.category_service import CategoryService
from catalog.services.currency_service import CurrencyService
from catalog.services.log_service import LogLevel, LogService
from catalog.services.product_repository import ProductRepository
from catalog.utils.cache import CacheService, cache_service

settings = get_settings()

CENTS = Decimal("0.01")
# Largest amount a Numeric(10, 2) price column holds
MAX_PRICE = Decimal("99999999.99")


def product_cache_prefix(product_id: int) -> str:
    return f"product_{product_id}_currency_"


PRODUCT_LIST_CACHE_PREFIX = "product_list_search_"


class ProductService:
    """
    Service class for the product catalog.

    This service handles:
    - Creating, editing, deleting and (de)activating products
    - Formatting products for presentation, optionally re-priced
    - Filtered, paginated product lists (with caching)
    - Category and attribute associations
    - Cache invalidation
    """

    LOG_NAME = "product-manager"

    def __init__(
        self,
        db: Session,
        context: Optional[RequestContext] = None,
        cache: CacheService = None,
        currency_service: CurrencyService = None
    ):
        self.db = db
        self.cache = cache or cache_service
        self.currency_service = currency_service or CurrencyService(cache=self.cache)
        self.categories = CategoryService(db, context, self.cache)
        self.attributes = AttributeService(db, context, self.cache)
        self.repository = ProductRepository(db)
        self.log_service = LogService(db, context)

    def get_product_by_id(self, product_id: int) -> Optional[Product]:
        """Get a product by ID."""
        return self.db.query(Product).filter(Product.id == product_id).first()

    def create_product(
        self,
        name: str,
        description: str,
        price: str,
        currency: str = "EUR",
        categories: Optional[Sequence[str]] = None,
        attributes: Optional[Mapping[str, Any]] = None
    ) -> Product:
        """
        Create a new active product.

        Referenced categories and attributes are created on first use.

        Args:
            name: Product name
            description: Product description
            price: Decimal price as a string
            currency: Price currency code (stored upper-case)
            categories: Category names to assign
            attributes: Attribute name -> value to assign

        Returns:
            Created product instance

        Raises:
            ValidationError: If price is not a valid amount
            PersistenceError: If the product cannot be stored
        """
        now = datetime.now(timezone.utc)
        product = Product(
            name=name,
            description=description,
            price=self._parse_price(price),
            price_currency=currency.upper(),
            is_active=True,
            added_time=now,
            last_edit_time=now,
        )

        self.db.add(product)
        commit_or_raise(self.db, "Product create error")
        self.db.refresh(product)

        self.log_service.save_log(self.LOG_NAME, f"Product: {product.name} created", LogLevel.INFO)

        for category_name in dict.fromkeys(categories or []):
            category = self.categories.get_or_create(category_name)
            self.assign_category_to_product(product, category)

        for attribute_name, value in (attributes or {}).items():
            attribute = self.attributes.get_or_create(attribute_name)
            self.assign_attribute_to_product(product, attribute, value)

        self._invalidate_list_cache()
        return product

    def edit_product(
        self,
        product_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
        price: Optional[str] = None,
        currency: Optional[str] = None
    ) -> None:
        """
        Update a product. Fields left as None keep their stored value.

        Raises:
            NotFoundError: If the product doesn't exist
        """
        product = self._get_or_raise(product_id)

        if name is not None:
            product.name = name
        if description is not None:
            product.description = description
        if price is not None:
            product.price = self._parse_price(price)
        if currency is not None:
            product.price_currency = currency.upper()
        product.last_edit_time = datetime.now(timezone.utc)

        commit_or_raise(self.db, "Product edit error")
        self._invalidate_cache(product_id)

        self.log_service.save_log(self.LOG_NAME, f"Product: {product.name} edited", LogLevel.INFO)

    def delete_product(self, product_id: int) -> None:
        """
        Delete a product and its association rows.

        Icon and image rows go with the product; their files are not
        touched (see ``AssetService.delete_product_assets``).

        Raises:
            NotFoundError: If the product doesn't exist
        """
        product = self._get_or_raise(product_id)
        name = product.name

        self.attributes.delete_all_for_product(product_id)
        self.categories.delete_all_for_product(product_id)

        self.db.delete(product)
        commit_or_raise(self.db, f"Product delete error id: {product_id}")
        self._invalidate_cache(product_id)

        self.log_service.save_log(
            self.LOG_NAME, f"Product: {name} with id: {product_id} deleted", LogLevel.INFO
        )

    def activate_product(self, product_id: int) -> None:
        """
        Raises:
            NotFoundError: If the product doesn't exist
            ConflictError: If the product is already active
        """
        self._set_active(product_id, True)

    def deactivate_product(self, product_id: int) -> None:
        """
        Raises:
            NotFoundError: If the product doesn't exist
            ConflictError: If the product is already inactive
        """
        self._set_active(product_id, False)

    def _set_active(self, product_id: int, active: bool) -> None:
        product = self._get_or_raise(product_id)
        state = "active" if active else "inactive"

        if product.is_active == active:
            raise ConflictError(f"Product id: {product_id} is already {state}")

        product.is_active = active
        product.last_edit_time = datetime.now(timezone.utc)
        commit_or_raise(self.db, f"Product {'activate' if active else 'deactivate'} error")
        self._invalidate_cache(product_id)

        self.log_service.save_log(
            self.LOG_NAME,
            f"Product: {product.name} {'activated' if active else 'deactivated'}",
            LogLevel.INFO,
        )

    def format_product_data(self, product: Product, currency: Optional[str] = None) -> Dict[str, Any]:
        """
        Build the presentation record of a product.

        When currency is given and differs from the stored one, the price
        is converted for display. The product itself is never modified.

        Raises:
            ValidationError: If the stored price currency is missing
            UpstreamError: If the exchange rates cannot be fetched
        """
        if product.price_currency is None:
            raise ValidationError(f"Product id: {product.id} has no price currency")

        price = Decimal(str(product.price)).quantize(CENTS)
        price_currency = product.price_currency

        if currency is not None:
            currency = currency.upper()
            if currency != price_currency:
                price = self.currency_service.convert_currency(price_currency, price, currency)
                price_currency = currency

        return {
            "id": product.id,
            "name": product.name,
            "description": product.description,
            "price": str(price),
            "price_currency": price_currency,
            "active": product.is_active,
            "categories": product.category_names,
            "attributes": [
                {"name": pa.attribute.name, "value": pa.typed_value}
                for pa in product.product_attributes
                if pa.attribute is not None
            ],
            "icon": product.icon.icon_file if product.icon is not None else None,
            "images": product.image_files,
        }

    def get_product_data(self, product_id: int, currency: Optional[str] = None) -> Dict[str, Any]:
        """
        Get the presentation record of a product, from cache when possible.

        Raises:
            NotFoundError: If the product doesn't exist
        """
        cache_key = f"{product_cache_prefix(product_id)}{(currency or '').upper()}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return json.loads(cached)

        product = self._get_or_raise(product_id)
        data = self.format_product_data(product, currency)

        self.cache.set(cache_key, json.dumps(data), settings.PRODUCT_CACHE_TTL)
        return data

    def get_products_list(
        self,
        search: Optional[str] = None,
        attributes: Optional[Mapping[str, Any]] = None,
        categories: Optional[Sequence[str]] = None,
        page: int = 1,
        limit: Optional[int] = None,
        sort: Optional[str] = None,
        currency: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Get a filtered, paginated list of formatted products.

        Returns:
            Dictionary with 'products' and 'pagination_info'
        """
        limit = limit or settings.LIMIT_CONTENT_PER_PAGE
        if page < 1 or limit < 1:
            raise ValidationError("Page and limit must be positive")

        attributes = dict(attributes or {})
        categories = list(categories or [])

        cache_key = (
            f"{PRODUCT_LIST_CACHE_PREFIX}{search or ''}"
            f"_attributes_{'_'.join(f'{k}={v}' for k, v in sorted(attributes.items()))}"
            f"_categories_{'_'.join(sorted(categories))}"
            f"_page_{page}_limit_{limit}_sort_{sort or ''}_currency_{(currency or '').upper()}"
        )
        cached = self.cache.get(cache_key)
        if cached is not None:
            return json.loads(cached)

        products, total = self.repository.find_products(
            search=search,
            attributes=attributes,
            categories=categories,
            page=page,
            limit=limit,
            sort=sort,
        )

        data = {
            "products": [self.format_product_data(product, currency) for product in products],
            "pagination_info": self._pagination_info(total, page, limit, len(products)),
        }

        self.cache.set(cache_key, json.dumps(data), settings.PRODUCT_CACHE_TTL)
        return data

    def get_product_stats(self) -> Dict[str, int]:
        """Counts of products and vocabulary entries."""
        return {
            "total_products": self.repository.count(),
            "active_products": self.repository.count(active=True),
            "inactive_products": self.repository.count(active=False),
            "total_categories": self.db.query(Category).count(),
            "total_attributes": self.db.query(Attribute).count(),
        }

    def assign_category_to_product(self, product: Product, category: Category) -> None:
        """
        Raises:
            ValidationError: If the product already has this category
        """
        if category.name in product.category_names:
            raise ValidationError(f"Product: {product.name} already has category: {category.name}")

        product_category = ProductCategory(product=product, category=category)
        self.db.add(product_category)
        commit_or_raise(
            self.db, "Error to assign category to product", conflict="Product already has this category"
        )
        self._invalidate_cache(product.id)

        self.log_service.save_log(
            self.LOG_NAME,
            f"Product: {product.name} assigned to category: {category.name}",
            LogLevel.INFO,
        )

    def remove_category_from_product(self, product: Product, category: Category) -> None:
        """
        Raises:
            NotFoundError: If the product doesn't have this category
        """
        product_category = (
            self.db.query(ProductCategory)
            .filter(
                ProductCategory.product_id == product.id,
                ProductCategory.category_id == category.id
            )
            .first()
        )
        if product_category is None:
            raise NotFoundError(
                f"Category: {category.name} not assigned to product: {product.name}"
            )

        self.db.delete(product_category)
        commit_or_raise(self.db, "Error to remove category from product")
        self.db.expire(product, ["product_categories"])
        self._invalidate_cache(product.id)

        self.log_service.save_log(
            self.LOG_NAME,
            f"Product: {product.name} removed from category: {category.name}",
            LogLevel.INFO,
        )

    def assign_attribute_to_product(self, product: Product, attribute: Attribute, value: Any) -> None:
        """
        Assign an attribute value to a product.

        Assigning an attribute the product already has replaces its value.
        """
        if attribute.name in product.attribute_names:
            self.update_attribute_value(product, attribute, value)
            return

        product_attribute = ProductAttribute(product=product, attribute=attribute)
        product_attribute.set_value(value)
        self.db.add(product_attribute)
        commit_or_raise(
            self.db, "Error to assign attribute to product", conflict="Product already has this attribute"
        )
        self._invalidate_cache(product.id)

        self.log_service.save_log(
            self.LOG_NAME,
            f"Product: {product.name} attribute: {attribute.name} assigned with value: {product_attribute.value}",
            LogLevel.INFO,
        )

    def update_attribute_value(self, product: Product, attribute: Attribute, value: Any) -> None:
        """
        Overwrite the value (and type tag) of an assigned attribute.

        Raises:
            NotFoundError: If the product doesn't have this attribute
        """
        product_attribute = self._get_product_attribute(product, attribute)

        product_attribute.set_value(value)
        commit_or_raise(self.db, "Error to update attribute value")
        self._invalidate_cache(product.id)

        self.log_service.save_log(
            self.LOG_NAME,
            f"Product: {product.name} attribute: {attribute.name} updated to: {product_attribute.value}",
            LogLevel.INFO,
        )

    def remove_attribute_from_product(self, product: Product, attribute: Attribute) -> None:
        """
        Raises:
            NotFoundError: If the product doesn't have this attribute
        """
        product_attribute = self._get_product_attribute(product, attribute)

        self.db.delete(product_attribute)
        commit_or_raise(self.db, "Error to remove attribute from product")
        self.db.expire(product, ["product_attributes"])
        self._invalidate_cache(product.id)

        self.log_service.save_log(
            self.LOG_NAME,
            f"Product: {product.name} attribute: {attribute.name} removed",
            LogLevel.INFO,
        )

    def _get_product_attribute(self, product: Product, attribute: Attribute) -> ProductAttribute:
        product_attribute = (
            self.db.query(ProductAttribute)
            .filter(
                ProductAttribute.product_id == product.id,
                ProductAttribute.attribute_id == attribute.id
            )
            .first()
        )
        if product_attribute is None:
            raise NotFoundError(
                f"Attribute: {attribute.name} not assigned to product: {product.name}"
            )
        return product_attribute

    def _get_or_raise(self, product_id: int) -> Product:
        product = self.get_product_by_id(product_id)
        if product is None:
            raise NotFoundError(f"Product id: {product_id} not found")
        return product

    @staticmethod
    def _parse_price(price: Any) -> Decimal:
        try:
            value = Decimal(str(price)).quantize(CENTS)
        except InvalidOperation as e:
            raise ValidationError(f"Invalid price: {price}") from e
        if not value.is_finite() or value < 0 or value > MAX_PRICE:
            raise ValidationError(f"Invalid price: {price}")
        return value

    @staticmethod
    def _pagination_info(total: int, page: int, limit: int, on_page: int) -> Dict[str, Any]:
        total_pages = math.ceil(total / limit) if total > 0 else 1
        return {
            "total_pages": total_pages,
            "current_page_number": page,
            "total_items": total,
            "items_per_actual_page": on_page,
            "last_page_number": total_pages,
            "is_next_page_exists": page < total_pages,
            "is_previous_page_exists": page > 1,
        }

    def _invalidate_cache(self, product_id: int) -> None:
        """Invalidate cached data of a product and all cached list pages."""
        self.cache.delete_prefix(product_cache_prefix(product_id))
        self._invalidate_list_cache()

    def _invalidate_list_cache(self) -> None:
        self.cache.delete_prefix(PRODUCT_LIST_CACHE_PREFIX)
