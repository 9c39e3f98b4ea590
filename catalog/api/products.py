from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status
from sqlalchemy.orm import Session

from catalog.api.deps import (
    get_cache_service,
    get_currency_service,
    get_db,
    get_request_context,
    get_storage_service,
)
from catalog.context import RequestContext
from catalog.exceptions import NotFoundError, ValidationError
from catalog.services.asset_service import AssetService
from catalog.services.currency_service import CurrencyService
from catalog.services.export_service import MEDIA_TYPES, ExportService
from catalog.services.product_service import ProductService
from catalog.schemas.product import (
    AssetResponse,
    AttributeAssign,
    CategoryAssign,
    ProductCreate,
    ProductData,
    ProductListResponse,
    ProductStats,
    ProductUpdate,
)
from catalog.utils.cache import CacheService
from catalog.utils.storage import StorageService

router = APIRouter(prefix="/products", tags=["Products"])


def get_product_service(
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
    cache: CacheService = Depends(get_cache_service),
    currency_service: CurrencyService = Depends(get_currency_service)
) -> ProductService:
    return ProductService(db, context=context, cache=cache, currency_service=currency_service)


def get_asset_service(
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
    cache: CacheService = Depends(get_cache_service),
    storage: StorageService = Depends(get_storage_service)
) -> AssetService:
    return AssetService(db, context=context, storage=storage, cache=cache)


def get_export_service(
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context)
) -> ExportService:
    return ExportService(db, context=context)


def _parse_attribute_filters(values: List[str]) -> dict:
    filters = {}
    for item in values:
        name, separator, value = item.partition(":")
        if not separator or not name:
            raise ValidationError(f"Invalid attribute filter: {item}, expected name:value")
        filters[name] = value
    return filters


def _get_product(service: ProductService, product_id: int):
    product = service.get_product_by_id(product_id)
    if product is None:
        raise NotFoundError(f"Product id: {product_id} not found")
    return product


@router.post(
    "/",
    response_model=ProductData,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new product"
)
def create_product(
    product_data: ProductCreate,
    service: ProductService = Depends(get_product_service)
):
    """
    Create a new product.

    - **categories**: category names, created when missing
    - **attributes**: attribute name -> value, attributes created when missing
    """
    product = service.create_product(
        name=product_data.name,
        description=product_data.description,
        price=str(product_data.price),
        currency=product_data.currency,
        categories=product_data.categories,
        attributes=product_data.attributes,
    )
    return service.format_product_data(product)


@router.get(
    "/",
    response_model=ProductListResponse,
    summary="List products",
    description="Filtered, sorted and paginated product list. Results are cached in Redis."
)
def list_products(
    search: Optional[str] = Query(None, description="Search in name and description"),
    category: List[str] = Query([], description="Required category names"),
    attribute: List[str] = Query([], description="Required attribute values as name:value"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: Optional[int] = Query(None, ge=1, le=100, description="Items per page"),
    sort: Optional[str] = Query(None, description="name, price, added_time or last_edit_time, '-' for descending"),
    currency: Optional[str] = Query(None, description="Currency to present prices in"),
    service: ProductService = Depends(get_product_service)
):
    return service.get_products_list(
        search=search,
        attributes=_parse_attribute_filters(attribute),
        categories=category,
        page=page,
        limit=limit,
        sort=sort,
        currency=currency,
    )


@router.get("/stats", response_model=ProductStats, summary="Catalog statistics")
def product_stats(service: ProductService = Depends(get_product_service)):
    return service.get_product_stats()


@router.get("/export/{export_format}", summary="Export all products")
def export_products(export_format: str, exporter: ExportService = Depends(get_export_service)):
    """Download the whole catalog as json, xlsx or xml."""
    content = exporter.export(export_format)
    export_format = export_format.lower()
    return Response(
        content=content,
        media_type=MEDIA_TYPES[export_format],
        headers={"Content-Disposition": f'attachment; filename="{ExportService.file_name(export_format)}"'},
    )


@router.get("/{product_id}", response_model=ProductData, summary="Get product by ID")
def get_product(
    product_id: int,
    currency: Optional[str] = Query(None, description="Currency to present the price in"),
    service: ProductService = Depends(get_product_service)
):
    """Get a product, optionally re-priced in another currency."""
    return service.get_product_data(product_id, currency)


@router.patch("/{product_id}", response_model=ProductData, summary="Edit a product")
def edit_product(
    product_id: int,
    product_data: ProductUpdate,
    service: ProductService = Depends(get_product_service)
):
    """Partial update, only provided fields are changed."""
    service.edit_product(
        product_id,
        name=product_data.name,
        description=product_data.description,
        price=str(product_data.price) if product_data.price is not None else None,
        currency=product_data.currency,
    )
    return service.format_product_data(_get_product(service, product_id))


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a product",
    description="Delete a product together with its icon and image files."
)
def delete_product(
    product_id: int,
    service: ProductService = Depends(get_product_service),
    assets: AssetService = Depends(get_asset_service)
):
    product = _get_product(service, product_id)
    assets.delete_product_assets(product)
    service.delete_product(product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{product_id}/activate", status_code=status.HTTP_204_NO_CONTENT)
def activate_product(product_id: int, service: ProductService = Depends(get_product_service)):
    service.activate_product(product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{product_id}/deactivate", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_product(product_id: int, service: ProductService = Depends(get_product_service)):
    service.deactivate_product(product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{product_id}/categories", response_model=ProductData, summary="Assign a category")
def assign_category(
    product_id: int,
    data: CategoryAssign,
    service: ProductService = Depends(get_product_service)
):
    """Assign a category by name, creating the category when missing."""
    product = _get_product(service, product_id)
    category = service.categories.get_or_create(data.category_name)
    service.assign_category_to_product(product, category)
    return service.format_product_data(product)


@router.delete("/{product_id}/categories/{category_id}", response_model=ProductData)
def remove_category(
    product_id: int,
    category_id: int,
    service: ProductService = Depends(get_product_service)
):
    product = _get_product(service, product_id)
    category = service.categories.get_by_id(category_id)
    if category is None:
        raise NotFoundError(f"Category not found with id: {category_id}")
    service.remove_category_from_product(product, category)
    return service.format_product_data(product)


@router.put("/{product_id}/attributes", response_model=ProductData, summary="Set an attribute value")
def assign_attribute(
    product_id: int,
    data: AttributeAssign,
    service: ProductService = Depends(get_product_service)
):
    """Assign an attribute value, replacing the current value if already set."""
    product = _get_product(service, product_id)
    attribute = service.attributes.get_or_create(data.attribute_name)
    service.assign_attribute_to_product(product, attribute, data.value)
    return service.format_product_data(product)


@router.delete("/{product_id}/attributes/{attribute_id}", response_model=ProductData)
def remove_attribute(
    product_id: int,
    attribute_id: int,
    service: ProductService = Depends(get_product_service)
):
    product = _get_product(service, product_id)
    attribute = service.attributes.get_by_id(attribute_id)
    if attribute is None:
        raise NotFoundError(f"Attribute not found with id: {attribute_id}")
    service.remove_attribute_from_product(product, attribute)
    return service.format_product_data(product)


@router.put(
    "/{product_id}/icon",
    response_model=AssetResponse,
    summary="Set product icon",
    description="Upload the product icon, replacing the current one."
)
def set_icon(
    product_id: int,
    file: UploadFile = File(...),
    service: ProductService = Depends(get_product_service),
    assets: AssetService = Depends(get_asset_service)
):
    product = _get_product(service, product_id)
    icon = assets.create_product_icon(product, file.filename or "", file.file.read())
    return AssetResponse.from_icon(icon)


@router.delete("/{product_id}/icon", status_code=status.HTTP_204_NO_CONTENT)
def delete_icon(
    product_id: int,
    service: ProductService = Depends(get_product_service),
    assets: AssetService = Depends(get_asset_service)
):
    assets.delete_product_icon(_get_product(service, product_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{product_id}/images",
    response_model=AssetResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add product image"
)
def add_image(
    product_id: int,
    file: UploadFile = File(...),
    service: ProductService = Depends(get_product_service),
    assets: AssetService = Depends(get_asset_service)
):
    product = _get_product(service, product_id)
    image = assets.create_product_image(product, file.filename or "", file.file.read())
    return AssetResponse.from_image(image)


@router.delete("/{product_id}/images/{image_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_image(
    product_id: int,
    image_id: int,
    service: ProductService = Depends(get_product_service),
    assets: AssetService = Depends(get_asset_service)
):
    product = _get_product(service, product_id)
    if not assets.check_if_product_has_image(product, image_id):
        raise NotFoundError(f"Product image not found with id: {image_id}")
    assets.delete_product_image(image_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/assets/icons", response_model=List[AssetResponse], summary="List all icons")
def list_icons(assets: AssetService = Depends(get_asset_service)):
    return [AssetResponse.from_icon(icon) for icon in assets.get_icons_list()]


@router.get("/assets/images", response_model=List[AssetResponse], summary="List all images")
def list_images(assets: AssetService = Depends(get_asset_service)):
    return [AssetResponse.from_image(image) for image in assets.get_images_list()]


@router.get("/assets/icons/{file_name}", summary="Get icon file")
def get_icon_file(file_name: str, assets: AssetService = Depends(get_asset_service)):
    return Response(content=assets.get_product_icon(file_name), media_type="application/octet-stream")


@router.get("/assets/images/{file_name}", summary="Get image file")
def get_image_file(file_name: str, assets: AssetService = Depends(get_asset_service)):
    return Response(content=assets.get_product_image(file_name), media_type="application/octet-stream")
