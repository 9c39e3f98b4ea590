import logging
import secrets
import string
from pathlib import PurePath
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from catalog.context import RequestContext
from catalog.database import commit_or_raise
from catalog.exceptions import NotFoundError, PersistenceError
from catalog.models.product import Product, ProductIcon, ProductImage
from catalog.services.log_service import LogLevel, LogService
from catalog.services.product_service import PRODUCT_LIST_CACHE_PREFIX, product_cache_prefix
from catalog.utils.cache import CacheService, cache_service
from catalog.utils.storage import StorageService

logger = logging.getLogger(__name__)

ICONS = "icons"
IMAGES = "images"
ASSET_NAME_LENGTH = 16
_ALPHABET = string.ascii_letters + string.digits


class AssetService:
    """
    Product icons and images: database rows plus files in storage.

    Creating an asset commits the row before the file is written and
    deleting one removes the row before the file. The two steps are not
    atomic: a failing file operation leaves a row without a file (or a
    file without a row) behind. ``reconcile`` finds and repairs both.
    """

    LOG_NAME = "product-manager"

    def __init__(
        self,
        db: Session,
        context: Optional[RequestContext] = None,
        storage: StorageService = None,
        cache: CacheService = None
    ):
        self.db = db
        self.storage = storage or StorageService()
        self.cache = cache or cache_service
        self.log_service = LogService(db, context)

    def generate_asset_name(self, sub_path: str, original_name: str) -> str:
        """
        Generate a file name not yet used under sub_path.

        A random 16 character token keeps the original extension, if any.
        """
        extension = PurePath(original_name).suffix

        while True:
            token = "".join(secrets.choice(_ALPHABET) for _ in range(ASSET_NAME_LENGTH))
            name = f"{token}{extension}"
            if not self.storage.check_if_asset_exists(sub_path, name):
                return name

    def get_icons_list(self) -> List[ProductIcon]:
        return self.db.query(ProductIcon).order_by(ProductIcon.id).all()

    def get_icon_by_id(self, icon_id: int) -> Optional[ProductIcon]:
        return self.db.query(ProductIcon).filter(ProductIcon.id == icon_id).first()

    def get_icon_by_file_name(self, file_name: str) -> Optional[ProductIcon]:
        return self.db.query(ProductIcon).filter(ProductIcon.icon_file == file_name).first()

    def get_images_list(self) -> List[ProductImage]:
        return self.db.query(ProductImage).order_by(ProductImage.id).all()

    def get_image_by_id(self, image_id: int) -> Optional[ProductImage]:
        return self.db.query(ProductImage).filter(ProductImage.id == image_id).first()

    def get_image_by_file_name(self, file_name: str) -> Optional[ProductImage]:
        return self.db.query(ProductImage).filter(ProductImage.image_file == file_name).first()

    def check_if_product_has_image(self, product: Product, image_id: int) -> bool:
        image = self.get_image_by_id(image_id)
        if image is None:
            return False
        return image.image_file in product.image_files

    def get_product_icon(self, icon_file: str) -> bytes:
        """
        Raises:
            NotFoundError: If the icon file is not in storage
        """
        content = self.storage.get_resource(ICONS, icon_file)
        if content is None:
            raise NotFoundError(f"Product icon not found: {icon_file}")
        return content

    def get_product_image(self, image_file: str) -> bytes:
        """
        Raises:
            NotFoundError: If the image file is not in storage
        """
        content = self.storage.get_resource(IMAGES, image_file)
        if content is None:
            raise NotFoundError(f"Product image not found: {image_file}")
        return content

    def create_product_icon(self, product: Product, original_name: str, content: bytes) -> ProductIcon:
        """
        Set the icon of a product.

        A product that already has an icon gets it replaced.
        """
        if product.icon is not None:
            return self.update_product_icon(product, original_name, content)

        file_name = self.generate_asset_name(ICONS, original_name)

        icon = ProductIcon(icon_file=file_name, product=product)
        self.db.add(icon)
        commit_or_raise(self.db, "Error to create product icon")
        self._write(ICONS, file_name, content, "Error to create product icon")
        self._invalidate_cache(product.id)

        self.log_service.save_log(self.LOG_NAME, f"Product icon created: {file_name}", LogLevel.INFO)
        return icon

    def update_product_icon(self, product: Product, original_name: str, content: bytes) -> ProductIcon:
        """
        Replace the icon file of a product.

        Raises:
            NotFoundError: If the product has no icon
        """
        icon = product.icon
        if icon is None:
            raise NotFoundError(f"Product: {product.name} does not have icon")

        old_file = icon.icon_file
        file_name = self.generate_asset_name(ICONS, original_name)

        icon.icon_file = file_name
        commit_or_raise(self.db, "Error to update product icon")
        self._write(ICONS, file_name, content, "Error to update product icon")
        self._remove(ICONS, old_file, "Error to update product icon")
        self._invalidate_cache(product.id)

        self.log_service.save_log(
            self.LOG_NAME, f"Product: {product.name} icon updated: {file_name}", LogLevel.INFO
        )
        return icon

    def delete_product_icon(self, product: Product) -> None:
        """
        Raises:
            NotFoundError: If the product has no icon
        """
        icon = product.icon
        if icon is None:
            raise NotFoundError(f"Product: {product.name} does not have icon")

        icon_file = icon.icon_file
        self.db.delete(icon)
        commit_or_raise(self.db, "Error to delete product icon")
        self._remove(ICONS, icon_file, "Error to delete product icon")
        self._invalidate_cache(product.id)

        self.log_service.save_log(self.LOG_NAME, f"Product icon deleted: {icon_file}", LogLevel.INFO)

    def create_product_image(self, product: Product, original_name: str, content: bytes) -> ProductImage:
        """Add an image to a product."""
        file_name = self.generate_asset_name(IMAGES, original_name)

        image = ProductImage(image_file=file_name, product=product)
        self.db.add(image)
        commit_or_raise(self.db, "Error to create product image")
        self._write(IMAGES, file_name, content, "Error to create product image")
        self._invalidate_cache(product.id)

        self.log_service.save_log(self.LOG_NAME, f"Product image created: {file_name}", LogLevel.INFO)
        return image

    def delete_product_image(self, image_id: int) -> None:
        """
        Raises:
            NotFoundError: If no image has this id
        """
        image = self.get_image_by_id(image_id)
        if image is None:
            raise NotFoundError(f"Product image not found with id: {image_id}")

        image_file = image.image_file
        product_id = image.product_id
        self.db.delete(image)
        commit_or_raise(self.db, "Error to delete product image")
        self._remove(IMAGES, image_file, "Error to delete product image")
        self._invalidate_cache(product_id)

        self.log_service.save_log(self.LOG_NAME, f"Product image deleted: {image_file}", LogLevel.INFO)

    def delete_product_assets(self, product: Product) -> None:
        """Delete the icon and all images of a product, rows first."""
        if product.icon is not None:
            self.delete_product_icon(product)
        for image_id in [image.id for image in product.images]:
            self.delete_product_image(image_id)

    def reconcile(self, apply: bool = False) -> Dict[str, Any]:
        """
        Compare asset rows with the files in storage.

        Args:
            apply: Delete orphan files and dangling rows instead of only reporting them

        Returns:
            Per sub-path lists of 'dangling_rows' (file names whose file is
            missing) and 'orphan_files' (files no row refers to)
        """
        report: Dict[str, Any] = {}

        for sub_path, model, column in (
            (ICONS, ProductIcon, ProductIcon.icon_file),
            (IMAGES, ProductImage, ProductImage.image_file),
        ):
            known = {row[0] for row in self.db.query(column).all()}
            stored = set(self.storage.list_resources(sub_path))

            dangling = sorted(known - stored)
            orphans = sorted(stored - known)
            report[sub_path] = {"dangling_rows": dangling, "orphan_files": orphans}

            if apply:
                self._repair(sub_path, model, column, dangling, orphans)

        report["applied"] = apply
        if apply:
            self.cache.delete_prefix("product_")
        return report

    def _repair(self, sub_path: str, model, column, dangling: List[str], orphans: List[str]) -> None:
        for name in orphans:
            self._remove(sub_path, name, "Error to delete orphan asset file")

        if dangling:
            try:
                self.db.query(model).filter(column.in_(dangling)).delete(synchronize_session=False)
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                raise PersistenceError("Error to delete dangling asset rows", {"error": str(e)}) from e

        if dangling or orphans:
            self.log_service.save_log(
                self.LOG_NAME,
                f"Reconciled {sub_path}: {len(dangling)} dangling rows, {len(orphans)} orphan files removed",
                LogLevel.NOTICE,
            )

    def _write(self, sub_path: str, name: str, content: bytes, error_message: str) -> None:
        try:
            self.storage.create_resource(sub_path, name, content)
        except OSError as e:
            # The row is already committed and now points at a missing file
            logger.error(f"{error_message}: {sub_path}/{name}: {e}")
            raise PersistenceError(error_message, {"error": str(e)}) from e

    def _remove(self, sub_path: str, name: str, error_message: str) -> None:
        try:
            self.storage.delete_resource(sub_path, name)
        except OSError as e:
            logger.error(f"{error_message}: {sub_path}/{name}: {e}")
            raise PersistenceError(error_message, {"error": str(e)}) from e

    def _invalidate_cache(self, product_id: int) -> None:
        self.cache.delete_prefix(product_cache_prefix(product_id))
        self.cache.delete_prefix(PRODUCT_LIST_CACHE_PREFIX)
