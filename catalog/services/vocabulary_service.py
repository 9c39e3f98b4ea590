from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from catalog.context import RequestContext
from catalog.database import commit_or_raise
from catalog.exceptions import ConflictError, NotFoundError, PersistenceError
from catalog.services.log_service import LogLevel, LogService
from catalog.utils.cache import CacheService, cache_service


class VocabularyService:
    """
    Registry of uniquely named entries products can reference.

    Subclasses bind it to a vocabulary model (``model``), the association
    model linking it to products (``association_model``) and a label
    used in messages.

    Name uniqueness is checked before writing and enforced again by the
    unique constraint on the table: a concurrent insert that slips past
    the check surfaces as ``ConflictError`` as well.
    """

    model = None
    association_model = None
    label = "Entry"

    def __init__(
        self,
        db: Session,
        context: Optional[RequestContext] = None,
        cache: CacheService = None
    ):
        self.db = db
        self.cache = cache or cache_service
        self.log_service = LogService(db, context)

    def check_name_exists(self, name: str) -> bool:
        return self.get_by_name(name) is not None

    def get_by_id(self, entry_id: int):
        return self.db.query(self.model).filter(self.model.id == entry_id).first()

    def get_by_name(self, name: str):
        return self.db.query(self.model).filter(self.model.name == name).first()

    def get_names_list(self) -> List[str]:
        """All names, alphabetically."""
        rows = self.db.query(self.model.name).order_by(self.model.name).all()
        return [row.name for row in rows]

    def get_or_create(self, name: str):
        """Get an entry by name, creating it on first use."""
        entry = self.get_by_name(name)
        if entry is None:
            entry = self.create(name)
        return entry

    def create(self, name: str):
        """
        Create a new entry.

        Raises:
            ConflictError: If the name is already taken
        """
        if self.check_name_exists(name):
            raise ConflictError(f"{self.label} name: {name} already exists")

        entry = self.model(name=name)
        self.db.add(entry)
        commit_or_raise(
            self.db,
            f"Error to create {self.label.lower()}",
            conflict=f"{self.label} name: {name} already exists",
        )
        self.db.refresh(entry)

        self.log_service.save_log("product-manager", f"{self.label} created: {name}", LogLevel.INFO)
        return entry

    def rename(self, entry_id: int, new_name: str) -> None:
        """
        Rename an entry.

        Raises:
            NotFoundError: If no entry has this id
            ConflictError: If another entry already uses new_name
        """
        entry = self.get_by_id(entry_id)
        if entry is None:
            raise NotFoundError(f"{self.label} not found with id: {entry_id}")

        existing = self.get_by_name(new_name)
        if existing is not None and existing.id != entry.id:
            raise ConflictError(f"{self.label} name: {new_name} already exists")

        old_name = entry.name
        entry.name = new_name
        commit_or_raise(
            self.db,
            f"Error to rename {self.label.lower()}",
            conflict=f"{self.label} name: {new_name} already exists",
        )
        self._invalidate_product_cache()

        self.log_service.save_log(
            "product-manager", f"{self.label} renamed: {old_name} -> {new_name}", LogLevel.INFO
        )

    def delete(self, entry_id: int) -> None:
        """
        Delete an entry.

        Its product links go with it through the foreign key cascade.

        Raises:
            NotFoundError: If no entry has this id
        """
        entry = self.get_by_id(entry_id)
        if entry is None:
            raise NotFoundError(f"{self.label} not found with id: {entry_id}")

        name = entry.name
        self.db.delete(entry)
        commit_or_raise(self.db, f"Error to delete {self.label.lower()}")
        self._invalidate_product_cache()

        self.log_service.save_log("product-manager", f"{self.label} deleted: {name}", LogLevel.INFO)

    def delete_all_for_product(self, product_id: int) -> int:
        """
        Bulk delete the association rows of a product.

        Runs a single DELETE without loading the rows.

        Returns:
            Number of association rows deleted
        """
        try:
            deleted = (
                self.db.query(self.association_model)
                .filter(self.association_model.product_id == product_id)
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(
                f"Error to delete {self.label.lower()} links by product id: {product_id}",
                {"error": str(e)},
            ) from e
        return deleted

    def _invalidate_product_cache(self) -> None:
        # Vocabulary names appear in every cached product presentation
        self.cache.delete_prefix("product_")
