from typing import Type

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from catalog.api.deps import get_cache_service, get_db, get_request_context
from catalog.context import RequestContext
from catalog.exceptions import NotFoundError
from catalog.schemas.vocabulary import VocabularyCreate, VocabularyResponse
from catalog.services.attribute_service import AttributeService
from catalog.services.category_service import CategoryService
from catalog.services.vocabulary_service import VocabularyService
from catalog.utils.cache import CacheService


def build_router(prefix: str, tag: str, service_class: Type[VocabularyService]) -> APIRouter:
    """Create the CRUD router of one vocabulary (categories or attributes)."""
    router = APIRouter(prefix=prefix, tags=[tag])
    label = service_class.label

    def get_service(
        db: Session = Depends(get_db),
        context: RequestContext = Depends(get_request_context),
        cache: CacheService = Depends(get_cache_service)
    ) -> VocabularyService:
        return service_class(db, context=context, cache=cache)

    @router.get("/", response_model=list[str], summary=f"List {tag.lower()}")
    def list_entries(service: VocabularyService = Depends(get_service)):
        return service.get_names_list()

    @router.post(
        "/",
        response_model=VocabularyResponse,
        status_code=status.HTTP_201_CREATED,
        summary=f"Create a {label.lower()}"
    )
    def create_entry(data: VocabularyCreate, service: VocabularyService = Depends(get_service)):
        return service.create(data.name)

    @router.get("/{entry_id}", response_model=VocabularyResponse)
    def get_entry(entry_id: int, service: VocabularyService = Depends(get_service)):
        entry = service.get_by_id(entry_id)
        if entry is None:
            raise NotFoundError(f"{label} not found with id: {entry_id}")
        return entry

    @router.patch("/{entry_id}", response_model=VocabularyResponse, summary=f"Rename a {label.lower()}")
    def rename_entry(entry_id: int, data: VocabularyCreate, service: VocabularyService = Depends(get_service)):
        service.rename(entry_id, data.name)
        return service.get_by_id(entry_id)

    @router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_entry(entry_id: int, service: VocabularyService = Depends(get_service)):
        service.delete(entry_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return router


categories_router = build_router("/categories", "Categories", CategoryService)
attributes_router = build_router("/attributes", "Attributes", AttributeService)
