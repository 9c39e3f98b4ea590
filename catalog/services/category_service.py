from catalog.models.category import Category, ProductCategory
from catalog.services.vocabulary_service import VocabularyService


class CategoryService(VocabularyService):
    """Category registry: CRUD and name uniqueness for product categories."""

    model = Category
    association_model = ProductCategory
    label = "Category"
