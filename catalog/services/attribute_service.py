from catalog.models.attribute import Attribute, ProductAttribute
from catalog.services.vocabulary_service import VocabularyService


class AttributeService(VocabularyService):
    """Attribute registry: CRUD and name uniqueness for product attributes."""

    model = Attribute
    association_model = ProductAttribute
    label = "Attribute"
