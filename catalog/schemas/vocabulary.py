from pydantic import BaseModel, ConfigDict, Field


class VocabularyCreate(BaseModel):
    """Schema for creating or renaming a category or attribute."""
    name: str = Field(..., min_length=1, max_length=255, description="Unique name")


class VocabularyResponse(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)
