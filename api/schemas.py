"""
Pydantic schemas for FastAPI request and response models.

This module defines the response envelopes used by the API. Recipe and ingredient
payloads themselves are the models from mealplanner.models, serialized with their
camelCase aliases.

The schemas include:
- RecipeSearchResponse: list of normalized recipes (optionally with matchPercentage)
- IngredientImageResponse: best-match image for one ingredient name
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RecipeSearchResponse(BaseModel):
    """
    Response model for the external recipe search endpoint.

    Each result is a NormalizedRecipe dictionary with camelCase keys. When the
    search was filtered by ingredient match, results also carry matchPercentage.
    """
    results: List[Dict[str, Any]] = Field(default_factory=list, description="Normalized recipes")
    count: int = Field(0, ge=0, description="Number of results")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "results": [
                    {
                        "id": "spoon-716429",
                        "name": "Pasta with Garlic, Scallions, Cauliflower & Breadcrumbs",
                        "cuisine": "italian",
                        "mealType": "dinner",
                        "matchPercentage": 60,
                    }
                ],
                "count": 1,
            }
        }
    )


class IngredientImageResponse(BaseModel):
    name: str = Field(..., description="Ingredient name as requested")
    image_url: Optional[str] = Field(None, description="Best-match image URL, or null")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

