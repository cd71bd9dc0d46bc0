"""
Recipe models for the meal planner.

This module defines the two recipe shapes the meal planner works with:
- ExternalRecipe: the raw payload returned by the Spoonacular recipe API
- NormalizedRecipe: the canonical recipe shape used by the rest of the application

All connectors must map their raw recipe data into NormalizedRecipe (see
mealplanner.normalizer). Both models read and write the provider's camelCase keys
(readyInMinutes, dishTypes, imageUrl, ...) while exposing snake_case attributes.

# NOTE: Every ExternalRecipe field has a default. Payloads from the provider are
    frequently partial (search results omit nutrition, detail lookups omit
    analyzedInstructions, ...) and normalization must never fail on them.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ExternalIngredient(BaseModel):
    """One entry of a Spoonacular recipe's extendedIngredients list."""
    id: Optional[int] = Field(None, description="Spoonacular ingredient id")
    aisle: Optional[str] = Field(None, description="Supermarket aisle")
    image: Optional[str] = Field(None, description="Image filename on the Spoonacular CDN (e.g. 'garlic.png')")
    name: Optional[str] = Field(None, description="Ingredient name")
    amount: Optional[float] = Field(None, description="Numeric amount")
    unit: Optional[str] = Field(None, description="Unit of the amount (e.g. 'cups')")
    original: Optional[str] = Field(None, description="Original ingredient line")
    original_name: Optional[str] = Field(None, description="Ingredient name as written in the original line")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class InstructionStep(BaseModel):
    number: Optional[int] = None
    step: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class InstructionGroup(BaseModel):
    name: Optional[str] = None
    steps: List[InstructionStep] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class Nutrient(BaseModel):
    name: Optional[str] = None
    amount: Optional[float] = None
    unit: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class Nutrition(BaseModel):
    nutrients: List[Nutrient] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class ExternalRecipe(BaseModel):
    """
    Raw recipe payload from the Spoonacular API.

    Either structured steps (analyzedInstructions) or a single instructions blob
    may be present. Unknown keys are ignored.
    """
    id: Union[int, str] = Field(0, description="Spoonacular recipe id")
    title: str = Field("", description="Recipe title")
    image: Optional[str] = Field(None, description="Full image URL")
    image_type: Optional[str] = Field(None, description="Image type (jpg, png)")
    ready_in_minutes: Optional[int] = Field(None, description="Total time in minutes")
    servings: Optional[int] = Field(None, description="Number of servings")
    summary: Optional[str] = Field(None, description="HTML summary text")

    cuisines: Optional[List[str]] = Field(None, description="Cuisine names (e.g. 'Italian', 'European')")
    dish_types: Optional[List[str]] = Field(None, description="Dish types (e.g. 'main course', 'salad')")
    diets: Optional[List[str]] = Field(None, description="Diet labels (e.g. 'vegetarian', 'gluten free')")
    occasions: Optional[List[str]] = Field(None, description="Occasions (e.g. 'summer')")

    instructions: Optional[str] = Field(None, description="Free-text instructions blob")
    analyzed_instructions: Optional[List[InstructionGroup]] = Field(None, description="Structured step groups")
    extended_ingredients: Optional[List[ExternalIngredient]] = Field(None, description="Ingredient list")
    nutrition: Optional[Nutrition] = Field(None, description="Nutrition block (only when requested)")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class NormalizedIngredient(BaseModel):
    name: str = Field(..., description="Ingredient name")
    amount: str = Field("1", description="Amount rendered as a string")
    unit: str = Field("", description="Unit, empty string when unitless")
    image_url: Optional[str] = Field(None, description="Ingredient image URL")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NormalizedRecipe(BaseModel):
    """
    Canonical recipe returned to clients.

    External recipes carry no local ratings, so averageRating, totalRatings and
    ratings are always null / 0 / [] for them.
    """
    # Core identifiers
    id: str = Field(..., description="Recipe identifier (format: 'spoon-{external_id}' for Spoonacular recipes)")
    name: str = Field(..., description="Recipe name")
    description: str = Field("", description="Plain-text description, at most 200 characters")
    image_url: Optional[str] = Field(None, description="Recipe image URL")

    # Timing and size
    prep_time: Optional[int] = Field(None, description="Preparation time in minutes")
    cook_time: Optional[int] = Field(None, description="Cooking time in minutes")
    servings: int = Field(4, description="Number of servings")
    calories: Optional[int] = Field(None, description="Calories per serving")

    # Classification (closed vocabularies)
    diet_type: Optional[str] = Field(None, description="vegetarian, vegan, keto, paleo or gluten-free")
    cuisine: Optional[str] = Field(None, description="italian, mexican, chinese, indian, japanese, thai, french, mediterranean or american")
    meal_type: Optional[str] = Field(None, description="breakfast, lunch, dinner or snack")

    # Content
    ingredients: List[NormalizedIngredient] = Field(default_factory=list)
    instructions: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list, description="Up to 5 tags")

    # Ratings (local only)
    average_rating: Optional[float] = Field(None)
    total_ratings: int = Field(0)
    ratings: List[Dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "spoon-716429",
                "name": "Pasta with Garlic, Scallions, Cauliflower & Breadcrumbs",
                "description": "Pasta with Garlic, Scallions, Cauliflower & Breadcrumbs might be just the main course you are searching for.",
                "imageUrl": "https://img.spoonacular.com/recipes/716429-556x370.jpg",
                "prepTime": None,
                "cookTime": 45,
                "servings": 2,
                "calories": 584,
                "dietType": None,
                "cuisine": "italian",
                "mealType": "dinner",
                "ingredients": [{"name": "garlic", "amount": "5", "unit": "cloves", "imageUrl": None}],
                "instructions": ["Boil the pasta."],
                "tags": ["Italian", "main course"],
                "averageRating": None,
                "totalRatings": 0,
                "ratings": [],
            }
        },
    )


class IngredientSuggestion(BaseModel):
    """Ingredient autocomplete suggestion."""
    id: int = Field(..., description="Spoonacular ingredient id")
    name: str = Field(..., description="Ingredient name")
    image_url: Optional[str] = Field(None, description="Ingredient image URL")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
