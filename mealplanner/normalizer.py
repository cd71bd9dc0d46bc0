"""
Recipe normalization for external (Spoonacular) recipes.

This module converts raw Spoonacular recipe payloads into the NormalizedRecipe
shape used across the meal planner, and classifies each recipe into the
application's closed vocabularies (diet type, cuisine, meal type).

The normalization:
- Maps extended ingredients to {name, amount, unit, imageUrl}
- Extracts ordered instruction steps (structured steps first, text blob second)
- Reads calories from the nutrient list
- Classifies diet, cuisine and meal type with first-match lookup tables
- Builds up to 5 tags from cuisines, dish types and diets
- Strips HTML from the summary and truncates it to 200 characters

Normalization is pure and total: it never raises, and every missing field
degrades to a documented default.

Normalize flow: Spoonacular JSON -> ExternalRecipe -> normalize_external_recipe() -> NormalizedRecipe
"""

import logging
import math
import re
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from mealplanner.models import ExternalRecipe, NormalizedIngredient, NormalizedRecipe

logger = logging.getLogger(__name__)

# Prefix distinguishing Spoonacular recipes from locally stored ones
EXTERNAL_ID_PREFIX = "spoon-"

INGREDIENT_IMAGE_BASE_URL = "https://spoonacular.com/cdn/ingredients_100x100/"

DEFAULT_SERVINGS = 4
DESCRIPTION_MAX_LENGTH = 200
MAX_TAGS = 5

_HTML_TAG_RE = re.compile(r"<[^>]*>")
_LINE_BREAK_RE = re.compile(r"\r?\n")

# Spoonacular diet label -> internal diet type
DIET_TYPE_MAP = {
    "vegetarian": "vegetarian",
    "vegan": "vegan",
    "ketogenic": "keto",
    "paleo": "paleo",
    "gluten free": "gluten-free",
}

# Ordered (keywords, cuisine) pairs; first match wins
CUISINE_KEYWORDS = [
    (("italian",), "italian"),
    (("mexican",), "mexican"),
    (("chinese",), "chinese"),
    (("indian",), "indian"),
    (("japanese",), "japanese"),
    (("thai",), "thai"),
    (("french",), "french"),
    (("mediterranean", "greek"), "mediterranean"),
    (("american",), "american"),
]

# Ordered (keywords, meal type) pairs; first match wins
MEAL_TYPE_KEYWORDS = [
    (("breakfast",), "breakfast"),
    (("main course", "dinner"), "dinner"),
    (("lunch", "salad", "sandwich"), "lunch"),
    (("snack", "appetizer"), "snack"),
]


def ingredient_image_url(image: Optional[str]) -> Optional[str]:
    """Build the CDN URL for a Spoonacular ingredient image filename."""
    if not image:
        return None
    return f"{INGREDIENT_IMAGE_BASE_URL}{image}"


def format_amount(amount: Optional[float]) -> str:
    """
    Render a numeric ingredient amount as a string.

    Whole numbers render without a decimal part, missing amounts default to "1".

    Examples:
        >>> format_amount(2.0)
        '2'
        >>> format_amount(0.5)
        '0.5'
        >>> format_amount(None)
        '1'
    """
    if amount is None:
        return "1"
    if float(amount).is_integer():
        return str(int(amount))
    return str(amount)


def strip_html(text: str) -> str:
    return _HTML_TAG_RE.sub("", text)


def _first_match(text: str, table) -> Optional[str]:
    for keywords, value in table:
        if any(keyword in text for keyword in keywords):
            return value
    return None


def classify_diet(diets: Optional[List[str]]) -> Optional[str]:
    """
    Map the first Spoonacular diet label to an internal diet type.

    Only the first label is considered, even when the recipe lists several.

    Examples:
        >>> classify_diet(["vegetarian", "vegan"])
        'vegetarian'
        >>> classify_diet(["pescatarian"]) is None
        True
    """
    if not diets:
        return None
    return DIET_TYPE_MAP.get(diets[0])


def classify_cuisine(cuisines: Optional[List[str]]) -> Optional[str]:
    """Map the first Spoonacular cuisine to an internal cuisine by substring match."""
    if not cuisines:
        return None
    return _first_match((cuisines[0] or "").lower(), CUISINE_KEYWORDS)


def classify_meal_type(dish_types: Optional[List[str]]) -> Optional[str]:
    """
    Classify a recipe's meal type from all of its dish types.

    Dish types are joined and searched in priority order:
    breakfast, then dinner, then lunch, then snack.

    Examples:
        >>> classify_meal_type(["lunch", "main course"])
        'dinner'
        >>> classify_meal_type(["dessert"]) is None
        True
    """
    if not dish_types:
        return None
    joined = " ".join(d or "" for d in dish_types).lower()
    return _first_match(joined, MEAL_TYPE_KEYWORDS)


def extract_instructions(recipe: ExternalRecipe) -> List[str]:
    """Return ordered instruction steps, preferring structured steps over the text blob."""
    if recipe.analyzed_instructions:
        return [step.step for step in recipe.analyzed_instructions[0].steps if step.step]
    if recipe.instructions:
        return [line for line in _LINE_BREAK_RE.split(recipe.instructions) if line.strip()]
    return []


def extract_calories(recipe: ExternalRecipe) -> Optional[int]:
    if not recipe.nutrition:
        return None
    for nutrient in recipe.nutrition.nutrients:
        if nutrient.name == "Calories" and nutrient.amount is not None and math.isfinite(nutrient.amount):
            # Round half up, matching the provider's own rounding
            return int(math.floor(nutrient.amount + 0.5))
    return None


def build_description(recipe: ExternalRecipe) -> str:
    if recipe.summary:
        return strip_html(recipe.summary)[:DESCRIPTION_MAX_LENGTH]
    return f"{recipe.title} - Serves {recipe.servings or DEFAULT_SERVINGS}"


def build_tags(recipe: ExternalRecipe) -> List[str]:
    tags = [*(recipe.cuisines or []), *(recipe.dish_types or []), *(recipe.diets or [])]
    return tags[:MAX_TAGS]


def map_ingredients(recipe: ExternalRecipe) -> List[NormalizedIngredient]:
    return [
        NormalizedIngredient(
            name=ing.name or ing.original_name or "",
            amount=format_amount(ing.amount),
            unit=ing.unit or "",
            image_url=ingredient_image_url(ing.image),
        )
        for ing in (recipe.extended_ingredients or [])
    ]


def parse_external_recipe(payload: Dict[str, Any]) -> ExternalRecipe:
    """
    Validate a raw Spoonacular payload leniently.

    Top-level fields that fail validation are dropped (and therefore take their
    defaults) instead of failing the whole payload.

    Args:
        payload: Raw JSON dictionary from the Spoonacular API

    Returns:
        ExternalRecipe, possibly with some fields defaulted
    """
    data = dict(payload) if isinstance(payload, dict) else {}
    while True:
        try:
            return ExternalRecipe.model_validate(data)
        except ValidationError as e:
            bad_fields = {err["loc"][0] for err in e.errors() if err.get("loc")}
            dropped = {key for key in data if key in bad_fields or to_camel(key) in bad_fields}
            if not dropped:
                logger.warning("Recipe payload could not be validated, using defaults: %s", e)
                return ExternalRecipe()
            logger.debug("Dropping invalid recipe fields %s", sorted(map(str, dropped)))
            for field in dropped:
                data.pop(field, None)


def normalize_external_recipe(recipe: Union[ExternalRecipe, Dict[str, Any]]) -> NormalizedRecipe:
    """
    Normalize one Spoonacular recipe into a NormalizedRecipe.

    Args:
        recipe: ExternalRecipe model or raw Spoonacular JSON dictionary

    Returns:
        NormalizedRecipe with:
        - id: "spoon-{id}"
        - description: HTML-stripped summary (<= 200 chars) or "{title} - Serves {servings}"
        - servings: defaults to 4
        - prepTime: always None (Spoonacular only reports total time, used as cookTime)
        - dietType / cuisine / mealType: first-match classification or None
        - tags: first 5 of cuisines + dishTypes + diets
        - averageRating / totalRatings / ratings: None / 0 / []

    Examples:
        >>> r = normalize_external_recipe({"id": 1, "title": "Toast"})
        >>> r.id, r.description, r.servings
        ('spoon-1', 'Toast - Serves 4', 4)
    """
    if not isinstance(recipe, ExternalRecipe):
        recipe = parse_external_recipe(recipe)

    return NormalizedRecipe(
        id=f"{EXTERNAL_ID_PREFIX}{recipe.id}",
        name=recipe.title,
        description=build_description(recipe),
        image_url=recipe.image or None,
        prep_time=None,
        cook_time=recipe.ready_in_minutes or None,
        servings=recipe.servings or DEFAULT_SERVINGS,
        calories=extract_calories(recipe),
        diet_type=classify_diet(recipe.diets),
        cuisine=classify_cuisine(recipe.cuisines),
        meal_type=classify_meal_type(recipe.dish_types),
        ingredients=map_ingredients(recipe),
        instructions=extract_instructions(recipe),
        tags=build_tags(recipe),
        average_rating=None,
        total_ratings=0,
        ratings=[],
    )
