"""
Ingredient name normalization and matching.

Recipe ingredients, kitchen inventory and shopping list items all spell the same
ingredient differently ("2 large Tomatoes", "tomato", "cherry tomatoes"). This
module reduces names to a canonical form so they can be compared:

- Lowercase, strip punctuation, collapse whitespace
- Resolve known aliases ("scallions" -> "green onion")
- Drop numbers, measurement words, preparation words and stopwords
- Singularize the remaining words

On top of that it computes how much of a recipe a kitchen inventory covers
(ingredient match percentage) for the "cook with what I have" filter.
"""

import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

from mealplanner.models import NormalizedRecipe

INGREDIENT_ALIASES = {
    # Vegetables
    "tomatoes": "tomato",
    "potatoes": "potato",
    "onions": "onion",
    "red onions": "red onion",
    "yellow onions": "yellow onion",
    "white onions": "white onion",
    "carrots": "carrot",
    "cucumbers": "cucumber",
    # Bell peppers only; plain "pepper" may be black pepper
    "bell peppers": "bell pepper",
    "green peppers": "bell pepper",
    "red peppers": "bell pepper",
    "yellow peppers": "bell pepper",
    "orange peppers": "bell pepper",
    "green pepper": "bell pepper",
    "red pepper": "bell pepper",
    # Fruits
    "apples": "apple",
    "bananas": "banana",
    "oranges": "orange",
    "berries": "berry",
    "strawberries": "strawberry",
    "blueberries": "blueberry",
    "raspberries": "raspberry",
    # Proteins
    "chicken breasts": "chicken breast",
    "chicken thighs": "chicken thigh",
    "ground beef": "beef",
    "pork chops": "pork chop",
    "eggs": "egg",
    # Dairy
    "cheeses": "cheese",
    "cheddar cheese": "cheddar",
    "mozzarella cheese": "mozzarella",
    # Grains
    "rices": "rice",
    "pastas": "pasta",
    "noodles": "noodle",
    "breads": "bread",
    # Herbs and spices
    "garlic cloves": "garlic",
    "ginger root": "ginger",
    "basil leaves": "basil",
    "cilantro leaves": "cilantro",
    # Common variations
    "scallions": "green onion",
    "spring onions": "green onion",
    "roma tomatoes": "tomato",
    "cherry tomatoes": "tomato",
    "grape tomatoes": "tomato",
}

MEASUREMENT_WORDS = frozenset([
    # Units
    "cup", "cups", "tablespoon", "tablespoons", "tbsp", "teaspoon", "teaspoons", "tsp",
    "pound", "pounds", "lb", "lbs", "ounce", "ounces", "oz", "gram", "grams", "g",
    "kilogram", "kilograms", "kg", "milliliter", "milliliters", "ml", "liter", "liters", "l",
    "pinch", "dash", "slice", "slices", "piece", "pieces", "can", "cans", "jar", "jars",
    "package", "packages", "pkg", "bunch", "bunches", "clove", "cloves", "head", "heads",
    "inch", "inches", "cm", "mm", "centimeter", "centimeters", "millimeter", "millimeters",
    # Spelled-out numbers
    "one", "two", "three", "four", "five", "six", "seven", "eight", "nine", "ten",
    "eleven", "twelve", "thirteen", "fourteen", "fifteen", "sixteen", "seventeen",
    "eighteen", "nineteen", "twenty", "thirty", "forty", "fifty", "hundred", "thousand",
    # Fractions
    "half", "halves", "third", "thirds", "quarter", "quarters", "eighth", "eighths",
    # Preparation
    "whole", "chopped", "diced", "sliced", "minced", "grated",
    "finely", "coarsely", "thinly", "thickly", "crushed", "shredded",
    "raw", "cooked", "roasted", "boiled", "steamed", "baked", "fried",
    # Size
    "large", "medium", "small", "about", "approximately",
    # State
    "fresh", "frozen",
    # Stopwords
    "of", "a", "an", "the", "to", "and", "or", "with", "for",
])

IRREGULAR_PLURALS = {
    "leaves": "leaf",
    "knives": "knife",
    "wives": "wife",
    "lives": "life",
    "loaves": "loaf",
    "shelves": "shelf",
    "thieves": "thief",
    "wolves": "wolf",
    "tomatoes": "tomato",
    "potatoes": "potato",
    "avocadoes": "avocado",
    "mangoes": "mango",
    "heroes": "hero",
    "echoes": "echo",
}

_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")
_NUMBER_RE = re.compile(r"^\d+(\.\d+)?$")


def singularize(word: str) -> str:
    """
    Reduce a plural English word to its singular form with simple rules.

    Examples:
        >>> singularize("berries"), singularize("leaves"), singularize("glass")
        ('berry', 'leaf', 'glass')
    """
    if word in IRREGULAR_PLURALS:
        return IRREGULAR_PLURALS[word]
    if word.endswith("oes"):
        return word[:-2]
    if word.endswith("ies"):
        return word[:-3] + "y"
    if word.endswith("ves"):
        return word[:-3] + "f"
    if word.endswith(("ses", "shes", "ches", "xes")):
        return word[:-2]
    if word.endswith("s") and not word.endswith(("ss", "us")):
        return word[:-1]
    return word


def normalize_ingredient_name(name: Optional[str]) -> str:
    """
    Normalize an ingredient name for consistent matching.

    Args:
        name: Free-form ingredient name or ingredient line

    Returns:
        Canonical ingredient name (empty string for empty input)

    Examples:
        >>> normalize_ingredient_name("2 Large Tomatoes, diced")
        'tomato'
        >>> normalize_ingredient_name("Green Peppers")
        'bell pepper'
    """
    if not name:
        return ""

    normalized = _PUNCTUATION_RE.sub(" ", name.lower().strip())
    normalized = _WHITESPACE_RE.sub(" ", normalized).strip()

    # Full phrase alias first, before descriptive words like "green" are stripped
    if normalized in INGREDIENT_ALIASES:
        return INGREDIENT_ALIASES[normalized]

    words = [
        word for word in normalized.split(" ")
        if word and not _NUMBER_RE.match(word) and word not in MEASUREMENT_WORDS
    ]

    normalized = " ".join(words).strip()
    if normalized in INGREDIENT_ALIASES:
        return INGREDIENT_ALIASES[normalized]

    singularized = " ".join(singularize(word) for word in words).strip()
    if singularized in INGREDIENT_ALIASES:
        return INGREDIENT_ALIASES[singularized]

    return singularized or normalized


def ingredients_match(name1: str, name2: str) -> bool:
    """Check if two ingredient names match after normalization."""
    return normalize_ingredient_name(name1) == normalize_ingredient_name(name2)


def _item_field(item: Any, field: str) -> Any:
    if isinstance(item, dict):
        return item.get(field)
    return getattr(item, field, None)


def find_matching_ingredient(ingredient_name: str, inventory: Iterable[Any]) -> Optional[Any]:
    """
    Find the first inventory item matching an ingredient name.

    Inventory items may be dicts or objects with a "name" and an optional
    precomputed "normalized_name".
    """
    target = normalize_ingredient_name(ingredient_name)
    for item in inventory:
        stored = _item_field(item, "normalized_name")
        if stored and stored == target:
            return item
        if normalize_ingredient_name(_item_field(item, "name")) == target:
            return item
    return None


def normalize_ingredient_list(names: Iterable[str]) -> Dict[str, str]:
    """Batch normalize ingredient names, keyed by the original name."""
    return {name: normalize_ingredient_name(name) for name in names}


def ingredient_match_percentage(recipe: NormalizedRecipe, inventory_names: Iterable[str]) -> int:
    """
    Percentage of a recipe's ingredients available in the inventory.

    Args:
        recipe: Normalized recipe
        inventory_names: Names of items in the kitchen inventory

    Returns:
        Rounded percentage 0-100 (0 for recipes without ingredients)
    """
    if not recipe.ingredients:
        return 0

    available = {normalize_ingredient_name(name) for name in inventory_names}
    available.discard("")
    matched = sum(
        1 for ing in recipe.ingredients
        if normalize_ingredient_name(ing.name) in available
    )
    return int(round(100 * matched / len(recipe.ingredients)))


def filter_by_ingredient_match(
    recipes: Sequence[NormalizedRecipe],
    inventory_names: Iterable[str],
    min_percentage: int = 0,
) -> List[Dict[str, Any]]:
    """
    Annotate recipes with their match percentage and drop those below the threshold.

    Returns:
        Recipe dictionaries (camelCase keys) with an added "matchPercentage" key,
        sorted by match percentage, highest first. Ties keep their input order.
    """
    inventory = list(inventory_names)
    annotated: List[Dict[str, Any]] = []
    for recipe in recipes:
        percentage = ingredient_match_percentage(recipe, inventory)
        if percentage < min_percentage:
            continue
        recipe_dict = recipe.model_dump(by_alias=True)
        recipe_dict["matchPercentage"] = percentage
        annotated.append(recipe_dict)

    annotated.sort(key=lambda r: r["matchPercentage"], reverse=True)
    return annotated
