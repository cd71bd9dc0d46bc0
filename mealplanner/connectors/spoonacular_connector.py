"""
Spoonacular connector for external recipe search.

This connector interfaces with the Spoonacular REST API to search recipes, fetch
single recipes, and look up ingredients, normalizing everything into the meal
planner's internal shapes.

The connector:
- Translates internal search parameters (dietType, mealType, cuisine) into
  Spoonacular's vocabulary, omitting "all" and unrecognized values
- Memoizes search results for 5 minutes, keyed by the canonical JSON of the
  outgoing parameters
- Memoizes ingredient autocomplete for 5 minutes and ingredient images for 24 hours
- Returns None for single-recipe lookups that fail, and [] for failed autocompletes

Requires SPOONACULAR_API_KEY in .env file. The key is read at call time, so a key
added to the environment after startup is picked up without a restart.
"""

import logging
import os
from typing import Any, Dict, List, Optional

import requests

from mealplanner.models import IngredientSuggestion, NormalizedRecipe
from mealplanner.normalizer import EXTERNAL_ID_PREFIX, ingredient_image_url, normalize_external_recipe
from mealplanner.utils.cache import TTLCache, make_cache_key, memoize

from .base import BaseRecipeSource

logger = logging.getLogger(__name__)

# Note: Environment variables should be loaded by api.config module early in the application lifecycle.
# For tests, environment is typically patched before calls, so .env won't interfere.

SPOONACULAR_BASE_URL = "https://api.spoonacular.com/recipes"
SPOONACULAR_FOOD_URL = "https://api.spoonacular.com/food/ingredients"

SEARCH_CACHE_TTL_SECONDS = 5 * 60
AUTOCOMPLETE_CACHE_TTL_SECONDS = 5 * 60
# Ingredient images change far less often than search results
INGREDIENT_IMAGE_CACHE_TTL_SECONDS = 24 * 60 * 60

DEFAULT_SEARCH_LIMIT = 15
AUTOCOMPLETE_LIMIT = 10
DEFAULT_TIMEOUT_SECONDS = 10.0

# Internal meal type -> Spoonacular "type" parameter
MEAL_TYPE_MAP = {
    "breakfast": "breakfast",
    "lunch": "main course",
    "dinner": "main course",
    "snack": "snack",
}

# Internal diet type -> Spoonacular "diet" parameter
DIET_MAP = {
    "vegetarian": "vegetarian",
    "vegan": "vegan",
    "keto": "ketogenic",
    "paleo": "paleo",
    "gluten-free": "gluten free",
}


class SpoonacularConfigError(RuntimeError):
    """Raised when SPOONACULAR_API_KEY is not configured."""
    pass


class SpoonacularAPIError(RuntimeError):
    """
    Exception raised when Spoonacular answers with a non-2xx status.

    Attributes:
        status_code: HTTP status code
        text: Status text or response body
    """

    def __init__(self, status_code: int, text: str = "") -> None:
        self.status_code = status_code
        self.text = text
        super().__init__(f"Spoonacular API error: {status_code} {text}".rstrip())


def build_search_params(
    search_query: Optional[str] = None,
    diet_type: Optional[str] = None,
    cuisine: Optional[str] = None,
    meal_type: Optional[str] = None,
    max_calories: Optional[int] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Translate internal search parameters into Spoonacular complexSearch parameters.

    Args:
        search_query: Free-text query
        diet_type: Internal diet type (vegetarian, vegan, keto, paleo, gluten-free, all)
        cuisine: Cuisine name, forwarded as-is unless "all"
        meal_type: Internal meal type (breakfast, lunch, dinner, snack, all)
        max_calories: Upper calorie bound
        limit: Number of recipes (default: 15)
        offset: Result offset (default: 0)

    Returns:
        Dictionary of query parameters (without apiKey)

    Examples:
        >>> build_search_params(diet_type="keto", meal_type="lunch")["diet"]
        'ketogenic'
        >>> "type" in build_search_params(meal_type="all")
        False
    """
    params: Dict[str, Any] = {
        "number": limit or DEFAULT_SEARCH_LIMIT,
        "offset": offset or 0,
        "addRecipeInformation": True,
        "addRecipeNutrition": True,
        "fillIngredients": True,
    }

    if search_query:
        params["query"] = search_query

    if cuisine and cuisine != "all":
        params["cuisine"] = cuisine

    if meal_type and meal_type != "all":
        mapped = MEAL_TYPE_MAP.get(meal_type)
        if mapped:
            params["type"] = mapped
        else:
            logger.debug("Ignoring unknown meal type %r", meal_type)

    if diet_type and diet_type != "all":
        mapped = DIET_MAP.get(diet_type)
        if mapped:
            params["diet"] = mapped
        else:
            logger.debug("Ignoring unknown diet type %r", diet_type)

    if max_calories:
        params["maxCalories"] = max_calories

    return params


def _encode_params(params: Dict[str, Any]) -> Dict[str, Any]:
    # Spoonacular expects lowercase booleans in the query string
    return {k: ("true" if v is True else "false" if v is False else v) for k, v in params.items()}


class SpoonacularConnector(BaseRecipeSource):
    """
    Connector for the Spoonacular recipe API.

    Each connector instance owns its three memo caches (search, autocomplete,
    ingredient images); construct one per process and share it.
    """
    source = "spoonacular"

    def __init__(
        self,
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        """
        Initialize the Spoonacular connector.

        Args:
            api_key: Spoonacular API key (optional, read from SPOONACULAR_API_KEY at call time if not provided)
            session: requests.Session to use (optional, a new one is created otherwise)
            timeout: Per-request timeout in seconds
        """
        self._api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

        self.search_cache = TTLCache(SEARCH_CACHE_TTL_SECONDS)
        self.autocomplete_cache = TTLCache(AUTOCOMPLETE_CACHE_TTL_SECONDS)
        self.image_cache = TTLCache(INGREDIENT_IMAGE_CACHE_TTL_SECONDS)

        self._fetch_recipes_memoized = memoize(self.search_cache)(self._fetch_recipes)
        self._fetch_suggestions_memoized = memoize(self.autocomplete_cache)(self._fetch_suggestions)
        self._fetch_image_memoized = memoize(self.image_cache)(self._fetch_image)

    @property
    def api_key(self) -> Optional[str]:
        return self._api_key or os.getenv("SPOONACULAR_API_KEY")

    def clear_caches(self) -> None:
        """Clear all memoized results (useful for testing)."""
        self.search_cache.clear()
        self.autocomplete_cache.clear()
        self.image_cache.clear()

    def _get(self, url: str, params: Dict[str, Any]) -> requests.Response:
        query = {"apiKey": self.api_key, **_encode_params(params)}
        return self.session.get(url, params=query, timeout=self.timeout)

    def _fetch_recipes(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        logger.debug("Spoonacular complexSearch: %s", make_cache_key(params))
        response = self._get(f"{SPOONACULAR_BASE_URL}/complexSearch", params)
        if not response.ok:
            raise SpoonacularAPIError(response.status_code, response.text or response.reason or "")
        data = response.json() or {}
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected complexSearch payload: {type(data).__name__}")
        results = data.get("results") or []
        if not isinstance(results, list):
            raise ValueError(f"Unexpected complexSearch results: {type(results).__name__}")
        return [item for item in results if isinstance(item, dict)]

    def search_recipes(
        self,
        search_query: Optional[str] = None,
        diet_type: Optional[str] = None,
        cuisine: Optional[str] = None,
        meal_type: Optional[str] = None,
        max_calories: Optional[int] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[NormalizedRecipe]:
        """
        Search Spoonacular for recipes and normalize the results.

        Identical parameter sets within 5 minutes are served from the search
        cache; concurrent identical searches share a single HTTP call.

        Returns:
            List of NormalizedRecipe objects

        Raises:
            SpoonacularConfigError: If SPOONACULAR_API_KEY is not set
            SpoonacularAPIError: If Spoonacular returns a non-2xx status
            requests.RequestException: On network failures
        """
        if not self.api_key:
            raise SpoonacularConfigError("SPOONACULAR_API_KEY environment variable is not set")

        params = build_search_params(
            search_query=search_query,
            diet_type=diet_type,
            cuisine=cuisine,
            meal_type=meal_type,
            max_calories=max_calories,
            limit=limit,
            offset=offset,
        )
        recipes = self._fetch_recipes_memoized(params)
        logger.info("Spoonacular search returned %d recipes", len(recipes))
        return [normalize_external_recipe(recipe) for recipe in recipes]

    def get_recipe_by_id(self, recipe_id: str) -> Optional[NormalizedRecipe]:
        """
        Fetch one Spoonacular recipe by its prefixed id ("spoon-{id}").

        Ids without the prefix return None without any network call. Upstream
        failures (non-2xx, network errors, malformed JSON) also return None.
        """
        if not recipe_id or not recipe_id.startswith(EXTERNAL_ID_PREFIX):
            return None

        external_id = recipe_id[len(EXTERNAL_ID_PREFIX):]

        if not self.api_key:
            logger.warning("SPOONACULAR_API_KEY not set, cannot fetch recipe %s", recipe_id)
            return None

        try:
            response = self._get(
                f"{SPOONACULAR_BASE_URL}/{external_id}/information",
                {"includeNutrition": True},
            )
            if not response.ok:
                logger.warning(
                    "Spoonacular recipe %s lookup failed: %s %s",
                    external_id, response.status_code, response.reason,
                )
                return None
            return normalize_external_recipe(response.json())
        except (requests.RequestException, ValueError):
            logger.exception("Error fetching recipe %s from Spoonacular", external_id)
            return None

    def _fetch_suggestions(self, query: str) -> List[IngredientSuggestion]:
        response = self._get(
            f"{SPOONACULAR_FOOD_URL}/autocomplete",
            {"query": query, "number": AUTOCOMPLETE_LIMIT, "metaInformation": True},
        )
        if not response.ok:
            raise SpoonacularAPIError(response.status_code, response.text or response.reason or "")
        items = response.json() or []
        if not isinstance(items, list):
            raise ValueError(f"Unexpected autocomplete payload: {type(items).__name__}")
        return [
            IngredientSuggestion(
                id=item.get("id"),
                name=item.get("name") or "",
                image_url=ingredient_image_url(item.get("image")),
            )
            for item in items
            if isinstance(item, dict)
        ]

    def get_ingredient_suggestions(self, query: str) -> List[IngredientSuggestion]:
        """
        Get ingredient autocomplete suggestions for a partial name.

        Returns:
            Up to 10 IngredientSuggestion objects, or [] when the key or query is
            missing or the lookup fails. Failed lookups are not cached.
        """
        if not self.api_key or not query:
            return []

        try:
            return self._fetch_suggestions_memoized(query)
        except (requests.RequestException, ValueError, SpoonacularAPIError) as e:
            logger.warning("Error fetching ingredient suggestions for %r: %s", query, e)
            return []

    def _fetch_image(self, ingredient_name: str) -> Optional[str]:
        response = self._get(
            f"{SPOONACULAR_FOOD_URL}/autocomplete",
            {"query": ingredient_name, "number": 1, "metaInformation": True},
        )
        if not response.ok:
            raise SpoonacularAPIError(response.status_code, response.text or response.reason or "")
        results = response.json() or []
        if not isinstance(results, list):
            raise ValueError(f"Unexpected autocomplete payload: {type(results).__name__}")
        if results and isinstance(results[0], dict) and results[0].get("image"):
            return ingredient_image_url(results[0]["image"])
        return None

    def get_ingredient_image(self, ingredient_name: str) -> Optional[str]:
        """
        Look up the best-matching image URL for an ingredient name.

        Returns:
            CDN image URL, or None if nothing matched or the lookup failed
        """
        if not self.api_key or not ingredient_name:
            return None

        try:
            return self._fetch_image_memoized(ingredient_name)
        except (requests.RequestException, ValueError, SpoonacularAPIError) as e:
            logger.warning("Error fetching ingredient image for %r: %s", ingredient_name, e)
            return None
