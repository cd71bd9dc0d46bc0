"""
FastAPI application for the Meal Planner recipe API.

This module defines the REST API endpoints backed by the external recipe provider:
- GET /recipes/external/search: Search Spoonacular recipes (normalized)
- GET /recipes/external/{recipe_id}: Get one Spoonacular recipe by "spoon-{id}"
- GET /ingredients/autocomplete: Ingredient name suggestions
- GET /ingredients/image: Best-match image for an ingredient name
- GET /health: Health check

Run the API with:
    uvicorn api.main:app --reload

Access API documentation at:
    http://localhost:8000/docs (Swagger UI)
"""

# Import config early to load .env file before any other code accesses environment variables
import api.config  # noqa: F401

import logging
import time
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import List, Optional

import requests
from fastapi import Depends, FastAPI, HTTPException, Query, status

from api.config import SpoonacularConfig, get_required_env_vars, validate_required_config
from api.schemas import IngredientImageResponse, RecipeSearchResponse
from mealplanner.connectors.spoonacular_connector import (
    SpoonacularAPIError,
    SpoonacularConfigError,
    SpoonacularConnector,
)
from mealplanner.ingredients import filter_by_ingredient_match
from mealplanner.models import IngredientSuggestion, NormalizedRecipe

logger = logging.getLogger(__name__)

# Track app start time for uptime calculation
_APP_START_TIME = time.time()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Warn at startup about missing configuration; the API still starts so /health can report it."""
    try:
        validate_required_config()
    except RuntimeError as e:
        logger.warning("%s", e)
    yield


app = FastAPI(
    title="Meal Planner Recipe API",
    description="Backend API for searching external recipes and ingredients for household meal planning",
    version="1.0.0",
    tags_metadata=[
        {
            "name": "recipes",
            "description": "Search and fetch recipes from the external recipe provider (Spoonacular).",
        },
        {
            "name": "ingredients",
            "description": "Ingredient autocomplete and images.",
        },
        {
            "name": "health",
            "description": "Health check and monitoring endpoints.",
        },
    ],
    lifespan=lifespan,
)


@lru_cache(maxsize=1)
def get_connector() -> SpoonacularConnector:
    """
    Get the process-wide Spoonacular connector.

    The connector owns the memo caches, so one instance is shared by all requests.
    Tests replace it through app.dependency_overrides.
    """
    return SpoonacularConnector(timeout=SpoonacularConfig.get_timeout())


@app.get(
    "/recipes/external/search",
    response_model=RecipeSearchResponse,
    tags=["recipes"],
    summary="Search external recipes",
    description="Search Spoonacular recipes using the app's diet, cuisine and meal type vocabulary. "
                "Optionally rank by how many ingredients are already in the kitchen.",
)
def search_external_recipes(
    search: Optional[str] = Query(None, description="Free-text search"),
    dietType: Optional[str] = Query(None, description="vegetarian, vegan, keto, paleo, gluten-free or all"),
    cuisine: Optional[str] = Query(None, description="Cuisine name or all"),
    mealType: Optional[str] = Query(None, description="breakfast, lunch, dinner, snack or all"),
    maxCalories: Optional[int] = Query(None, ge=1, description="Maximum calories"),
    limit: int = Query(15, ge=1, le=100, description="Number of recipes"),
    offset: int = Query(0, ge=0, description="Result offset"),
    have: Optional[List[str]] = Query(None, description="Ingredient names in the kitchen inventory"),
    ingredientMatch: int = Query(0, ge=0, le=100, description="Minimum ingredient match percentage"),
    connector: SpoonacularConnector = Depends(get_connector),
) -> RecipeSearchResponse:
    """
    Search external recipes.

    Raises:
        HTTPException 503: If SPOONACULAR_API_KEY is not configured
        HTTPException 502: If Spoonacular returns an error or is unreachable
    """
    logger.info(
        "External search: search=%r dietType=%r cuisine=%r mealType=%r maxCalories=%r limit=%d offset=%d",
        search, dietType, cuisine, mealType, maxCalories, limit, offset,
    )
    try:
        recipes = connector.search_recipes(
            search_query=search,
            diet_type=dietType,
            cuisine=cuisine,
            meal_type=mealType,
            max_calories=maxCalories,
            limit=limit,
            offset=offset,
        )
    except SpoonacularConfigError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except (SpoonacularAPIError, requests.RequestException, ValueError) as e:
        logger.warning("External search failed: %s", e)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Recipe provider error: {e}")

    if have:
        results = filter_by_ingredient_match(recipes, have, ingredientMatch)
    else:
        results = [recipe.model_dump(by_alias=True) for recipe in recipes]

    return RecipeSearchResponse(results=results, count=len(results))


@app.get(
    "/recipes/external/{recipe_id}",
    response_model=NormalizedRecipe,
    tags=["recipes"],
    summary="Get one external recipe",
)
def get_external_recipe(
    recipe_id: str,
    connector: SpoonacularConnector = Depends(get_connector),
) -> NormalizedRecipe:
    """
    Get one external recipe by its prefixed id (e.g. "spoon-716429").

    Raises:
        HTTPException 404: If the id is not an external id, or the recipe could not be fetched
    """
    recipe = connector.get_recipe_by_id(recipe_id)
    if recipe is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Recipe {recipe_id} not found")
    return recipe


@app.get(
    "/ingredients/autocomplete",
    response_model=List[IngredientSuggestion],
    tags=["ingredients"],
    summary="Ingredient name suggestions",
)
def ingredient_autocomplete(
    q: str = Query("", description="Partial ingredient name"),
    connector: SpoonacularConnector = Depends(get_connector),
) -> List[IngredientSuggestion]:
    return connector.get_ingredient_suggestions(q.strip())


@app.get(
    "/ingredients/image",
    response_model=IngredientImageResponse,
    tags=["ingredients"],
    summary="Best-match ingredient image",
)
def ingredient_image(
    name: str = Query(..., min_length=1, description="Ingredient name"),
    connector: SpoonacularConnector = Depends(get_connector),
) -> IngredientImageResponse:
    return IngredientImageResponse(name=name, image_url=connector.get_ingredient_image(name.strip()))


@app.get("/health", tags=["health"])
def health():
    """
    Health check endpoint for monitoring and status checks.

    Returns:
        Dictionary with status, API metadata, uptime and configuration status.
        Always returns 200 OK if the endpoint is reachable.
    """
    uptime_seconds = int(time.time() - _APP_START_TIME)
    return {
        "status": "ok",
        "name": "Meal Planner Recipe API",
        "version": "1.0.0",
        "uptime_seconds": uptime_seconds,
        "config": get_required_env_vars(),
    }
