"""
Base connector abstract class for external recipe sources.

This module defines the abstract base class that all recipe source connectors must
implement. It ensures a consistent interface across different recipe APIs, making
it easy to add new providers next to Spoonacular.

All connectors must:
- Implement the source attribute (e.g., "spoonacular")
- Provide a search_recipes method that normalizes recipes into NormalizedRecipe
- Provide a get_recipe_by_id method that returns None for ids it does not own
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from mealplanner.models import NormalizedRecipe


class BaseRecipeSource(ABC):
    """
    Abstract base class for all external recipe sources.

    Attributes:
        source: String identifier for the provider (e.g., "spoonacular")
    """
    source: str

    @abstractmethod
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
        Search the provider for recipes.

        Args use the application's internal vocabulary (e.g. diet_type="keto",
        meal_type="dinner"); connectors translate them to the provider's terms.

        Returns:
            List of NormalizedRecipe objects
        """
        pass

    @abstractmethod
    def get_recipe_by_id(self, recipe_id: str) -> Optional[NormalizedRecipe]:
        """
        Fetch a single recipe by its prefixed id.

        Returns:
            NormalizedRecipe, or None if the id does not belong to this source
            or the recipe could not be fetched
        """
        pass
