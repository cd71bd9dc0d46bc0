"""
Tests for the Spoonacular connector using a mocked requests session.

These tests mock the requests.Session to avoid making real API calls during testing.
The tests verify that:
- Internal search parameters are translated to Spoonacular's vocabulary
- Search results are memoized by parameter value, not object identity
- A missing API key is a fatal configuration error for search
- Single-recipe lookups short-circuit on foreign ids and return None on failure
- Ingredient autocomplete and image lookups degrade to []/None
"""

import os
import threading
import time
from unittest.mock import Mock, patch

import pytest
import requests

from mealplanner.connectors.spoonacular_connector import (
    AUTOCOMPLETE_CACHE_TTL_SECONDS,
    INGREDIENT_IMAGE_CACHE_TTL_SECONDS,
    SEARCH_CACHE_TTL_SECONDS,
    SpoonacularAPIError,
    SpoonacularConfigError,
    SpoonacularConnector,
    build_search_params,
)


def _response(json_data=None, status_code=200, reason="OK", text=""):
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.reason = reason
    response.text = text
    response.json.return_value = json_data
    return response


def _connector(*responses, **kwargs):
    session = Mock()
    if len(responses) == 1:
        session.get.return_value = responses[0]
    else:
        session.get.side_effect = list(responses)
    return SpoonacularConnector(session=session, **kwargs), session


SEARCH_PAYLOAD = {
    "results": [
        {"id": 1, "title": "Pancakes", "dishTypes": ["breakfast"], "diets": ["vegetarian"]},
        {"id": 2, "title": "Tacos", "cuisines": ["Mexican"], "dishTypes": ["main course"]},
    ]
}


class TestBuildSearchParams:

    def test_defaults(self):
        params = build_search_params()
        assert params == {
            "number": 15,
            "offset": 0,
            "addRecipeInformation": True,
            "addRecipeNutrition": True,
            "fillIngredients": True,
        }

    def test_maps_internal_vocabulary(self):
        params = build_search_params(
            search_query="pasta",
            diet_type="keto",
            cuisine="italian",
            meal_type="lunch",
            max_calories=600,
            limit=5,
            offset=10,
        )
        assert params["query"] == "pasta"
        assert params["diet"] == "ketogenic"
        assert params["cuisine"] == "italian"
        assert params["type"] == "main course"
        assert params["maxCalories"] == 600
        assert params["number"] == 5
        assert params["offset"] == 10

    def test_dinner_and_gluten_free(self):
        params = build_search_params(meal_type="dinner", diet_type="gluten-free")
        assert params["type"] == "main course"
        assert params["diet"] == "gluten free"

    @pytest.mark.parametrize("value", ["all", "brunch", "", None])
    def test_all_and_unknown_values_omitted(self, value):
        params = build_search_params(diet_type=value, meal_type=value, cuisine="all")
        assert "diet" not in params
        assert "type" not in params
        assert "cuisine" not in params


@patch.dict(os.environ, {"SPOONACULAR_API_KEY": "test-key"})
class TestSearchRecipes:

    def test_search_normalizes_results(self):
        connector, session = _connector(_response(SEARCH_PAYLOAD))

        results = connector.search_recipes(search_query="pancakes", diet_type="vegetarian")

        assert [r.id for r in results] == ["spoon-1", "spoon-2"]
        assert results[0].meal_type == "breakfast"
        assert results[1].cuisine == "mexican"

        url = session.get.call_args.args[0]
        params = session.get.call_args.kwargs["params"]
        assert url == "https://api.spoonacular.com/recipes/complexSearch"
        assert params["apiKey"] == "test-key"
        assert params["query"] == "pancakes"
        assert params["diet"] == "vegetarian"
        assert params["addRecipeInformation"] == "true"
        assert session.get.call_args.kwargs["timeout"] == connector.timeout

    def test_identical_params_are_memoized(self):
        connector, session = _connector(_response(SEARCH_PAYLOAD))

        first = connector.search_recipes(search_query="tacos", cuisine="mexican")
        second = connector.search_recipes(cuisine="mexican", search_query="tacos")

        assert session.get.call_count == 1
        assert [r.id for r in first] == [r.id for r in second]

    def test_different_params_call_again(self):
        connector, session = _connector(_response(SEARCH_PAYLOAD))

        connector.search_recipes(search_query="tacos")
        connector.search_recipes(search_query="soup")

        assert session.get.call_count == 2

    def test_clear_caches_forces_refetch(self):
        connector, session = _connector(_response(SEARCH_PAYLOAD))

        connector.search_recipes(search_query="tacos")
        connector.clear_caches()
        connector.search_recipes(search_query="tacos")

        assert session.get.call_count == 2

    def test_empty_results(self):
        connector, _ = _connector(_response({}))
        assert connector.search_recipes() == []

    def test_upstream_error_raises_and_is_not_cached(self):
        connector, session = _connector(
            _response(status_code=402, reason="Payment Required"),
            _response(SEARCH_PAYLOAD),
        )

        with pytest.raises(SpoonacularAPIError, match="402") as exc_info:
            connector.search_recipes(search_query="tacos")
        assert exc_info.value.status_code == 402

        results = connector.search_recipes(search_query="tacos")
        assert len(results) == 2
        assert session.get.call_count == 2

    def test_upstream_error_carries_body_text(self):
        connector, _ = _connector(_response(
            status_code=402,
            reason="Payment Required",
            text='{"status":"failure","message":"Your daily points limit has been reached."}',
        ))

        with pytest.raises(SpoonacularAPIError, match="daily points limit") as exc_info:
            connector.search_recipes(search_query="tacos")
        assert exc_info.value.status_code == 402

    @pytest.mark.parametrize("payload", [[{"id": 1}], {"results": {"id": 1}}, "failure"])
    def test_malformed_payload_raises_value_error(self, payload):
        connector, _ = _connector(_response(payload))

        with pytest.raises(ValueError):
            connector.search_recipes(search_query="tacos")
        assert connector.search_cache.size() == 0

    def test_concurrent_identical_searches_share_one_call(self):
        connector, session = _connector()
        started = threading.Event()
        release = threading.Event()

        def slow_get(url, **kwargs):
            started.set()
            release.wait(2)
            return _response(SEARCH_PAYLOAD)

        session.get.side_effect = slow_get
        results = []

        def search():
            results.append(connector.search_recipes(search_query="tacos", cuisine="mexican"))

        threads = [threading.Thread(target=search) for _ in range(3)]
        threads[0].start()
        assert started.wait(2)
        for thread in threads[1:]:
            thread.start()
        time.sleep(0.05)
        release.set()
        for thread in threads:
            thread.join(2)

        assert session.get.call_count == 1
        assert [[r.id for r in found] for found in results] == [["spoon-1", "spoon-2"]] * 3

    def test_explicit_key_overrides_environment(self):
        connector, session = _connector(_response(SEARCH_PAYLOAD), api_key="explicit")
        connector.search_recipes()
        assert session.get.call_args.kwargs["params"]["apiKey"] == "explicit"

    def test_cache_windows(self):
        connector, _ = _connector(_response(SEARCH_PAYLOAD))
        assert connector.search_cache.ttl_seconds == SEARCH_CACHE_TTL_SECONDS == 300
        assert connector.autocomplete_cache.ttl_seconds == AUTOCOMPLETE_CACHE_TTL_SECONDS == 300
        assert connector.image_cache.ttl_seconds == INGREDIENT_IMAGE_CACHE_TTL_SECONDS == 86400


class TestMissingApiKey:

    @patch.dict(os.environ, {}, clear=True)
    def test_search_without_key_raises(self):
        connector, session = _connector(_response(SEARCH_PAYLOAD))

        with pytest.raises(SpoonacularConfigError, match="SPOONACULAR_API_KEY"):
            connector.search_recipes(search_query="tacos")
        session.get.assert_not_called()

    @patch.dict(os.environ, {}, clear=True)
    def test_lookups_without_key_degrade(self):
        connector, session = _connector(_response([]))

        assert connector.get_recipe_by_id("spoon-1") is None
        assert connector.get_ingredient_suggestions("gar") == []
        assert connector.get_ingredient_image("garlic") is None
        session.get.assert_not_called()

    def test_key_read_at_call_time(self):
        connector, session = _connector(_response(SEARCH_PAYLOAD))

        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(SpoonacularConfigError):
                connector.search_recipes()

        with patch.dict(os.environ, {"SPOONACULAR_API_KEY": "late-key"}):
            assert len(connector.search_recipes()) == 2


@patch.dict(os.environ, {"SPOONACULAR_API_KEY": "test-key"})
class TestGetRecipeById:

    def test_non_prefixed_id_short_circuits(self):
        connector, session = _connector(_response({"id": 1, "title": "x"}))

        assert connector.get_recipe_by_id("42") is None
        assert connector.get_recipe_by_id("local-recipe-uuid") is None
        session.get.assert_not_called()

    def test_prefixed_id_fetches_and_normalizes(self):
        connector, session = _connector(_response({"id": 716429, "title": "Pasta", "servings": 2}))

        recipe = connector.get_recipe_by_id("spoon-716429")

        assert recipe.id == "spoon-716429"
        assert recipe.servings == 2
        assert session.get.call_args.args[0] == "https://api.spoonacular.com/recipes/716429/information"
        assert session.get.call_args.kwargs["params"]["includeNutrition"] == "true"

    def test_not_found_returns_none(self):
        connector, _ = _connector(_response(status_code=404, reason="Not Found"))
        assert connector.get_recipe_by_id("spoon-999") is None

    def test_server_error_returns_none(self):
        connector, _ = _connector(_response(status_code=500, reason="Server Error"))
        assert connector.get_recipe_by_id("spoon-1") is None

    def test_network_error_returns_none(self):
        connector, session = _connector(_response())
        session.get.side_effect = requests.ConnectionError("connection refused")
        assert connector.get_recipe_by_id("spoon-1") is None

    def test_malformed_json_returns_none(self):
        response = _response()
        response.json.side_effect = ValueError("Expecting value")
        connector, _ = _connector(response)
        assert connector.get_recipe_by_id("spoon-1") is None


@patch.dict(os.environ, {"SPOONACULAR_API_KEY": "test-key"})
class TestIngredientLookups:

    AUTOCOMPLETE = [
        {"id": 11215, "name": "garlic", "image": "garlic.png"},
        {"id": 1022020, "name": "garlic powder", "image": ""},
    ]

    def test_suggestions(self):
        connector, session = _connector(_response(self.AUTOCOMPLETE))

        suggestions = connector.get_ingredient_suggestions("gar")

        assert [s.name for s in suggestions] == ["garlic", "garlic powder"]
        assert suggestions[0].image_url == "https://spoonacular.com/cdn/ingredients_100x100/garlic.png"
        assert suggestions[1].image_url is None

        params = session.get.call_args.kwargs["params"]
        assert session.get.call_args.args[0] == "https://api.spoonacular.com/food/ingredients/autocomplete"
        assert params["number"] == 10
        assert params["metaInformation"] == "true"

    def test_suggestions_memoized(self):
        connector, session = _connector(_response(self.AUTOCOMPLETE))

        connector.get_ingredient_suggestions("gar")
        connector.get_ingredient_suggestions("gar")

        assert session.get.call_count == 1

    def test_empty_query_returns_empty(self):
        connector, session = _connector(_response(self.AUTOCOMPLETE))
        assert connector.get_ingredient_suggestions("") == []
        session.get.assert_not_called()

    def test_suggestion_failure_returns_empty_and_is_not_cached(self):
        connector, session = _connector(
            _response(status_code=503, reason="Unavailable"),
            _response(self.AUTOCOMPLETE),
        )

        assert connector.get_ingredient_suggestions("gar") == []
        assert len(connector.get_ingredient_suggestions("gar")) == 2
        assert session.get.call_count == 2

    def test_image_lookup(self):
        connector, session = _connector(_response(self.AUTOCOMPLETE[:1]))

        assert connector.get_ingredient_image("garlic") == "https://spoonacular.com/cdn/ingredients_100x100/garlic.png"
        assert connector.get_ingredient_image("garlic") == "https://spoonacular.com/cdn/ingredients_100x100/garlic.png"
        assert session.get.call_count == 1
        assert session.get.call_args.kwargs["params"]["number"] == 1

    def test_image_lookup_no_match(self):
        connector, _ = _connector(_response([]))
        assert connector.get_ingredient_image("unobtainium") is None

    def test_image_lookup_network_error(self):
        connector, session = _connector(_response())
        session.get.side_effect = requests.Timeout("timed out")
        assert connector.get_ingredient_image("garlic") is None

    @pytest.mark.parametrize("payload", [{"status": "failure"}, "failure", 42])
    def test_malformed_payload_degrades(self, payload):
        connector, session = _connector(_response(payload), _response(payload), _response(self.AUTOCOMPLETE))

        assert connector.get_ingredient_suggestions("tom") == []
        assert connector.get_ingredient_image("tomato") is None
        assert len(connector.get_ingredient_suggestions("tom")) == 2

    def test_non_dict_entries_are_skipped(self):
        connector, _ = _connector(_response(["garlic", {"id": 11215, "name": "garlic", "image": "garlic.png"}]))

        assert [s.name for s in connector.get_ingredient_suggestions("gar")] == ["garlic"]

    def test_image_lookup_non_dict_entry(self):
        connector, _ = _connector(_response(["garlic.png"]))
        assert connector.get_ingredient_image("garlic") is None
