"""
Configuration management for the Meal Planner API.

This module centralizes environment variable loading from .env file at project root.
It should be imported early by the backend (api/main.py) to ensure .env is loaded
before any other code accesses environment variables.

In production, .env will not exist, but load_dotenv() is safe to call and will no-op.
Environment variables from the deployment platform will be used instead.

Environment Variables:
- SPOONACULAR_API_KEY: Required for external recipe search and ingredient lookups
- SPOONACULAR_TIMEOUT: Optional, per-request timeout in seconds (defaults to 10)
- BACKEND_URL: Optional, backend URL for QueryClient.from_env() (defaults to http://localhost:8000)
- QUERY_TIMEOUT_SECONDS: Optional, QueryClient per-query timeout (defaults to 3)
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def load_env_file() -> None:
    """
    Load environment variables from .env file at project root.

    Safe to call multiple times. Existing environment variables take precedence
    over values from .env.
    """
    # Get project root: api/config.py -> api/ -> project root
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env", override=False)


# Load .env file on module import
load_env_file()


class SpoonacularConfig:
    """Configuration for the Spoonacular connector."""

    @staticmethod
    def get_api_key() -> Optional[str]:
        """
        Get Spoonacular API key from environment.

        Note:
            This does not raise an error - the connector raises
            SpoonacularConfigError when a search is attempted without a key.
        """
        return os.getenv("SPOONACULAR_API_KEY")

    @staticmethod
    def get_timeout() -> float:
        """Get the Spoonacular request timeout in seconds (default: 10)."""
        return float(os.getenv("SPOONACULAR_TIMEOUT", "10"))


def get_required_env_vars() -> dict:
    """
    Get a dictionary of all required environment variables and their status.

    Returns:
        Dictionary with keys:
        - spoonacular_api_key: bool (True if set)
    """
    return {
        "spoonacular_api_key": SpoonacularConfig.get_api_key() is not None,
    }


def validate_required_config() -> None:
    """
    Validate that all required environment variables are set.

    Raises:
        RuntimeError: If any required configuration is missing
    """
    missing = []

    if not SpoonacularConfig.get_api_key():
        missing.append("SPOONACULAR_API_KEY (required for external recipe search)")

    if missing:
        raise RuntimeError(
            "Missing required environment variables:\n" +
            "\n".join(f"  - {var}" for var in missing) +
            "\n\nPlease create a .env file at the project root with these variables."
        )
