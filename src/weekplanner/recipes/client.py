"""Recipe catalog clients for nutrition lookups."""

from abc import ABC, abstractmethod
from typing import Any

import httpx
from tenacity import (
    RetryError,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from weekplanner.config import get_settings
from weekplanner.errors import TransientIOError
from weekplanner.logging_config import get_logger
from weekplanner.planning.nutrition import RecipeNutritionSnapshot

logger = get_logger(__name__)


class RecipeCatalog(ABC):
    """Read-only source of per-recipe nutrition snapshots."""

    @abstractmethod
    async def get_recipe(self, recipe_id: str) -> RecipeNutritionSnapshot | None:
        """
        Look up a recipe's nutrition snapshot.

        Returns:
            The snapshot, or None if the catalog does not know the recipe.

        Raises:
            TransientIOError: If the catalog cannot be reached.
        """
        pass

    async def close(self) -> None:
        """Release any held resources."""
        return None


class HttpRecipeCatalog(RecipeCatalog):
    """Recipe catalog reached over HTTP at GET {base_url}/recipes/{id}."""

    BACKOFF_BASE = 0.5
    BACKOFF_MAX = 10

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.recipe_api_base_url).rstrip("/")
        self.timeout = timeout or settings.recipe_api_timeout
        self.max_retries = max_retries or settings.recipe_api_max_retries
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers={
                    "Accept": "application/json",
                    "User-Agent": "Weekplanner/1.0",
                },
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _fetch(self, url: str) -> httpx.Response:
        """GET with retries on timeouts and connection failures."""
        client = await self._get_client()

        @retry(
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.BACKOFF_BASE, max=self.BACKOFF_MAX),
            reraise=True,
        )
        async def _do_request() -> httpx.Response:
            return await client.get(url)

        try:
            return await _do_request()
        except (httpx.TimeoutException, httpx.NetworkError, RetryError) as e:
            logger.error(f"Recipe lookup failed after {self.max_retries} attempts: {url}")
            raise TransientIOError(
                f"Recipe catalog unreachable after {self.max_retries} attempts",
                details={"url": url},
            ) from e

    async def get_recipe(self, recipe_id: str) -> RecipeNutritionSnapshot | None:
        url = f"{self.base_url}/recipes/{recipe_id}"
        response = await self._fetch(url)

        if response.status_code == 404:
            logger.debug(f"Recipe {recipe_id} not in catalog")
            return None
        if response.status_code >= 500:
            logger.error(f"Recipe catalog error {response.status_code} for {url}")
            raise TransientIOError(
                f"Recipe catalog failed with status {response.status_code}",
                details={"url": url, "status_code": response.status_code},
            )
        if response.status_code >= 400:
            logger.warning(f"Recipe catalog rejected {url} with {response.status_code}")
            return None

        try:
            data: Any = response.json()
        except ValueError:
            logger.warning(f"Recipe catalog returned invalid JSON for {recipe_id}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"Recipe catalog returned {type(data).__name__} instead of an object for {recipe_id}")
            return None

        # Some deployments wrap the payload: {"recipe": {...}}
        if isinstance(data.get("recipe"), dict):
            data = data["recipe"]
        data.setdefault("id", recipe_id)
        return RecipeNutritionSnapshot.from_api_response(data)


class InMemoryRecipeCatalog(RecipeCatalog):
    """Catalog backed by a dict of snapshots."""

    def __init__(self, snapshots: list[RecipeNutritionSnapshot] | None = None):
        self._snapshots = {s.recipe_id: s for s in snapshots or []}

    def add(self, snapshot: RecipeNutritionSnapshot) -> None:
        self._snapshots[snapshot.recipe_id] = snapshot

    async def get_recipe(self, recipe_id: str) -> RecipeNutritionSnapshot | None:
        return self._snapshots.get(recipe_id)
