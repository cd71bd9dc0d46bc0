"""
Query cache client for the meal planner backend.

QueryClient keeps one cache entry per query key (endpoint parts plus parameters),
fetches on a miss with a short timeout, and applies two independent failure
policies per query:
- on_401: "return_null" (no session is a normal state for that route) or "throw"
- on_network_error: "return_null" (default, degrade gracefully) or "throw"

Entries never go stale on their own (stale_time defaults to infinity); they are
invalidated explicitly after a mutation known to affect them. Mutations never
retry and never raise: errors come back in a MutationResult.

fetch_query_result() is the tagged alternative to the "None on failure"
convention: it reports ok / unauthorized / unreachable / error and never raises.
"""

import json
import logging
import math
import os
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Iterable, Optional, Sequence, Tuple, Union

import requests

from mealplanner.api_client import ApiError, api_request, is_network_error, read_body
from mealplanner.utils.cache import KeyedLocks

logger = logging.getLogger(__name__)

RETURN_NULL = "return_null"
THROW = "throw"

DEFAULT_QUERY_TIMEOUT_SECONDS = 3.0
DEFAULT_MUTATION_TIMEOUT_SECONDS = 30.0

QueryKey = Tuple[Hashable, ...]


def get_backend_url() -> str:
    """
    Get the backend API base URL from environment variable or use default.

    Returns:
        Backend URL string with trailing slash removed. Defaults to http://localhost:8000.
    """
    url = os.getenv("BACKEND_URL", "http://localhost:8000")
    return url.rstrip("/")


@dataclass(frozen=True)
class QueryOptions:
    on_401: str = THROW
    on_network_error: str = RETURN_NULL

    def __post_init__(self) -> None:
        for name in ("on_401", "on_network_error"):
            if getattr(self, name) not in (RETURN_NULL, THROW):
                raise ValueError(f"{name} must be '{RETURN_NULL}' or '{THROW}'")


@dataclass
class QueryResult:
    """
    Tagged outcome of a query.

    status is one of "ok", "unauthorized", "unreachable", "error".
    """
    status: str
    data: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


@dataclass
class MutationResult:
    data: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class CacheEntry:
    value: Any
    fetched_at: float
    stale: bool = False


class QueryClient:
    """
    Request-keyed cache in front of the backend API.

    Construct one per process (or per test) and close() it when done.

    Attributes:
        base_url: Backend base URL prepended to relative query paths
        timeout: Total per-query deadline in seconds, body included (expiry counts as a network error)
        stale_time: Seconds before an entry is refetched (default: never)
    """

    def __init__(
        self,
        base_url: str = "",
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_QUERY_TIMEOUT_SECONDS,
        stale_time: float = math.inf,
        mutation_timeout: float = DEFAULT_MUTATION_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.stale_time = stale_time
        self.mutation_timeout = mutation_timeout
        self._clock = clock
        self._entries: Dict[QueryKey, CacheEntry] = {}
        self._key_locks = KeyedLocks()
        # Bumped by invalidate() and clear(); a fetch stores its result only if unchanged
        self._generations: Dict[QueryKey, int] = {}
        self._epoch = 0
        self._lock = threading.Lock()

    @classmethod
    def from_env(cls, **kwargs: Any) -> "QueryClient":
        """Build a client for BACKEND_URL with QUERY_TIMEOUT_SECONDS (default: 3)."""
        timeout = float(os.getenv("QUERY_TIMEOUT_SECONDS", DEFAULT_QUERY_TIMEOUT_SECONDS))
        return cls(base_url=get_backend_url(), timeout=timeout, **kwargs)

    @staticmethod
    def make_key(key: Union[str, Sequence[Hashable]]) -> QueryKey:
        if isinstance(key, str):
            return (key,)
        return tuple(key)

    def url_for(self, key: Union[str, Sequence[Hashable]]) -> str:
        """
        Build the request URL for a query key by joining its parts with "/".

        Examples:
            >>> QueryClient("http://api").url_for(("/api/recipes", 42))
            'http://api/api/recipes/42'
        """
        path = "/".join(str(part) for part in self.make_key(key))
        if path.startswith(("http://", "https://")) or not self.base_url:
            return path
        if not path.startswith("/"):
            path = "/" + path
        return f"{self.base_url}{path}"

    def _fresh_value(self, key: QueryKey) -> Tuple[bool, Any]:
        entry = self._entries.get(key)
        if entry is None or entry.stale:
            return False, None
        if self._clock() - entry.fetched_at > self.stale_time:
            return False, None
        return True, entry.value

    def _generation(self, key: QueryKey) -> Tuple[int, int]:
        return self._epoch, self._generations.get(key, 0)

    def _run_query(self, key: QueryKey, options: QueryOptions) -> Tuple[Any, bool]:
        """Fetch a key from the backend. Returns (value, cacheable)."""
        url = self.url_for(key)
        deadline = time.monotonic() + self.timeout
        try:
            response = self.session.get(
                url,
                timeout=self.timeout,
                stream=True,
                headers={"Accept-Encoding": "identity"},
            )
            try:
                if options.on_401 == RETURN_NULL and response.status_code == 401:
                    logger.debug("Query %s unauthorized, returning None", url)
                    return None, False
                body = read_body(response, deadline)
            finally:
                response.close()

            if not response.ok:
                text = body.decode("utf-8", errors="replace") or response.reason or ""
                raise ApiError(response.status_code, text)
            return (json.loads(body) if body else None), True
        except Exception as e:
            if is_network_error(e) and options.on_network_error == RETURN_NULL:
                logger.warning("Backend unreachable for %s, returning None: %s", url, e)
                return None, False
            raise

    def fetch_query(
        self,
        key: Union[str, Sequence[Hashable]],
        options: Optional[QueryOptions] = None,
    ) -> Any:
        """
        Return the data for a query key, fetching it on a cache miss.

        The whole fetch, body included, must finish within `timeout` seconds;
        running out of time counts as a network error. A result is only stored
        if the key was not invalidated while the fetch was in flight.

        Args:
            key: Query key, e.g. ("/api/recipes", recipe_id)
            options: Failure policies (default: on_401="throw", on_network_error="return_null")

        Returns:
            Parsed JSON body, or None when a "return_null" policy applied.
            None results from a policy are not cached.

        Raises:
            ApiError: Non-2xx response not covered by a "return_null" policy
            requests.RequestException: Network error under on_network_error="throw"
        """
        query_key = self.make_key(key)
        options = options or QueryOptions()

        with self._lock:
            hit, value = self._fresh_value(query_key)
        if hit:
            logger.debug("Query cache hit: %s", query_key)
            return value

        with self._key_locks.hold(query_key):
            with self._lock:
                hit, value = self._fresh_value(query_key)
                generation = self._generation(query_key)
            if hit:
                return value

            logger.debug("Query cache miss: %s", query_key)
            value, cacheable = self._run_query(query_key, options)
            if cacheable:
                with self._lock:
                    if self._generation(query_key) == generation:
                        self._entries[query_key] = CacheEntry(value=value, fetched_at=self._clock())
                    else:
                        logger.debug("Query %s invalidated during fetch, not caching", query_key)
            return value

    def fetch_query_result(self, key: Union[str, Sequence[Hashable]]) -> QueryResult:
        """Fetch a query and report a tagged result instead of None or an exception."""
        try:
            data = self.fetch_query(key, QueryOptions(on_401=THROW, on_network_error=THROW))
        except ApiError as e:
            status = "unauthorized" if e.status_code == 401 else "error"
            return QueryResult(status=status, error=e)
        except Exception as e:
            status = "unreachable" if is_network_error(e) else "error"
            return QueryResult(status=status, error=e)
        return QueryResult(status="ok", data=data)

    def mutate(
        self,
        method: str,
        url: Union[str, Sequence[Hashable]],
        data: Optional[Any] = None,
        invalidate: Union[str, QueryKey, Iterable[Union[str, Sequence[Hashable]]]] = (),
    ) -> MutationResult:
        """
        Send a mutating request and invalidate the given query keys on success.

        invalidate is a list of keys, or a single key (a str or a tuple).
        Never retries and never raises; the error is returned for the caller to
        display.
        """
        target = self.url_for(url)
        try:
            response = api_request(method, target, data, session=self.session, timeout=self.mutation_timeout)
        except Exception as e:
            logger.warning("Mutation %s %s failed: %s", method.upper(), target, e)
            return MutationResult(error=e)

        try:
            body = response.json() if response.content else None
        except ValueError:
            body = None

        if isinstance(invalidate, (str, tuple)):
            invalidate = [invalidate]
        for key in invalidate:
            self.invalidate(key)
        return MutationResult(data=body)

    def invalidate(self, key: Union[str, Sequence[Hashable]]) -> None:
        """
        Mark one query key stale so the next fetch_query refetches it.

        A fetch for the key that is in flight when this is called will not
        store its result.
        """
        query_key = self.make_key(key)
        with self._lock:
            self._generations[query_key] = self._generations.get(query_key, 0) + 1
            entry = self._entries.get(query_key)
            if entry is not None:
                entry.stale = True

    def get_query_data(self, key: Union[str, Sequence[Hashable]]) -> Any:
        with self._lock:
            entry = self._entries.get(self.make_key(key))
        return entry.value if entry else None

    def set_query_data(self, key: Union[str, Sequence[Hashable]], value: Any) -> None:
        with self._lock:
            self._entries[self.make_key(key)] = CacheEntry(value=value, fetched_at=self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generations.clear()
            self._epoch += 1

    def close(self) -> None:
        self.clear()
        self.session.close()
