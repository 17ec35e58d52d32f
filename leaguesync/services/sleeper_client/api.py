"""Sleeper API client.

Provides async, read-only access to the Sleeper fantasy API with:
- Rate limiting
- Retry with exponential backoff on transient failures
- Error classification

Sleeper knows nothing about conferences or overrides. Rosters are only
meaningful inside the league that owns them.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx
import redis.asyncio as redis
import structlog

from leaguesync.config import get_settings
from leaguesync.services.errors import ProviderError
from leaguesync.services.sleeper_client.rate_limiter import SleeperRateLimiter

logger = structlog.get_logger(__name__)


class SleeperErrorType(Enum):
    """Classification of Sleeper API errors."""

    NOT_FOUND = "NOT_FOUND"
    TIMEOUT = "TIMEOUT"
    RATE_LIMITED = "RATE_LIMITED"
    INVALID_INPUT = "INVALID_INPUT"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    UNKNOWN = "UNKNOWN"


class SleeperAPIError(ProviderError):
    """Sleeper API error with classification."""

    def __init__(self, message: str, error_type: SleeperErrorType, retryable: bool = False):
        super().__init__(message)
        self.error_type = error_type
        self.retryable = retryable


@dataclass
class RosterMatchup:
    """One roster's scoring line for a week."""

    roster_id: str
    matchup_id: int | None = None
    points: float = 0.0
    projected_points: float | None = None
    starters: list[str] = field(default_factory=list)
    starters_points: list[float] = field(default_factory=list)
    players_points: dict[str, float] = field(default_factory=dict)


@dataclass
class Roster:
    """League roster ownership."""

    roster_id: str
    owner_id: str | None = None


@dataclass
class LeagueUser:
    """League member."""

    user_id: str
    display_name: str


@dataclass
class LeagueState:
    """Sport-wide state: current week and season."""

    week: int
    season: int | None = None
    season_type: str | None = None


def _as_float(value: Any) -> float:
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


def parse_roster_matchup(item: dict[str, Any]) -> RosterMatchup:
    """Parse one entry of the league matchups endpoint."""
    points = item.get("custom_points")
    if points is None:
        points = item.get("points")
    projected = item.get("projected_points")
    return RosterMatchup(
        roster_id=str(item["roster_id"]),
        matchup_id=item.get("matchup_id"),
        points=_as_float(points),
        projected_points=_as_float(projected) if projected is not None else None,
        starters=[str(p) for p in item.get("starters") or []],
        starters_points=[_as_float(p) for p in item.get("starters_points") or []],
        players_points={
            str(player): _as_float(pts)
            for player, pts in (item.get("players_points") or {}).items()
        },
    )


class SleeperClient:
    """
    Sleeper public API client.

    Supports:
    - Rate limiting (shared through Redis when a client is given)
    - Automatic retry with exponential backoff
    - Error classification into SleeperAPIError
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        rate_limiter: SleeperRateLimiter | None = None,
        http_client: httpx.AsyncClient | None = None,
        base_url: str | None = None,
        max_retries: int | None = None,
    ):
        """
        Initialize Sleeper client.

        Args:
            redis_client: Redis client for rate limiting
            rate_limiter: Optional custom rate limiter
            http_client: Optional preconfigured httpx client
            base_url: Override of the configured API base URL
            max_retries: Override of the configured retry count
        """
        self.settings = get_settings()
        self.base_url = (base_url or self.settings.sleeper_base_url).rstrip("/")
        self.max_retries = (
            max_retries if max_retries is not None else self.settings.provider_max_retries
        )
        self.rate_limiter = rate_limiter or (
            SleeperRateLimiter(redis_client, rate=self.settings.provider_rate_limit)
            if redis_client
            else None
        )
        self._http_client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self) -> "SleeperClient":
        """Async context manager entry."""
        await self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        if self._http_client and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.settings.provider_timeout_seconds
            )
            self._owns_client = True
        return self._http_client

    async def _request(self, path: str) -> Any:
        """
        Make a GET request with rate limiting and retry.

        Args:
            path: API path below the base URL

        Returns:
            Decoded JSON body

        Raises:
            SleeperAPIError: If the request fails after retries
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        endpoint = path.split("/")[0] or "default"

        for attempt in range(self.max_retries + 1):
            try:
                if self.rate_limiter:
                    await self.rate_limiter.wait_if_needed(endpoint)

                client = await self._get_client()
                response = await client.get(url, headers={"Accept": "application/json"})
                response.raise_for_status()

                try:
                    return response.json()
                except ValueError as e:
                    raise SleeperAPIError(
                        f"Invalid JSON from {path}",
                        SleeperErrorType.INVALID_RESPONSE,
                        retryable=False,
                    ) from e

            except httpx.TimeoutException:
                if attempt < self.max_retries:
                    wait_time = 2**attempt
                    logger.warning(
                        "timeout_retrying",
                        path=path,
                        attempt=attempt,
                        wait_time=wait_time,
                    )
                    await asyncio.sleep(wait_time)
                    continue
                raise SleeperAPIError(
                    "Request timeout",
                    SleeperErrorType.TIMEOUT,
                    retryable=True,
                )

            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                if status_code == 429 or status_code >= 500:
                    if attempt < self.max_retries:
                        wait_time = 2**attempt
                        logger.warning(
                            "provider_error_retrying",
                            path=path,
                            status_code=status_code,
                            attempt=attempt,
                        )
                        await asyncio.sleep(wait_time)
                        continue
                    error_type = (
                        SleeperErrorType.RATE_LIMITED
                        if status_code == 429
                        else SleeperErrorType.SERVICE_UNAVAILABLE
                    )
                    raise SleeperAPIError(
                        f"Server error: {status_code}", error_type, retryable=True
                    )
                if status_code == 404:
                    raise SleeperAPIError(
                        f"Not found: {path}", SleeperErrorType.NOT_FOUND, retryable=False
                    )
                if 400 <= status_code < 500:
                    logger.warning(
                        "bad_request",
                        path=path,
                        status_code=status_code,
                        response_text=e.response.text[:500] if e.response.text else "",
                    )
                    raise SleeperAPIError(
                        f"Client error {status_code}",
                        SleeperErrorType.INVALID_INPUT,
                        retryable=False,
                    )
                raise SleeperAPIError(str(e), SleeperErrorType.UNKNOWN, retryable=False)

            except httpx.TransportError as e:
                if attempt < self.max_retries:
                    await asyncio.sleep(2**attempt)
                    continue
                raise SleeperAPIError(
                    f"Connection failed: {e}",
                    SleeperErrorType.SERVICE_UNAVAILABLE,
                    retryable=True,
                ) from e

        raise SleeperAPIError("Retries exhausted", SleeperErrorType.UNKNOWN, retryable=True)

    async def fetch_matchups(self, league_id: str, week: int) -> list[RosterMatchup]:
        """
        Fetch every roster's scoring line for a league week.

        Args:
            league_id: Provider league id
            week: Week number

        Returns:
            One entry per roster. Empty for weeks that have not started.
        """
        data = await self._request(f"league/{league_id}/matchups/{week}")
        if data is None:
            return []
        if not isinstance(data, list):
            raise SleeperAPIError(
                "Unexpected matchups payload",
                SleeperErrorType.INVALID_RESPONSE,
            )
        return [parse_roster_matchup(item) for item in data if "roster_id" in item]

    async def fetch_rosters(self, league_id: str) -> list[Roster]:
        """Fetch roster ownership for a league."""
        data = await self._request(f"league/{league_id}/rosters") or []
        return [
            Roster(
                roster_id=str(item["roster_id"]),
                owner_id=str(item["owner_id"]) if item.get("owner_id") else None,
            )
            for item in data
            if "roster_id" in item
        ]

    async def fetch_users(self, league_id: str) -> list[LeagueUser]:
        """Fetch league members."""
        data = await self._request(f"league/{league_id}/users") or []
        return [
            LeagueUser(
                user_id=str(item["user_id"]),
                display_name=item.get("display_name") or item.get("username") or "",
            )
            for item in data
            if "user_id" in item
        ]

    async def fetch_league_state(self) -> LeagueState:
        """Fetch the sport's current week and season."""
        data = await self._request(f"state/{self.settings.sleeper_sport}") or {}
        season = data.get("season")
        try:
            season = int(season) if season is not None else None
        except (TypeError, ValueError):
            season = None
        return LeagueState(
            week=int(data.get("week") or data.get("display_week") or 1),
            season=season,
            season_type=data.get("season_type"),
        )

    async def fetch_current_week(self) -> int:
        """Fetch the sport's current week."""
        state = await self.fetch_league_state()
        return state.week

    async def health_check(self) -> bool:
        """
        Check if the Sleeper API is reachable.

        Returns:
            True if API is healthy
        """
        try:
            await self.fetch_league_state()
            return True
        except SleeperAPIError as e:
            logger.error("sleeper_health_check_failed", error=str(e))
            return False
