"""Thin async client for the Spotify Web API.

Shared by :class:`SpotifyCatalogProvider` and :class:`SpotifyUserStore`.
Handles bearer auth, status-code mapping and payload parsing; it performs
no retries.  An HTTP 429 becomes a
:class:`~contextune.utils.errors.RateLimitError`, any other failure an
:class:`~contextune.utils.errors.ExternalServiceError`.

The ``httpx.AsyncClient`` is injected for testability and connection
pooling; when omitted, one is created and owned by this client.
"""

from __future__ import annotations

from typing import Any

import httpx

from contextune.models.track import Artist, Track
from contextune.utils.errors import ExternalServiceError, RateLimitError
from contextune.utils.logging import get_logger

_DEFAULT_BASE_URL = "https://api.spotify.com/v1"
_DEFAULT_TIMEOUT = 15.0
_USER_AGENT = "contextune/0.1.0"
_PROVIDER_NAME = "spotify"


class SpotifyClient:
    """Authenticated GET access to the Spotify Web API.

    Parameters
    ----------
    access_token:
        OAuth bearer token.  Token acquisition and refresh happen outside
        this package.
    base_url:
        API root, overridable for tests.
    market:
        ISO country code passed to market-aware endpoints.
    http_client:
        Optional injected ``httpx.AsyncClient``.
    """

    def __init__(
        self,
        access_token: str,
        base_url: str = _DEFAULT_BASE_URL,
        market: str = "US",
        http_client: httpx.AsyncClient | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        self._access_token = access_token
        self._base_url = base_url.rstrip("/")
        self._market = market
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._logger = get_logger(__name__, provider=_PROVIDER_NAME)

    @property
    def market(self) -> str:
        return self._market

    async def get_json(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """GET ``{base_url}{path}`` and return the decoded JSON body.

        Raises
        ------
        RateLimitError
            On HTTP 429.
        ExternalServiceError
            On any other non-2xx status, transport error or invalid JSON.
        """
        if not self._access_token:
            raise ExternalServiceError(
                message="Spotify access token is not configured",
                provider_name=_PROVIDER_NAME,
            )

        url = f"{self._base_url}{path}"
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Accept": "application/json",
            "User-Agent": _USER_AGENT,
        }
        try:
            response = await self._http.get(url, params=params, headers=headers)
        except httpx.TimeoutException as exc:
            raise ExternalServiceError(
                message=f"Timeout calling Spotify {path}: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc
        except httpx.HTTPError as exc:
            raise ExternalServiceError(
                message=f"HTTP error calling Spotify {path}: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            self._logger.warning("spotify_rate_limited", path=path, retry_after=retry_after)
            raise RateLimitError(
                message=f"Spotify rate limit exceeded on {path} (retry after {retry_after or '?'}s)",
                provider_name=_PROVIDER_NAME,
            )

        try:
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise ExternalServiceError(
                message=f"HTTP {exc.response.status_code} from Spotify {path}",
                provider_name=_PROVIDER_NAME,
            ) from exc
        except ValueError as exc:
            raise ExternalServiceError(
                message=f"Invalid JSON from Spotify {path}: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------

def parse_artist(data: dict[str, Any]) -> Artist:
    return Artist(
        id=data.get("id"),
        name=data.get("name") or "Unknown Artist",
        genres=list(data.get("genres") or []),
        popularity=data.get("popularity"),
        uri=data.get("uri"),
    )


def parse_track(data: dict[str, Any]) -> Track | None:
    """Build a :class:`Track` from a Spotify track object.

    Returns ``None`` for local files and removed tracks, which come back
    without an id.
    """
    track_id = data.get("id")
    if not track_id:
        return None
    album = data.get("album") or {}
    external_urls = data.get("external_urls") or {}
    return Track(
        id=track_id,
        name=data.get("name") or "",
        artists=[parse_artist(a) for a in data.get("artists") or []],
        album=album.get("name"),
        popularity=data.get("popularity"),
        duration_ms=data.get("duration_ms") or 0,
        explicit=bool(data.get("explicit", False)),
        preview_url=data.get("preview_url"),
        external_url=external_urls.get("spotify"),
        uri=data.get("uri"),
    )


def parse_tracks(items: list[dict[str, Any]]) -> list[Track]:
    tracks: list[Track] = []
    for item in items:
        if not item:
            continue
        track = parse_track(item)
        if track is not None:
            tracks.append(track)
    return tracks
