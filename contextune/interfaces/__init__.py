"""Public interface definitions for every external collaborator.

The recommendation core reaches rule storage, the music catalog, user and
history data, the audit log, playlist records, weather and caching only
through the abstract base classes defined here.  Concrete adapters live in
``contextune.providers`` and are injected by ``contextune.main``.
"""

from contextune.interfaces.cache_provider import ICacheProvider
from contextune.interfaces.catalog_provider import ICatalogProvider, PlaylistSummary
from contextune.interfaces.history_store import IHistoryStore
from contextune.interfaces.log_sink import ILogSink
from contextune.interfaces.playlist_store import IPlaylistStore
from contextune.interfaces.rule_store import IRuleStore
from contextune.interfaces.user_store import IUserStore, UserAccount
from contextune.interfaces.weather_provider import IWeatherProvider

__all__ = [
    "ICacheProvider",
    "ICatalogProvider",
    "IHistoryStore",
    "ILogSink",
    "IPlaylistStore",
    "IRuleStore",
    "IUserStore",
    "IWeatherProvider",
    "PlaylistSummary",
    "UserAccount",
]
