"""Abstract base class for weather providers used during context capture."""

from __future__ import annotations

from abc import ABC, abstractmethod

from contextune.models.context import Weather


class IWeatherProvider(ABC):
    """Contract for current-weather lookups."""

    @abstractmethod
    async def current_weather(self, latitude: float, longitude: float) -> Weather:
        """Current conditions at the coordinates.

        Raises
        ------
        contextune.utils.errors.ExternalServiceError
            If the weather service cannot be reached.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
