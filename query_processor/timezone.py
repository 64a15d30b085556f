"""Timezone resolution for result metadata."""

from typing import Optional, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .config import TimezoneConfig
from .errors import ConfigurationError


class TimezoneResolver(Protocol):
    """Source of the timezone ids reported with query results."""

    def results_timezone_id(self) -> str:
        """Timezone the results are expressed in."""
        ...

    def requested_timezone_id(self) -> Optional[str]:
        """Timezone the caller asked for, if any."""
        ...


class ConfiguredTimezoneResolver:
    """Resolver returning fixed, validated timezone ids."""

    def __init__(self, results_timezone: str = "UTC", requested_timezone: Optional[str] = None):
        self._results_timezone = _validate(results_timezone)
        self._requested_timezone = None
        if requested_timezone:
            self._requested_timezone = _validate(requested_timezone)

    @classmethod
    def from_config(cls, config: TimezoneConfig) -> "ConfiguredTimezoneResolver":
        return cls(config.results_timezone, config.requested_timezone)

    def results_timezone_id(self) -> str:
        return self._results_timezone

    def requested_timezone_id(self) -> Optional[str]:
        return self._requested_timezone


def _validate(timezone_id: str) -> str:
    try:
        ZoneInfo(timezone_id)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigurationError(f"Unknown timezone: {timezone_id!r}") from e
    return timezone_id
