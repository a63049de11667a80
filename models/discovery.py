"""
Discovery state models.

`DiscoveryState` is the single source of truth views render from. It is
owned by the DiscoveryOrchestrator; consumers only ever see frozen
snapshots of it.
"""

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from core.exceptions import DiscoveryError
from models.search import SearchQuery, SearchResult


class GeoLocation(BaseModel):
    """Device coordinates; ephemeral, never persisted."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    model_config = ConfigDict(frozen=True)


class GeoFailureReason(str, Enum):
    """Why a geolocation attempt produced no coordinates."""

    DENIED = "denied"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    # a later acquire() replaced this one
    SUPERSEDED = "superseded"


class GeoFailure(BaseModel):
    """Non-fatal geolocation outcome; the caller decides how to degrade."""

    reason: GeoFailureReason
    message: str = ""

    model_config = ConfigDict(frozen=True)


GeoResult = Union[GeoLocation, GeoFailure]


class DiscoveryStatus(str, Enum):
    """States of the discovery state machine."""

    IDLE = "idle"
    LOCATING = "locating"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class ErrorInfo(BaseModel):
    """Serializable snapshot of a DiscoveryError for rendering."""

    code: str
    message: str
    retryable: bool = False

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_exception(cls, exc: DiscoveryError) -> "ErrorInfo":
        return cls(code=exc.code, message=exc.message, retryable=exc.retryable)


class DiscoveryState(BaseModel):
    """What the list and map views render."""

    query: SearchQuery = Field(default_factory=SearchQuery)
    status: DiscoveryStatus = DiscoveryStatus.IDLE
    result: Optional[SearchResult] = None
    error: Optional[ErrorInfo] = None
    location: Optional[GeoLocation] = None
    sequence: int = Field(default=0, ge=0)

    model_config = ConfigDict(frozen=True)

    @property
    def is_busy(self) -> bool:
        return self.status in (DiscoveryStatus.LOCATING, DiscoveryStatus.LOADING)
