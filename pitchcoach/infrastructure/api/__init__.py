"""Client for the coaching service endpoints."""

from .client import CoachApiClient, CoachApiError

__all__ = ["CoachApiClient", "CoachApiError"]
