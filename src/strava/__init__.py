"""Async Strava API client."""

from src.strava.client import AsyncStravaClient

__all__ = ["AsyncStravaClient"]
