"""Exception types shared across the autonomy engine."""

from __future__ import annotations


class AutonomyError(Exception):
    """Base class for autonomy engine errors."""


class VenueError(AutonomyError):
    """The execution venue rejected a request or could not be reached."""


class StoreError(AutonomyError):
    """The shared store is unavailable or returned an unusable value."""
