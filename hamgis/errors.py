"""Exception types raised by hamgis."""

from __future__ import annotations


class HamgisError(Exception):
    """Base class for all hamgis errors."""


class RecordFormatError(HamgisError):
    """A stored measurement dict cannot be turned into a MeasurementRecord."""


class InsufficientPointsError(HamgisError):
    """A measurement cannot be completed (fewer than 3 points or zero area)."""
