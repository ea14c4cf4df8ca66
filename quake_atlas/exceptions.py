"""
Custom exceptions for the quake_atlas pipeline.

Fatal errors abort the run; local errors are recovered where they occur,
recorded, and surfaced in the run audit.
"""
from __future__ import annotations


class PipelineBaseError(Exception):
    """
    Base exception for all pipeline-related errors.
    """

    pass


class ConfigurationError(PipelineBaseError):
    """
    Raised when run parameters are missing or invalid.
    """

    pass


class FetchError(PipelineBaseError):
    """
    Raised when a catalog query for one sub-range fails.

    Covers:
    - non-2xx HTTP responses
    - connection errors and timeouts
    - bodies that are not JSON or have no ``features`` list

    :param sub_range: the date window that failed
    :param cause: the underlying exception or a short reason string
    """

    def __init__(self, sub_range, cause):
        self.sub_range = sub_range
        self.cause = cause
        label = getattr(sub_range, "label", sub_range)
        super().__init__(f"catalog query failed for sub-range {label}: {cause}")


class CatalogUnavailableError(FetchError):
    """
    Raised when every sub-range failed, i.e. the catalog could not be reached at all.
    """

    def __init__(self, failures):
        self.failures = list(failures)
        self.sub_range = None
        self.cause = self.failures[0].cause if self.failures else None
        PipelineBaseError.__init__(
            self, f"catalog unavailable: all {len(self.failures)} sub-range request(s) failed"
        )


class GeometryError(PipelineBaseError):
    """
    A country polygon or event point that is invalid and could not be repaired.

    Country-level errors exclude the country from the join; point-level
    errors leave the event unattributed. Neither aborts the run.
    """

    def __init__(self, entity, cause):
        self.entity = entity
        self.cause = cause
        super().__init__(f"invalid geometry for {entity!r}: {cause}")


class CountryDataError(PipelineBaseError):
    """
    Raised when the country boundary reference data cannot be read or holds
    no usable polygons.
    """

    pass


class DataQualityWarning(UserWarning):
    """
    Non-fatal data issue (sentinel magnitude, missing depth, ...).
    Counted and reported, never stops the run.
    """

    pass
