"""
errors.py – Exception types shared by the IMDb/Trakt clients and the syncer.

The syncer only ever recovers from :class:`NotFoundError`; everything else is
propagated to the run boundary.
"""

from __future__ import annotations


class ApiError(RuntimeError):
    """A remote call failed.

    ``status_code`` is the HTTP status of the failed response, or ``None`` for
    network-level failures where no response was received.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(ApiError):
    """The remote service answered HTTP 404 for the requested resource."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=404)


class ItemIdError(ValueError):
    """A remote record did not carry the IMDb id needed to identify it."""


class NotTitleListError(ItemIdError):
    """An IMDb list holds people or images rather than titles."""


class SyncError(RuntimeError):
    """A sync phase failed; the cause is chained via ``__cause__``."""


class MissingConfigError(ValueError):
    """One or more required configuration inputs are missing."""

    def __init__(self, missing: list[str]) -> None:
        super().__init__(
            "missing required configuration: " + ", ".join(missing)
        )
        self.missing = list(missing)
