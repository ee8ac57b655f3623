"""Domain errors raised by the services and translated to HTTP by the routers."""

from __future__ import annotations


class MarketplaceError(Exception):
    """Base class for every error the API knows how to report."""

    status_code: int = 500
    retryable: bool = False


# -- remote failures ----------------------------------------------------------


class StoreError(MarketplaceError):
    """The remote data store failed; the request can be retried."""

    status_code = 503
    retryable = True


class StorageError(MarketplaceError):
    """The remote object store rejected or failed a request."""

    status_code = 503
    retryable = True


class IdentityProviderError(MarketplaceError):
    """The identity provider rejected or failed a request.

    ``status_code`` mirrors the provider's answer for client errors (bad
    credentials, expired token) and is 503 when it could not be reached.
    """

    def __init__(self, message: str, status_code: int = 503) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = status_code >= 500


# -- validation ---------------------------------------------------------------


class ListingValidationError(MarketplaceError):
    status_code = 422

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class PhoneValidationError(ListingValidationError):
    def __init__(self, message: str) -> None:
        super().__init__(message, field="phone")


class ImageLimitError(ListingValidationError):
    def __init__(self, message: str) -> None:
        super().__init__(message, field="images")


# -- authorization ------------------------------------------------------------


class UnauthenticatedError(MarketplaceError):
    status_code = 401


class NotListingOwnerError(MarketplaceError):
    status_code = 403


# -- lookups ------------------------------------------------------------------


class ListingNotFoundError(MarketplaceError):
    status_code = 404

