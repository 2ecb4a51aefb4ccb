"""Domain-specific exceptions"""

from typing import Iterable, List, Optional

from dwolla_dashboard.domain.models import ProviderErrorDetail


class DashboardError(Exception):
    """Base exception; ``http_status`` is what the API answers with"""

    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(DashboardError):
    """Dwolla credentials have not been configured yet"""

    http_status = 400


class AuthenticationError(DashboardError):
    """Dwolla rejected the client-credentials grant"""

    http_status = 400


class ValidationError(DashboardError):
    """Missing or invalid request fields"""

    http_status = 400


class DuplicateError(DashboardError):
    """Email or phone already present in the local registry"""

    http_status = 400


class NotFoundError(DashboardError):
    """Unknown local resource id"""

    http_status = 404


class MappingError(DashboardError):
    """Dwolla returned a document we cannot map (missing links, bad ids)"""

    http_status = 500


class ProviderError(DashboardError):
    """
    Dwolla answered with an error, or could not be reached.

    ``provider_status`` is None for network failures. Client-side faults
    (4xx from Dwolla) surface as 400, everything else as 500.
    """

    def __init__(
        self,
        message: Optional[str] = None,
        provider_status: Optional[int] = None,
        errors: Iterable[ProviderErrorDetail] = (),
    ):
        self.errors: List[ProviderErrorDetail] = list(errors)
        self.provider_status = provider_status
        if message is None:
            message = ". ".join(e.message for e in self.errors if e.message) or "Dwolla API request failed"
        super().__init__(message)

    @property
    def http_status(self) -> int:  # type: ignore[override]
        if self.provider_status is not None and 400 <= self.provider_status < 500:
            return 400
        return 500

    def with_message(self, message: str) -> "ProviderError":
        """Same provider failure, friendlier text"""
        return ProviderError(message, provider_status=self.provider_status, errors=self.errors)
