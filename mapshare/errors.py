from typing import List, Optional


class MapShareError(Exception):
    """Base class for presence client failures."""


class PermissionDenied(MapShareError):
    """The device refused (or has no) position source. The user must opt in again."""


class PositionUnavailable(MapShareError):
    """No fix right now. Safe to retry on the next sampler tick."""


class ValidationError(MapShareError):
    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(", ".join(self.errors))


class AuthenticationRequired(MapShareError):
    def __init__(self, message: str = "Sign in to share your location"):
        super().__init__(message)


class FetchError(MapShareError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class SubscriptionError(MapShareError):
    """The change feed could not be established or dropped."""
