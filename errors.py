"""
Error taxonomy for the storefront.

Domain code raises these; the API layer turns them into JSON responses with the
matching status code.
"""


class StoreError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StoreError):
    """Bad input: missing field, negative price or stock, impossible transition."""
    status_code = 400


class AuthenticationRequiredError(StoreError):
    status_code = 401


class PermissionDeniedError(StoreError):
    status_code = 403


class NotFoundError(StoreError):
    status_code = 404


class NetworkError(StoreError):
    """A remote call (database included) failed. The caller retries by hand."""
    status_code = 503
