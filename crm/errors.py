"""
Request-level error taxonomy.

Handlers raise these; the exception handlers registered in ``crm.main``
render them as ``{"error": message}`` with the matching status code.
"""

from fastapi import status


class CRMError(Exception):
    """Base class for errors that map onto a client-visible HTTP status."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class BadRequestError(CRMError):
    """Missing or malformed field, or a duplicate unique key."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(CRMError):
    """Referenced id does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
