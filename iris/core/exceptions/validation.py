"""
Validation Exceptions

Author: Platform Engineering
Date: 2026-02-11
"""

from iris.core.exceptions.base import IrisError


class InvalidRequestError(IrisError, ValueError):
    """
    Raised when a query fails input validation.

    Subclasses ValueError so pydantic validators can raise it directly and
    have it reported as a field error.

    Common causes:
    - Empty message after sanitizing
    - Unknown task type
    """

    status_code = 422
