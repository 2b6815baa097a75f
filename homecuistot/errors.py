"""Domain errors raised by the reconciliation services.

Routers do not catch these; ``main.py`` registers one handler that turns any
``HomeCuistotError`` into a JSON ``{"detail": ...}`` response with the class'
status code. Unmatched ingredient names are not errors and never appear here.
"""


class HomeCuistotError(Exception):
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(HomeCuistotError):
    """Input rejected before any storage write (bad quantity, bad id)."""

    status_code = 400


class NotFoundError(HomeCuistotError):
    """Id does not exist or belongs to another owner."""

    status_code = 404
