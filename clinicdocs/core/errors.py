# clinicdocs/core/errors.py
"""
Domain errors raised by the services.

Every error carries a stable machine-readable ``kind`` and the HTTP status it
maps to at the API boundary (see ``clinicdocs.api.exception_handlers``).
"""


class DocumentError(Exception):
    kind = "error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(DocumentError):
    kind = "not_found"
    status_code = 404


class ValidationError(DocumentError):
    kind = "validation"
    status_code = 400


class ConflictError(DocumentError):
    kind = "conflict"
    status_code = 409


class ForbiddenError(DocumentError):
    kind = "forbidden"
    status_code = 403
