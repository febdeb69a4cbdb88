# vale_cashback/core/exceptions.py
"""
Domain errors raised by the ledger services.

Each error carries the HTTP status and error code it is rendered with, so
routes let them propagate and the handlers in ``main.py`` build the response.
"""

from vale_cashback.utils.error_codes import ERROR_CODES


class CashbackError(Exception):
    status_code = 500
    code = ERROR_CODES["SERVER_ERROR"]

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(CashbackError):
    status_code = 400
    code = ERROR_CODES["VALIDATION_ERROR"]


class AuthenticationError(CashbackError):
    status_code = 401
    code = ERROR_CODES["UNAUTHORIZED"]


class AuthorizationError(CashbackError):
    status_code = 403
    code = ERROR_CODES["FORBIDDEN"]


class NotFoundError(CashbackError):
    status_code = 404
    code = ERROR_CODES["NOT_FOUND"]


class StateConflictError(CashbackError):
    status_code = 409
    code = ERROR_CODES["CONFLICT"]


class InsufficientBalanceError(StateConflictError):
    status_code = 400
    code = ERROR_CODES["INSUFFICIENT_BALANCE"]


class InvalidCodeError(NotFoundError):
    code = ERROR_CODES["INVALID_CODE"]


class ExpiredCodeError(StateConflictError):
    status_code = 410
    code = ERROR_CODES["CODE_EXPIRED"]


class AlreadyUsedError(StateConflictError):
    status_code = 410
    code = ERROR_CODES["CODE_ALREADY_USED"]
