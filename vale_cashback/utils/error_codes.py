# vale_cashback/utils/error_codes.py

ERROR_CODES = {
    "VALIDATION_ERROR": "VALIDATION_ERROR",
    "INSUFFICIENT_BALANCE": "INSUFFICIENT_BALANCE",
    "UNAUTHORIZED": "UNAUTHORIZED",
    "FORBIDDEN": "FORBIDDEN",
    "NOT_FOUND": "NOT_FOUND",
    "CONFLICT": "CONFLICT",
    "INVALID_CODE": "INVALID_CODE",
    "CODE_EXPIRED": "CODE_EXPIRED",
    "CODE_ALREADY_USED": "CODE_ALREADY_USED",
    "SERVER_ERROR": "SERVER_ERROR",
}

HTTP_STATUS_TO_ERROR_CODE = {
    400: ERROR_CODES["VALIDATION_ERROR"],
    401: ERROR_CODES["UNAUTHORIZED"],
    403: ERROR_CODES["FORBIDDEN"],
    404: ERROR_CODES["NOT_FOUND"],
    405: ERROR_CODES["VALIDATION_ERROR"],
    409: ERROR_CODES["CONFLICT"],
    410: ERROR_CODES["CODE_EXPIRED"],
    422: ERROR_CODES["VALIDATION_ERROR"],
    500: ERROR_CODES["SERVER_ERROR"],
}
