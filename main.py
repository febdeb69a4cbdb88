import json
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

# Import routers
from vale_cashback.api.routes import admin, auth, client, merchant, notifications
from vale_cashback.core.config import CORS_ORIGINS
from vale_cashback.core.exceptions import CashbackError
from vale_cashback.core.logger import app_logger
from vale_cashback.db import init_db  # noqa: F401  registers every model
from vale_cashback.utils.error_codes import ERROR_CODES, HTTP_STATUS_TO_ERROR_CODE
from vale_cashback.utils.helpers import error_response

app = FastAPI(
    title="Vale Cashback API",
    description="Cashback settlement, QR payments and merchant withdrawals",
    version="1.0.0"
)

# --- CORS Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

API_PREFIX = "/api"

# Root route
@app.get("/")
def root():
    return {"success": True, "message": "Welcome to the Vale Cashback API!", "data": None}

# Include routers
app.include_router(auth.router, prefix=f"{API_PREFIX}/auth", tags=["Auth"])
app.include_router(client.router, prefix=f"{API_PREFIX}/client", tags=["Client"])
app.include_router(merchant.router, prefix=f"{API_PREFIX}/merchant", tags=["Merchant"])
app.include_router(admin.router, prefix=f"{API_PREFIX}/admin", tags=["Admin"])
app.include_router(notifications.router, prefix=f"{API_PREFIX}/notifications", tags=["Notifications"])

@app.exception_handler(CashbackError)
async def cashback_exception_handler(request: Request, exc: CashbackError):
    app_logger.warning(
        "%s %s rejected: %s %s", request.method, request.url.path, exc.code, exc.message
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message, exc.details),
    )

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    error_code = HTTP_STATUS_TO_ERROR_CODE.get(exc.status_code, ERROR_CODES["SERVER_ERROR"])
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(error_code, exc.detail),
        headers=getattr(exc, "headers", None),
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content=error_response(
            HTTP_STATUS_TO_ERROR_CODE.get(422, ERROR_CODES["VALIDATION_ERROR"]),
            "Invalid request: Please send the correct content type and required fields.",
            jsonable_errors(exc)
        ),
    )

@app.exception_handler(json.JSONDecodeError)
async def json_decode_exception_handler(request: Request, exc: json.JSONDecodeError):
    return JSONResponse(
        status_code=400,
        content=error_response(ERROR_CODES["VALIDATION_ERROR"], "Request body must be valid JSON"),
    )

@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    app_logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=error_response(ERROR_CODES["SERVER_ERROR"], "An unexpected error occurred"),
    )


def jsonable_errors(exc: RequestValidationError):
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
