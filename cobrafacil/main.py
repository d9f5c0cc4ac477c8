from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.requests import Request
from cobrafacil.api.auth_routes import router as auth_router
from cobrafacil.api.client_routes import router as client_router
from cobrafacil.api.document_routes import router as document_router
from cobrafacil.api.loan_routes import router as loan_router
from cobrafacil.api.employee_routes import router as employee_router
from cobrafacil.api.notification_routes import router as notification_router
from cobrafacil.api.bill_routes import router as bill_router
from cobrafacil.api.reports_routes import router as reports_router
from cobrafacil.api.activity_routes import router as activity_router
from cobrafacil.api.job_routes import router as job_router
from contextlib import asynccontextmanager
from cobrafacil.database.connection import init_db
from cobrafacil.core.config import settings
from cobrafacil.workers.scheduler import task_scheduler
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException
from fastapi.responses import JSONResponse
import logging
import traceback


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds security headers to every API response.

    OPTIONS requests are left alone: CORSMiddleware answers preflights and
    must be able to inject its Access-Control headers untouched.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        if request.method != "OPTIONS":
            response.headers["X-Content-Type-Options"] = "nosniff"
            response.headers["X-Frame-Options"] = "DENY"
            response.headers["X-XSS-Protection"] = "1; mode=block"
            response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
            response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    if settings.SCHEDULER_ENABLED:
        task_scheduler.start()
    yield
    task_scheduler.stop()

app = FastAPI(
    title="CobraFacil",
    description="Loan, client and collection management API",
    version="1.0.0",
    lifespan=lifespan
)


# Global exception handlers to return structured JSON and log tracebacks
logger = logging.getLogger("server_exception_handler")


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    body = {
        "error": {
            "code": getattr(exc, 'detail', 'http_error'),
            "message": str(exc.detail) if exc.detail else exc.status_code,
            "status_code": exc.status_code
        }
    }
    logger.warning(f"HTTPException handled: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    body = {
        "error": {
            "code": "validation_error",
            "message": "Request validation failed",
            "details": exc.errors()
        }
    }
    logger.warning(f"Validation error: {exc.errors()}")
    return JSONResponse(status_code=422, content=body)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exc()
    logger.error(f"Unhandled exception: {str(exc)}\n{tb}")
    body = {
        "error": {
            "code": "internal_server_error",
            "message": "An unexpected error occurred",
            "details": str(exc)
        }
    }
    return JSONResponse(status_code=500, content=body)

# Support comma-separated CLIENT_URL values (e.g. "http://localhost:5173,http://localhost:3000")
raw_origins = settings.CLIENT_URL or ""
allowed_origins = [o.strip() for o in raw_origins.split(",") if o.strip()]

if not allowed_origins or any("localhost" in origin for origin in allowed_origins):
    allowed_origins = list(set(allowed_origins + ["http://localhost:5173", "http://localhost:3000"]))

logger.info("CORS allowed origins: %s", allowed_origins)

# Middlewares run LIFO: CORSMiddleware is added last so it handles preflights first.
app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "Accept",
        "Origin",
        "Accept-Language",
        "Content-Language",
        "X-Requested-With",
        "Cache-Control",
        "If-Modified-Since",
        "If-None-Match",
        "Pragma",
        # Sent with payments so retries are not registered twice
        "Idempotency-Key",
    ],
    expose_headers=["Content-Type", "Authorization", "Content-Disposition"],
    max_age=3600,
)

# Include routers
app.include_router(auth_router)
app.include_router(client_router)
app.include_router(document_router)
app.include_router(loan_router)
app.include_router(employee_router)
app.include_router(notification_router)
app.include_router(bill_router)
app.include_router(reports_router)
app.include_router(activity_router)
app.include_router(job_router)

@app.get("/")
async def root():
    return {"message": "CobraFacil API is running!"}

@app.get("/health")
async def health_check():
    return {"status": "healthy", "message": "API is running"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("cobrafacil.main:app", host="0.0.0.0", port=8000, reload=True)
