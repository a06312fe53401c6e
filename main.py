"""
DriveAssist Backend - FastAPI Application Entry Point

Vehicle diagnosis and expert marketplace API for drivers and mechanics.
"""

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.config import settings
from core.exceptions import DriveAssistError
from core.logging import log_request_middleware, setup_logging
from api.v1 import (
    admin,
    appointments,
    articles,
    authentication,
    broadcasting,
    diagnoses,
    expert_account,
    expert_appointments,
    experts,
    leads,
    maintenance,
    messages,
    packages,
    payments,
    preferences,
    profile,
    quiz,
    reference,
    reviews,
    road_signs,
    vehicles,
    videos,
)

# Setup logging
logger = setup_logging()


app = FastAPI(
    title="DriveAssist Backend API",
    description="Vehicle diagnosis and expert marketplace API",
    version=settings.VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.ENABLE_REQUEST_LOGGING:
    app.middleware("http")(log_request_middleware)


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@app.exception_handler(DriveAssistError)
async def business_exception_handler(request: Request, exc: DriveAssistError):
    logger.info(
        f"Business Exception: {exc.code} | "
        f"Path: {request.url.path} | "
        f"Method: {request.method} | "
        f"Client: {_client_host(request)}"
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_content())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation exceptions."""
    logger.error(
        f"Validation Exception: {exc.errors()} | "
        f"Path: {request.url.path} | "
        f"Method: {request.method} | "
        f"Client: {_client_host(request)}"
    )
    user_message = exc.errors()[0].get("msg", "Invalid input data")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "message": user_message,
            "detail": jsonable_encoder(exc.errors()),  # Full details for debugging
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.error(
        f"HTTP Exception: {exc.detail} | "
        f"Path: {request.url.path} | "
        f"Method: {request.method} | "
        f"Client: {_client_host(request)}"
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": exc.detail,
            "detail": str(exc),
        },
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(
        f"Server Exception: {exc} | "
        f"Path: {request.url.path} | "
        f"Method: {request.method} | "
        f"Client: {_client_host(request)}"
    )
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "Internal server error",
            "detail": str(exc) if settings.DEBUG else None,
        },
    )


@app.get("/health")
async def health():
    return {"success": True, "message": "OK", "data": {"app": settings.APP_NAME, "version": settings.VERSION}}


# Include API routers
app.include_router(authentication.router, prefix="/api/v1/auth", tags=["Authentication"])
app.include_router(profile.router, prefix="/api/v1/profile", tags=["Profile"])
app.include_router(preferences.router, prefix="/api/v1/preferences", tags=["Preferences"])
app.include_router(reference.router, prefix="/api/v1", tags=["Reference Data"])
app.include_router(vehicles.router, prefix="/api/v1/vehicles", tags=["Vehicles"])
app.include_router(diagnoses.router, prefix="/api/v1/diagnoses", tags=["Diagnoses"])
app.include_router(experts.router, prefix="/api/v1/experts", tags=["Experts"])
app.include_router(expert_account.router, prefix="/api/v1/expert", tags=["Expert Account"])
app.include_router(expert_appointments.router, prefix="/api/v1/expert", tags=["Expert Appointments"])
app.include_router(leads.router, prefix="/api/v1/leads", tags=["Leads"])
app.include_router(reviews.router, prefix="/api/v1/reviews", tags=["Reviews"])
app.include_router(appointments.router, prefix="/api/v1/appointments", tags=["Appointments"])
app.include_router(maintenance.router, prefix="/api/v1", tags=["Maintenance"])
app.include_router(packages.router, prefix="/api/v1/packages", tags=["Packages"])
app.include_router(payments.router, prefix="/api/v1/payments", tags=["Payments"])
app.include_router(messages.router, prefix="/api/v1/messages", tags=["Messages"])
app.include_router(broadcasting.router, prefix="/api/v1/broadcasting", tags=["Broadcasting"])
app.include_router(articles.router, prefix="/api/v1/articles", tags=["Articles"])
app.include_router(road_signs.router, prefix="/api/v1/road-signs", tags=["Road Signs"])
app.include_router(quiz.router, prefix="/api/v1/quiz", tags=["Quiz"])
app.include_router(videos.router, prefix="/api/v1/videos", tags=["Videos"])
app.include_router(admin.router, prefix="/api/v1/admin", tags=["Admin"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
