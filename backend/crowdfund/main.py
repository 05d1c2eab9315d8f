import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .database import init_db
from .errors import DomainError
from .routes.auth import router as auth_router
from .routes.business_plans import router as business_plans_router
from .routes.commitments import router as commitments_router
from .routes.dashboard import router as dashboard_router
from .routes.evaluations import router as evaluations_router
from .routes.rounds import router as rounds_router
from .routes.startups import router as startups_router
from .routes.users import router as users_router
from .services import platform_config


# Load environment variables from .env file
load_dotenv()

logging.basicConfig(
    level=logging.DEBUG if platform_config.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):

    # Startup
    print("Starting Crowdfunding Platform API")
    init_db()
    platform_config.log_platform_config()
    print("   Ready to accept funding rounds!")

    yield

    print("Shutting down Crowdfunding Platform API")


app = FastAPI(
    title="Equity Crowdfunding Platform",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=platform_config.FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],  # Allow all HTTP methods
    allow_headers=["*"],  # Allow all headers
)

app.include_router(auth_router)
app.include_router(business_plans_router)
app.include_router(rounds_router)
app.include_router(commitments_router)
app.include_router(evaluations_router)
app.include_router(dashboard_router)
app.include_router(startups_router)
app.include_router(users_router)


@app.get(
    "/",
    summary="API Root",
    description="Welcome endpoint with API information",
    tags=["General"]
)
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Equity Crowdfunding Platform",
        "version": "0.1.0",
        "description": "Funding rounds, investor commitments and committee evaluations",
        "docs": "/docs",
        "endpoints": {
            "auth": "POST /auth/signup, POST /auth/login",
            "rounds": "GET /rounds, POST /rounds",
            "commitments": "POST /commitments",
            "startups": "GET /startups, GET /startups/{id}",
            "users": "GET /users?role= (admin)",
            "dashboard": "GET /dashboard/stats",
            "health": "GET /health - Service health check"
        }
    }


@app.get(
    "/health",
    summary="Global Health Check",
    description="Check if the API server is running",
    tags=["General"]
)
async def health():
    """Global health check endpoint."""
    return {
        "status": "healthy",
        "service": "crowdfund-api",
        "version": "0.1.0"
    }


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    """Typed domain failures (bounds, state, lookup) as a JSON error body."""
    logger.info("[API] %s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.http_status, content=exc.to_payload())


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    logger.exception("[API] Unhandled error on %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
            "detail": str(exc) if platform_config.DEBUG else "An unexpected error occurred"
        }
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "crowdfund.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        reload=platform_config.DEBUG,
    )
