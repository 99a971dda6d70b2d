"""
Portfolio Journey Backend - FastAPI Application
Public read endpoints for learning journeys plus the admin CRUD and audit surface.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from portfolio_journey import __version__
from portfolio_journey.config import settings, logger
from portfolio_journey.dependencies import close_store
from portfolio_journey.exceptions import PortfolioError
from portfolio_journey.routers import admin, journeys
from portfolio_journey.utils.limiter import limiter

# ============================================
# Lifespan Context Manager
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting Portfolio Journey Backend...")
    if not settings.firebase_credentials_configured():
        logger.warning("No Firebase credentials configured; store calls will fail until they are provided")
    logger.info("Portfolio Journey Backend started successfully")
    yield
    logger.info("Shutting down...")
    await close_store()

# ============================================
# FastAPI Application
# ============================================

app = FastAPI(
    title="Portfolio Journey Backend",
    description="Learning journeys, phases and entries for the portfolio website",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.state.limiter = limiter

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============================================
# Exception Handlers
# ============================================

app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(PortfolioError)
async def portfolio_exception_handler(request: Request, exc: PortfolioError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": [str(p) for p in err["loc"]], "msg": err["msg"], "type": err["type"]}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=422, content={"status": "error", "message": "Invalid request", "errors": errors})


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(status_code=500, content={"status": "error", "message": "Internal server error"})

# ============================================
# Routes: Health & Root
# ============================================

@app.get("/")
async def root():
    return {"message": "Portfolio Journey API", "version": __version__, "docs": "/docs"}


@app.get("/api/v1/health")
async def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


app.include_router(journeys.router)
app.include_router(admin.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("index:app", host=settings.HOST, port=settings.PORT, reload=True)
