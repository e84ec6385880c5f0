import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import settings
from .db import dispose_engine, get_engine, get_session_factory, init_models
from .exceptions import DeployServiceError, InvalidTransitionError
from .logging_config import setup_logging, setup_middleware
from .rate_limiting import setup_rate_limiting
from .routers import deploy_router, health_router
from .services.deploy_service import DeployFacade
from .services.executors import get_step_executor


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle manager.

    Creates the database schema outside production, builds the deploy facade,
    fails deploys a previous process left unfinished, and on shutdown cancels
    running deploys before disposing of the engine.
    """
    app.logger.info(f"'{settings.PROJECT_NAME}' startup sequence initiated.")
    app.startup_time = time.time()

    engine = get_engine()
    if not settings.is_production():
        await init_models(engine)

    if getattr(app.state, "deploy_facade", None) is None:
        app.state.deploy_facade = DeployFacade(
            get_session_factory(),
            get_step_executor(settings.STEP_EXECUTOR, settings),
            settings,
        )
    facade: DeployFacade = app.state.deploy_facade
    await facade.recover_interrupted_deploys()

    yield

    # --- Application Shutdown ---
    app.logger.info(f"'{settings.PROJECT_NAME}' shutdown sequence initiated.")
    await facade.shutdown()
    await dispose_engine()


# Configure logging before app initialization
setup_logging()

app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Service for building and publishing sites from source repositories.",
    version="1.0.0",
    root_path=settings.ROOT_PATH,
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Deploys",
            "description": "Submit deploys and follow their commands and history",
        },
        {
            "name": "Health",
            "description": "Liveness and readiness probes",
        },
    ],
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    swagger_ui_parameters={"persistAuthorization": True},
)

app.logger = logging.getLogger("deploy_service")

# Setup middleware - MUST be done before application starts
setup_middleware(app)
setup_rate_limiting(app)


# Exception handlers
@app.exception_handler(DeployServiceError)
async def deploy_service_exception_handler(request: Request, exc: DeployServiceError):
    if isinstance(exc, InvalidTransitionError):
        app.logger.error(f"State machine violation: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": jsonable_encoder(exc.errors())},
    )


app.include_router(deploy_router)
app.include_router(health_router)
