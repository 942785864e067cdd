import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from conduit import __version__
from conduit.config import settings
from conduit.database import engine
from conduit.exceptions import ConduitError, conduit_exception_handler, validation_exception_handler
from conduit.middleware import TimingMiddleware
from conduit.routers import articles, comments, profiles, tags, users

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("conduit")

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting Conduit %s (env=%s)", __version__, settings.APP_ENV)
    yield
    # Shutdown
    await engine.dispose()
    logger.info("Conduit stopped")

app = FastAPI(
    title="Conduit API",
    description="Blogging platform backend: users, profiles, articles, comments and tags",
    version=__version__,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Error handlers
app.add_exception_handler(ConduitError, conduit_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)

# Routers
app.include_router(users.router)
app.include_router(profiles.router)
app.include_router(articles.router)
app.include_router(comments.router)
app.include_router(tags.router)

@app.get("/health")
async def health():
    return {"status": "healthy", "version": __version__}
