import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from . import config, database, models
from .exceptions import TaskHubError
from .logging_setup import setup_logging
from .routers import all_routers
from .seed import seed_roles_and_permissions

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(config.LOG_LEVEL)
    models.Base.metadata.create_all(bind=database.engine)
    if config.SEED_ON_STARTUP:
        db = database.SessionLocal()
        try:
            seed_roles_and_permissions(db)
        finally:
            db.close()
    logger.info("TaskHub API started")
    yield


app = FastAPI(title="TaskHub API", lifespan=lifespan)

for router, prefix, tag in all_routers:
    app.include_router(router, prefix=prefix, tags=[tag])


@app.exception_handler(TaskHubError)
async def taskhub_error_handler(request: Request, exc: TaskHubError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message, "code": exc.code})


@app.get("/health", tags=["Health"])
def health():
    return {"status": "ok"}
