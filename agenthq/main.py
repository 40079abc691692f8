import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from agenthq.api.routes.auth import router as auth_router
from agenthq.api.routes.handoffs import router as handoffs_router
from agenthq.api.routes.health import router as health_router
from agenthq.api.routes.memory import router as memory_router
from agenthq.api.routes.messages import router as messages_router
from agenthq.api.routes.realtime import router as realtime_router
from agenthq.api.routes.workspaces import router as workspaces_router
from agenthq.config import configure_logging

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="AgentHQ", version="0.1.0")

API_PREFIX = "/api/v1"

# Probes and the realtime socket stay at the root; the HTTP API is versioned.
app.include_router(health_router)
app.include_router(realtime_router)
for _router in (auth_router, workspaces_router, messages_router, handoffs_router, memory_router):
    app.include_router(_router, prefix=API_PREFIX)


@app.exception_handler(SQLAlchemyError)
async def storage_failure(request: Request, exc: SQLAlchemyError):
    logger.error("storage failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "storage failure"})
