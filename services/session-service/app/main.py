#services/session-service/app/main.py
import logging
import uvicorn
from fastapi import FastAPI
from fastapi.responses import ORJSONResponse

from app.config import settings
from app.logging_conf import *  # configure root logger
from app.middleware.correlation import CorrelationIdMiddleware
from app.routers.health_routes import router as health_router
from app.routers.session_routes import router as session_router
from app.services.session_store import SessionStore

log = logging.getLogger("session")

# Build app
app = FastAPI(
    title="RAINA – Session Service",
    version="0.1.0",
    default_response_class=ORJSONResponse,
)

# Correlation-ID middleware (adds x-request-id/x-correlation-id)
app.add_middleware(CorrelationIdMiddleware)

# Routes
app.include_router(health_router)
app.include_router(session_router)

@app.on_event("startup")
async def startup_event():
    store = SessionStore.from_settings(settings)
    app.state.session_store = store
    log.info("startup complete backend=%s owner=%s", store.backend_name, store.owner)

@app.on_event("shutdown")
async def shutdown_event():
    store = getattr(app.state, "session_store", None)
    if store:
        store.close()

if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=True,
    )
