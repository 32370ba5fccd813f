import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from teamchat import models  # noqa: F401  (registers tables on Base.metadata)
from teamchat.api.v1.main import api_router, websocket_router
from teamchat.core.config import settings
from teamchat.core.database import Base, SessionLocal, engine
from teamchat.core.exceptions import StorageError
from teamchat.crud import crud_presence
from teamchat.services.session_coordinator import coordinator

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
)

# Parse CORS origins from comma-separated string in settings
cors_origins = [origin.strip() for origin in settings.CORS_ORIGINS.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_V1_STR)
app.include_router(websocket_router)


@app.exception_handler(StorageError)
@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: Exception):
    logger.error(f"Storage failure on {request.method} {request.url.path}: {exc.__class__.__name__}")
    return JSONResponse(status_code=500, content={"detail": "Server error"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Server error"})


@app.get("/")
async def read_root():
    return {"message": "TeamChat backend is running"}


@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)

    # Any presence row still flagged online belongs to a previous process
    db = SessionLocal()
    try:
        stale = crud_presence.mark_all_offline(db)
        if stale:
            logger.info(f"[Startup] Flagged {stale} stale presence record(s) offline")
    finally:
        db.close()


@app.on_event("shutdown")
async def on_shutdown():
    logger.info("Server is shutting down...")
    await coordinator.router.disconnect_all()
    logger.info("[Shutdown] All WebSocket clients disconnected")


if __name__ == "__main__":
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, ws="websockets")
