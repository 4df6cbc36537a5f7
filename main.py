import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.common.config import get_settings
from app.auth import router as auth_router
from app.registrants import router as registrants_router


settings = get_settings()

logging.basicConfig(level=logging.INFO)

app = FastAPI(title=settings.app_name, version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers - all under /api prefix
app.include_router(auth_router.router, prefix="/api/auth", tags=["auth"])
app.include_router(registrants_router.router, prefix="/api/registrants", tags=["registrants"])


@app.get("/api/health", tags=["system"])
def health() -> dict:
    """Health check endpoint that pings the database."""
    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError
    from app.common.db import get_sync_engine

    try:
        with get_sync_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError as e:
        db_status = f"error: {str(e)}"

    return {"status": "ok", "database": db_status}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
