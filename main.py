from fastapi import FastAPI

from app.core.config import settings
from app.core.errors import MarketplaceError, marketplace_error_handler
from app.core.logging import configure_logging, get_logger
from app.database import models
from app.database.connection import SessionLocal, engine
from app.routers import admin, applications, auth, courses, points, profile, projects, storage
from app.services.packages import seed_default_packages

configure_logging(settings.LOG_LEVEL)
logger = get_logger(__name__)

app = FastAPI(title="TimeBank Points Marketplace")


# Create DB tables on startup (server process only)
@app.on_event("startup")
def on_startup():
    models.Base.metadata.create_all(bind=engine)
    logger.info("Using database at %s", engine.url.render_as_string(hide_password=True))
    if settings.SEED_DEFAULT_PACKAGES:
        db = SessionLocal()
        try:
            seed_default_packages(db)
        finally:
            db.close()


app.add_exception_handler(MarketplaceError, marketplace_error_handler)

# Include routers
for r in (auth, profile, projects, applications, points, courses, admin, storage):
    app.include_router(r.router, prefix="/api/v1")


@app.get("/")
def home():
    return {"status": "ok", "message": "TimeBank backend running"}
