from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from .config import settings
from .database import engine, Base
from .routers import bom, catalog

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("fence_bom")

# Create tables (handles new tables but won't add columns to existing ones)
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Fence BOM Engine",
    description="Database-driven formula engine for fence bill-of-materials quantities",
    version="2.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(bom.router, prefix="/api")
app.include_router(catalog.router, prefix="/api")


@app.get("/health")
def health():
    return {"status": "ok", "app": "fence-bom"}


@app.on_event("startup")
def auto_seed():
    """Seed the default fence catalog on first run."""
    if not settings.AUTO_SEED:
        return
    from .database import SessionLocal
    from .catalog_defaults import seed_catalog
    db = SessionLocal()
    try:
        seed_catalog(db)
    except Exception as e:
        # Never let seeding errors prevent app startup
        logger.warning(f"Catalog seed warning: {e}")
    finally:
        db.close()
