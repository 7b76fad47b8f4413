from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from .. import models, schemas
from ..catalog_defaults import seed_catalog
from ..database import get_db

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("/seed")
def seed(db: Session = Depends(get_db)):
    """Seed the default fence catalog. Safe to run multiple times; skips existing."""
    added = seed_catalog(db)
    return {"ok": True, "seeded": added}


@router.get("/product-types", response_model=List[schemas.ProductType])
def list_product_types(db: Session = Depends(get_db)):
    return db.query(models.ProductType).filter(
        models.ProductType.is_active.is_(True)
    ).order_by(models.ProductType.display_order).all()


@router.get("/materials", response_model=List[schemas.Material])
def list_materials(skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    return db.query(models.Material).order_by(models.Material.material_sku).offset(skip).limit(limit).all()
