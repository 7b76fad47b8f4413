from dataclasses import asdict
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List, Optional
from .. import models, schemas
from ..bom_calculator import calculate_for_sku, get_interpreter, run_formulas
from ..database import get_db
from ..formulas import FormulaInterpreter, create_formula_context
from ..formulas.store import build_material_attributes

router = APIRouter(prefix="/bom", tags=["bom"])


def _calculation_response(results, context) -> dict:
    return {
        "results": [asdict(r) for r in results],
        "calculated_values": dict(context.calculated_values),
    }


def _get_product_type(db: Session, product_type_id: str) -> models.ProductType:
    product_type = db.query(models.ProductType).filter(models.ProductType.id == product_type_id).first()
    if not product_type:
        raise HTTPException(status_code=404, detail="Product type not found")
    return product_type


def _check_style(db: Session, product_type_id: str, product_style_id: Optional[str]) -> None:
    if product_style_id is None:
        return
    style = db.query(models.ProductStyle).filter(
        models.ProductStyle.id == product_style_id,
        models.ProductStyle.product_type_id == product_type_id,
    ).first()
    if not style:
        raise HTTPException(status_code=404, detail="Product style not found for this product type")


@router.post("/calculate", response_model=schemas.CalculationResponse)
def calculate(
    request: schemas.CalculationRequest,
    db: Session = Depends(get_db),
    interpreter: FormulaInterpreter = Depends(get_interpreter),
):
    """Run a product type/style's formulas against caller-supplied inputs."""
    _get_product_type(db, request.product_type_id)
    _check_style(db, request.product_type_id, request.product_style_id)

    # Explicit attributes win over ones derived from the component map
    material_attributes = {}
    if request.components:
        materials = db.query(models.Material).filter(
            models.Material.material_sku.in_(list(request.components.values()))
        ).all()
        material_attributes.update(build_material_attributes(request.components, materials))
    material_attributes.update(request.material_attributes)

    context = create_formula_context(
        net_length=request.net_length,
        lines=request.lines,
        gates=request.gates,
        height=request.height,
        sku_variables=request.variables,
        style_adjustments=request.style_adjustments,
        material_attributes=material_attributes,
    )
    results = run_formulas(interpreter, request.product_type_id, request.product_style_id, context,
                           request.component_filter, request.project_rounding)
    return _calculation_response(results, context)


@router.post("/skus/{sku_code}/calculate", response_model=schemas.CalculationResponse)
def calculate_sku(
    sku_code: str,
    request: schemas.SkuCalculationRequest,
    db: Session = Depends(get_db),
    interpreter: FormulaInterpreter = Depends(get_interpreter),
):
    """Run a catalog SKU's formulas for a project's length, lines and gates."""
    sku = db.query(models.Sku).filter(models.Sku.sku_code == sku_code).first()
    if not sku:
        raise HTTPException(status_code=404, detail="SKU not found")
    results, context = calculate_for_sku(
        db, interpreter, sku,
        net_length=request.net_length,
        lines=request.lines,
        gates=request.gates,
        component_filter=request.component_filter,
        project_rounding=request.project_rounding,
    )
    return _calculation_response(results, context)


@router.get("/formulas/{product_type_id}", response_model=List[schemas.FormulaTemplate])
def list_formulas(
    product_type_id: str,
    style_id: Optional[str] = None,
    db: Session = Depends(get_db),
    interpreter: FormulaInterpreter = Depends(get_interpreter),
):
    """Resolved formula set for a product type/style, in execution order."""
    _get_product_type(db, product_type_id)
    return [asdict(t) for t in interpreter.ordered_formulas(product_type_id, style_id)]


@router.post("/cache/clear")
def clear_formula_cache(interpreter: FormulaInterpreter = Depends(get_interpreter)):
    cleared = len(interpreter.selector.cached_keys())
    interpreter.clear_cache()
    return {"ok": True, "cleared": cleared}
