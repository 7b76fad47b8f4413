"""
Template and material lookups backing the formula engine.

SqlTemplateSource reads formula_templates through its own short-lived
session, since the selector cache outlives any single request.
StaticTemplateSource serves a fixed list (tests, scripts).
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session, joinedload

from .. import models
from .templates import FormulaTemplate, RoundingLevel

logger = logging.getLogger(__name__)


def to_rounding_level(value) -> RoundingLevel:
    try:
        return RoundingLevel(value)
    except ValueError:
        logger.warning("Unknown rounding level %r, treating as 'none'", value)
        return RoundingLevel.NONE


def template_from_row(row: models.FormulaTemplate) -> FormulaTemplate:
    component = row.component_type
    return FormulaTemplate(
        id=row.id,
        product_type_id=row.product_type_id,
        product_style_id=row.product_style_id,
        component_type_id=row.component_type_id,
        component_code=component.code if component else None,
        component_name=component.name if component else None,
        formula=row.formula,
        rounding_level=to_rounding_level(row.rounding_level),
        priority=row.priority or 0,
        plain_english=row.plain_english,
    )


class SqlTemplateSource:

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def fetch_active_templates(self, product_type_id: str) -> List[FormulaTemplate]:
        db = self.session_factory()
        try:
            rows = (
                db.query(models.FormulaTemplate)
                .options(joinedload(models.FormulaTemplate.component_type))
                .filter(
                    models.FormulaTemplate.product_type_id == product_type_id,
                    models.FormulaTemplate.is_active.is_(True),
                )
                .order_by(models.FormulaTemplate.priority.desc())
                .all()
            )
            return [template_from_row(row) for row in rows]
        finally:
            db.close()


class StaticTemplateSource:

    def __init__(self, templates: Iterable[FormulaTemplate]):
        self.templates = list(templates)
        self.fetch_count = 0

    def fetch_active_templates(self, product_type_id: str) -> List[FormulaTemplate]:
        self.fetch_count += 1
        rows = [t for t in self.templates if t.product_type_id == product_type_id]
        # sorted() is stable, so equal priorities keep their given order
        return sorted(rows, key=lambda t: t.priority, reverse=True)


# --- Material attributes ---

def build_material_attributes(components: Dict[str, str], materials: Iterable) -> Dict[str, float]:
    """
    Join a SKU component map ({"picket": "P601"}) against material rows
    and produce formula attributes keyed "<component>.<attribute>".

    width_inches falls back to actual_width and length_feet to length_ft
    when the canonical column is empty or zero.
    """
    by_sku = {}
    for mat in materials:
        by_sku.setdefault(_field(mat, "material_sku"), mat)

    attrs = {}
    for component_code, material_sku in components.items():
        mat = by_sku.get(material_sku)
        if mat is None:
            continue

        width = _field(mat, "width_inches") or _field(mat, "actual_width")
        if width:
            attrs[f"{component_code}.width_inches"] = float(width)

        length = _field(mat, "length_feet") or _field(mat, "length_ft")
        if length:
            attrs[f"{component_code}.length_feet"] = float(length)

        qty_per_unit = _field(mat, "qty_per_unit")
        if qty_per_unit:
            attrs[f"{component_code}.qty_per_unit"] = float(qty_per_unit)

    return attrs


def _field(row, name: str) -> Optional[object]:
    if isinstance(row, dict):
        return row.get(name)
    return getattr(row, name, None)


def load_material_attributes(db: Session, components: Dict[str, str]) -> Dict[str, float]:
    """Query the materials a SKU uses. A failed query logs and yields no attributes."""
    material_skus = [sku for sku in (components or {}).values() if sku]
    if not material_skus:
        return {}
    try:
        materials = (
            db.query(models.Material)
            .filter(models.Material.material_sku.in_(material_skus))
            .all()
        )
    except Exception as e:
        logger.error("Error fetching materials %s: %s", material_skus, e)
        return {}
    return build_material_attributes(components, materials)
