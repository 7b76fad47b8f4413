"""
Default fence catalog: product types, styles, components, formulas,
materials and SKUs.

Formulas follow the house convention: computed quantities are read back
as [<component>_qty], SKU inputs keep their own names ([rail_count]).
seed_catalog() is safe to run repeatedly; rows whose code already exists
are left alone.
"""

import logging

from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger(__name__)

POST_FORMULA = "ROUNDUP([Quantity]/[post_spacing])+1+ROUNDUP(MAX([Lines]-2,0)/2)"
IRON_POST_FORMULA = "ROUNDUP([Quantity]/[panel_width])+1+ROUNDUP(MAX([Lines]-2,0)/2)"

PRODUCT_TYPES = {
    "wood-vertical": {"name": "Wood Vertical", "default_post_spacing": 8.0, "display_order": 1},
    "wood-horizontal": {"name": "Wood Horizontal", "default_post_spacing": 6.0, "display_order": 2},
    "iron": {"name": "Iron", "default_post_spacing": 8.0, "display_order": 3},
}

# (product type, style code) -> name + formula adjustments
PRODUCT_STYLES = {
    ("wood-vertical", "standard"): {"name": "Standard", "formula_adjustments": {}},
    ("wood-vertical", "good-neighbor-residential"): {
        "name": "Good Neighbor Residential",
        "formula_adjustments": {"post_spacing": 7.71, "picket_multiplier": 1.11},
    },
    ("wood-vertical", "board-on-board"): {"name": "Board on Board", "formula_adjustments": {}},
    ("wood-horizontal", "standard-horizontal"): {"name": "Standard Horizontal", "formula_adjustments": {}},
    ("wood-horizontal", "good-neighbor-horizontal"): {
        "name": "Good Neighbor Horizontal",
        "formula_adjustments": {"sides": 2},
    },
    ("iron", "standard-iron"): {"name": "Standard Iron", "formula_adjustments": {}},
    ("iron", "ameristar"): {"name": "Ameristar", "formula_adjustments": {"bracket_style": "AMERISTAR"}},
}

# code -> (name, unit type)
COMPONENT_TYPES = {
    "post": ("Post", "Each"),
    "picket": ("Picket", "Each"),
    "rail": ("Rail", "Each"),
    "bracket": ("Bracket", "Each"),
    "cap": ("Cap", "Each"),
    "trim": ("Trim", "Each"),
    "rot_board": ("Rot Board", "Each"),
    "steel_post_cap": ("Steel Post Cap", "Each"),
    "board": ("Board", "Each"),
    "nailer": ("Nailer", "Each"),
    "vertical_trim": ("Vertical Trim", "Each"),
    "panel": ("Iron Panel", "Each"),
    "iron_post_cap": ("Iron Post Cap", "Each"),
    "nails_picket": ("Picket Nails", "Box"),
    "nails_frame": ("Frame Nails", "Box"),
    "concrete_sand": ("Concrete Sand & Gravel", "Bag"),
    "concrete_portland": ("Portland Cement", "Bag"),
    "concrete_quickrock": ("QuickRock", "Bag"),
}

# (product type, style or None, component, formula, rounding level, priority, plain english)
DEFAULT_FORMULAS = [
    # Wood vertical
    ("wood-vertical", None, "post", POST_FORMULA, "sku", 0,
     "Posts = sections + 1, plus extra for multiple fence lines"),
    ("wood-vertical", "standard", "picket", "[Quantity]*12/[picket.width_inches]*1.025", "sku", 0,
     "Pickets = fence length in inches / picket width * 2.5% waste"),
    ("wood-vertical", "good-neighbor-residential", "picket",
     "[Quantity]*12/[picket.width_inches]*1.025*[picket_multiplier]", "sku", 10,
     "Good Neighbor: 11% more pickets for both sides"),
    ("wood-vertical", "board-on-board", "picket",
     "([Quantity]*12*2)/([picket.width_inches]*2-2.5)*1.025", "sku", 10,
     "Board on Board: overlap formula (length*2)/(width*2-gap)*waste"),
    ("wood-vertical", None, "rail", "ROUNDUP([Quantity]/[post_spacing])*[rail_count]", "sku", 0,
     "Rails = sections * rails per section"),
    ("wood-vertical", None, "bracket", 'IF([post_type]=="STEEL", [post_qty]*[rail_count], 0)', "sku", 0,
     "Brackets = posts * rails, steel posts only"),
    ("wood-vertical", None, "cap", "ROUNDUP([Quantity]/[cap.length_feet])", "sku", 0,
     "Cap boards = fence length / cap length"),
    ("wood-vertical", None, "trim", "ROUNDUP([Quantity]/[trim.length_feet])", "sku", 0,
     "Trim boards = fence length / trim length"),
    ("wood-vertical", None, "rot_board", "ROUNDUP([Quantity]/[rot_board.length_feet])", "sku", 0,
     "Rot boards = fence length / rot board length"),
    ("wood-vertical", None, "steel_post_cap", 'IF([post_type]=="STEEL", [post_qty], 0)', "sku", 0,
     "One cap per steel post"),
    ("wood-vertical", None, "nails_picket", "([picket_qty]*[rail_count]*2)/300", "project", 0,
     "Nail coils = (pickets * rails * 2 nails) / 300 nails per coil"),
    ("wood-vertical", None, "nails_frame", "([post_qty]*[rail_count]*4)/28", "project", 0,
     "Frame nail boxes = (posts * rails * 4 nails) / 28 nails per box"),
    ("wood-vertical", None, "concrete_sand", "[post_qty]/10", "project", 0,
     "Sand & gravel: 1 bag per 10 posts"),
    ("wood-vertical", None, "concrete_portland", "[post_qty]/20", "project", 0,
     "Portland cement: 1 bag per 20 posts"),

    # Wood horizontal
    ("wood-horizontal", None, "post", POST_FORMULA, "sku", 0,
     "Posts = sections + 1, plus extra for multiple fence lines"),
    ("wood-horizontal", "standard-horizontal", "board",
     "ROUNDUP([height]*12/[board.width_inches])*ROUNDUP([Quantity]/[board.length_feet])", "sku", 0,
     "Boards = boards high * boards per row"),
    ("wood-horizontal", "good-neighbor-horizontal", "board",
     "ROUNDUP([height]*12/[board.width_inches])*ROUNDUP([Quantity]/[board.length_feet])*[sides]", "sku", 10,
     "Good Neighbor: boards on both sides"),
    ("wood-horizontal", None, "nailer",
     "(ROUNDUP([height]*12/[board.width_inches])-1)*ROUNDUP([Quantity]/[post_spacing])", "sku", 0,
     "Nailers = (boards high - 1) * sections"),
    ("wood-horizontal", "standard-horizontal", "vertical_trim", "[post_qty]", "sku", 0,
     "Vertical trim = one per post (one side)"),
    ("wood-horizontal", "good-neighbor-horizontal", "vertical_trim", "[post_qty]*2", "sku", 10,
     "Good Neighbor: vertical trim on both sides"),
    ("wood-horizontal", None, "cap", "ROUNDUP([Quantity]/[cap.length_feet])", "sku", 0,
     "Cap boards = fence length / cap length"),
    ("wood-horizontal", None, "nails_picket", "([board_qty]*4)/300", "project", 0,
     "Board nail coils = (boards * 4 nails) / 300 nails per coil"),
    ("wood-horizontal", None, "nails_frame", "([nailer_qty]*2*6+[post_qty]*2*4)/28", "project", 0,
     "Frame nails = (nailers*2*6 + posts*2*4) / 28"),
    ("wood-horizontal", None, "concrete_quickrock", "[post_qty]*0.5", "project", 0,
     "QuickRock: half a bag per post"),

    # Iron
    ("iron", None, "post", IRON_POST_FORMULA, "sku", 0,
     "Posts = panels + 1, plus extra for multiple fence lines"),
    ("iron", None, "panel", "ROUNDUP([Quantity]/[panel_width])", "sku", 0,
     "Panels = fence length / panel width"),
    ("iron", "ameristar", "bracket", "ROUNDUP([Quantity]/[panel_width])*[rails_per_panel]*2", "sku", 10,
     "Ameristar brackets = panels * rails * 2 (one each end)"),
    ("iron", None, "iron_post_cap", "[post_qty]", "sku", 0,
     "One cap per iron post"),
    ("iron", None, "concrete_quickrock", "[post_qty]*0.5", "project", 0,
     "QuickRock: half a bag per post"),
]

# material_sku -> columns. TRIM8 only has the legacy length_ft column filled in.
DEFAULT_MATERIALS = {
    "PS13": {"name": "4x4x8 PT Post", "category": "post", "width_inches": 3.5, "length_feet": 8},
    "PS16": {"name": "2-3/8\" Steel Post 8'", "category": "post", "width_inches": 2.375, "length_feet": 8},
    "P601": {"name": "1x6x6 Cedar Picket", "category": "picket", "width_inches": 5.5, "length_feet": 6},
    "R201": {"name": "2x4x8 PT Rail", "category": "rail", "width_inches": 3.5, "length_feet": 8},
    "CAP8": {"name": "2x6x8 Cedar Cap", "category": "cap", "width_inches": 5.5, "length_feet": 8},
    "TRIM8": {"name": "1x4x8 Cedar Trim", "category": "trim", "actual_width": 3.5, "length_ft": 8},
    "ROT8": {"name": "2x6x8 PT Rot Board", "category": "rot_board", "width_inches": 5.5, "length_feet": 8},
    "B616": {"name": "1x6x16 Cedar Board", "category": "board", "width_inches": 5.5, "length_feet": 16},
    "NC300": {"name": "Picket Nail Coil (300)", "category": "nails", "qty_per_unit": 300},
}

# sku_code -> definition
DEFAULT_SKUS = {
    "A01": {
        "sku_name": "6' Ver 1x6 : 2R : WOOD Post",
        "product_type": "wood-vertical", "style": "standard",
        "height": 6, "post_type": "WOOD",
        "variables": {"rail_count": 2, "post_spacing": 8},
        "components": {"post": "PS13", "picket": "P601", "rail": "R201",
                       "cap": "CAP8", "trim": "TRIM8", "rot_board": "ROT8"},
    },
    "A02": {
        "sku_name": "6' Ver GN 1x6 : 3R : STEEL Post",
        "product_type": "wood-vertical", "style": "good-neighbor-residential",
        "height": 6, "post_type": "STEEL",
        "variables": {"rail_count": 3, "post_spacing": 8},
        "components": {"post": "PS16", "picket": "P601", "rail": "R201",
                       "cap": "CAP8", "trim": "TRIM8", "rot_board": "ROT8"},
    },
    "H01": {
        "sku_name": "6' Hor 1x6 : WOOD Post",
        "product_type": "wood-horizontal", "style": "standard-horizontal",
        "height": 6, "post_type": "WOOD",
        "variables": {"post_spacing": 6},
        "components": {"post": "PS13", "board": "B616", "cap": "CAP8"},
    },
    "I01": {
        "sku_name": "5' Iron Ameristar : 3R",
        "product_type": "iron", "style": "ameristar",
        "height": 5, "post_type": "STEEL",
        "variables": {"panel_width": 8, "rails_per_panel": 3},
        "components": {},
    },
}


def seed_catalog(db: Session) -> dict:
    """Insert any missing default catalog rows. Returns counts of rows added per table."""
    added = {"product_types": 0, "product_styles": 0, "component_types": 0,
             "formula_templates": 0, "materials": 0, "skus": 0}

    product_types = {pt.code: pt for pt in db.query(models.ProductType).all()}
    for code, data in PRODUCT_TYPES.items():
        if code not in product_types:
            product_types[code] = models.ProductType(code=code, **data)
            db.add(product_types[code])
            added["product_types"] += 1
    db.flush()

    styles = {(s.product_type.code, s.code): s for s in db.query(models.ProductStyle).all()}
    for (type_code, style_code), data in PRODUCT_STYLES.items():
        if (type_code, style_code) not in styles:
            style = models.ProductStyle(product_type_id=product_types[type_code].id, code=style_code, **data)
            styles[(type_code, style_code)] = style
            db.add(style)
            added["product_styles"] += 1

    components = {c.code: c for c in db.query(models.ComponentType).all()}
    for order, (code, (name, unit_type)) in enumerate(COMPONENT_TYPES.items()):
        if code not in components:
            components[code] = models.ComponentType(code=code, name=name, unit_type=unit_type,
                                                    display_order=order)
            db.add(components[code])
            added["component_types"] += 1
    db.flush()

    # Formulas are only seeded for product types that have none yet
    seeded_types = {
        row.product_type_id for row in db.query(models.FormulaTemplate.product_type_id).distinct()
    }
    for type_code, style_code, component, formula, rounding, priority, plain in DEFAULT_FORMULAS:
        product_type = product_types[type_code]
        if product_type.id in seeded_types:
            continue
        db.add(models.FormulaTemplate(
            product_type_id=product_type.id,
            product_style_id=styles[(type_code, style_code)].id if style_code else None,
            component_type_id=components[component].id,
            formula=formula,
            rounding_level=rounding,
            priority=priority,
            plain_english=plain,
        ))
        added["formula_templates"] += 1

    materials = {m.material_sku for m in db.query(models.Material.material_sku).all()}
    for material_sku, data in DEFAULT_MATERIALS.items():
        if material_sku not in materials:
            db.add(models.Material(material_sku=material_sku, **data))
            added["materials"] += 1

    skus = {s.sku_code for s in db.query(models.Sku.sku_code).all()}
    for sku_code, data in DEFAULT_SKUS.items():
        if sku_code in skus:
            continue
        db.add(models.Sku(
            sku_code=sku_code,
            sku_name=data["sku_name"],
            product_type_id=product_types[data["product_type"]].id,
            product_style_id=styles[(data["product_type"], data["style"])].id,
            height=data["height"],
            post_type=data["post_type"],
            variables=data["variables"],
            components=data["components"],
        ))
        added["skus"] += 1

    db.commit()
    logger.info("Seeded default catalog: %s", added)
    return added
