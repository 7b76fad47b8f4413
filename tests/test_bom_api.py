"""
Tests for the HTTP API (routers/bom.py, routers/catalog.py, bom_calculator.py).

Tests:
1-3.   Catalog: seed, product types, materials
4-8.   SKU calculations: wood vertical, good neighbor steel, horizontal, iron
9-13.  Ad-hoc calculations: inputs, project rounding off, component filter, materials, huge inputs
13-15. 404s for unknown product types, styles and SKUs
16-18. Formula listing and cache behaviour
"""

from fence_bom import models


def _product_types(client):
    return {pt["code"]: pt for pt in client.get("/api/catalog/product-types").json()}


def _style_id(client, type_code, style_code):
    styles = _product_types(client)[type_code]["styles"]
    return next(s["id"] for s in styles if s["code"] == style_code)


def _quantities(response):
    assert response.status_code == 200, response.text
    return {r["component_code"]: r["rounded_value"] for r in response.json()["results"]}


# --- Catalog ---

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_seed_and_list_product_types(client):
    response = client.get("/api/catalog/seed")
    assert response.status_code == 200
    assert response.json()["seeded"]["product_types"] == 3

    again = client.get("/api/catalog/seed").json()
    assert again["seeded"]["formula_templates"] == 0

    types = client.get("/api/catalog/product-types").json()
    assert [pt["code"] for pt in types] == ["wood-vertical", "wood-horizontal", "iron"]
    wood_styles = {s["code"] for s in types[0]["styles"]}
    assert wood_styles == {"standard", "good-neighbor-residential", "board-on-board"}


def test_list_materials(seeded_client):
    materials = seeded_client.get("/api/catalog/materials").json()
    skus = [m["material_sku"] for m in materials]
    assert skus == sorted(skus)
    assert "P601" in skus
    trim = next(m for m in materials if m["material_sku"] == "TRIM8")
    assert trim["width_inches"] is None
    assert trim["length_ft"] == 8


# --- SKU calculations ---

def test_wood_vertical_sku(seeded_client):
    response = seeded_client.post("/api/bom/skus/A01/calculate", json={"net_length": 100})
    assert _quantities(response) == {
        "post": 14,
        "picket": 224,
        "rail": 26,
        "bracket": 0,
        "cap": 13,
        "trim": 13,
        "rot_board": 13,
        "steel_post_cap": 0,
        "nails_picket": 3,
        "nails_frame": 4,
        "concrete_sand": 2,
        "concrete_portland": 1,
    }
    body = response.json()
    assert [r["component_code"] for r in body["results"]][:3] == ["post", "picket", "rail"]
    assert body["calculated_values"]["post_qty"] == 14
    nails = next(r for r in body["results"] if r["component_code"] == "nails_picket")
    assert nails["rounding_level"] == "project"
    assert abs(nails["raw_value"] - 224 * 2 * 2 / 300) < 1e-9
    assert nails["component_name"] == "Picket Nails"


def test_good_neighbor_steel_sku(seeded_client):
    """Style post_spacing 7.71 overrides the SKU's 8; steel posts get brackets and caps."""
    quantities = _quantities(seeded_client.post("/api/bom/skus/A02/calculate", json={"net_length": 120}))
    assert quantities["post"] == 17
    assert quantities["rail"] == 48
    assert quantities["bracket"] == 51
    assert quantities["steel_post_cap"] == 17
    assert quantities["picket"] == 298
    assert quantities["nails_picket"] == 6
    assert quantities["nails_frame"] == 8


def test_wood_horizontal_sku(seeded_client):
    quantities = _quantities(seeded_client.post("/api/bom/skus/H01/calculate", json={"net_length": 60}))
    assert quantities["post"] == 11
    assert quantities["board"] == 56
    assert quantities["nailer"] == 130
    assert quantities["vertical_trim"] == 11
    assert quantities["concrete_quickrock"] == 6
    assert "picket" not in quantities


def test_iron_ameristar_sku(seeded_client):
    quantities = _quantities(seeded_client.post("/api/bom/skus/I01/calculate", json={"net_length": 100}))
    assert quantities == {
        "post": 14,
        "bracket": 78,
        "panel": 13,
        "iron_post_cap": 14,
        "concrete_quickrock": 7,
    }


def test_sku_component_filter(seeded_client):
    response = seeded_client.post("/api/bom/skus/A01/calculate",
                                  json={"net_length": 100, "component_filter": ["post", "concrete_sand"]})
    assert _quantities(response) == {"post": 14, "concrete_sand": 2}


# --- Ad-hoc calculations ---

def test_calculate_with_explicit_inputs(seeded_client):
    iron_id = _product_types(seeded_client)["iron"]["id"]
    request = {
        "product_type_id": iron_id,
        "net_length": 100,
        "lines": 4,
        "variables": {"panel_width": 8},
    }
    quantities = _quantities(seeded_client.post("/api/bom/calculate", json=request))
    # No style: the ameristar bracket formula is excluded
    assert quantities == {"post": 15, "panel": 13, "iron_post_cap": 15, "concrete_quickrock": 8}


def test_calculate_without_project_rounding(seeded_client):
    iron_id = _product_types(seeded_client)["iron"]["id"]
    request = {
        "product_type_id": iron_id,
        "net_length": 100,
        "lines": 4,
        "variables": {"panel_width": 8},
        "project_rounding": False,
    }
    quantities = _quantities(seeded_client.post("/api/bom/calculate", json=request))
    assert quantities["concrete_quickrock"] == 7.5


def test_calculate_joins_components_to_materials(seeded_client):
    types = _product_types(seeded_client)
    request = {
        "product_type_id": types["wood-vertical"]["id"],
        "product_style_id": _style_id(seeded_client, "wood-vertical", "standard"),
        "net_length": 100,
        "variables": {"rail_count": 2, "post_spacing": 8, "post_type": "WOOD"},
        "components": {"picket": "P601", "cap": "CAP8"},
        "material_attributes": {"cap.length_feet": 10},
        "component_filter": ["post", "picket", "cap"],
    }
    quantities = _quantities(seeded_client.post("/api/bom/calculate", json=request))
    # Explicit cap length (10) wins over the material's 8
    assert quantities == {"post": 14, "picket": 224, "cap": 10}


def test_calculate_with_missing_material_attribute(seeded_client):
    """A formula reading an unknown material attribute divides by 0 and yields 0."""
    types = _product_types(seeded_client)
    request = {
        "product_type_id": types["wood-vertical"]["id"],
        "net_length": 100,
        "variables": {"post_spacing": 8},
        "component_filter": ["post", "cap"],
    }
    quantities = _quantities(seeded_client.post("/api/bom/calculate", json=request))
    assert quantities == {"post": 14, "cap": 0}


def test_calculate_with_huge_integer_variable(seeded_client):
    types = _product_types(seeded_client)
    request = {
        "product_type_id": types["wood-vertical"]["id"],
        "net_length": 100,
        "variables": {"post_spacing": 10 ** 400, "rail_count": 2},
        "component_filter": ["post", "rail"],
    }
    # 100 / inf is 0 sections
    assert _quantities(seeded_client.post("/api/bom/calculate", json=request)) == {"post": 1, "rail": 0}


# --- Not found ---

def test_unknown_product_type(seeded_client):
    response = seeded_client.post("/api/bom/calculate",
                                  json={"product_type_id": "nope", "net_length": 100})
    assert response.status_code == 404


def test_style_from_another_product_type(seeded_client):
    types = _product_types(seeded_client)
    request = {
        "product_type_id": types["wood-vertical"]["id"],
        "product_style_id": _style_id(seeded_client, "iron", "ameristar"),
        "net_length": 100,
    }
    response = seeded_client.post("/api/bom/calculate", json=request)
    assert response.status_code == 404


def test_unknown_sku(seeded_client):
    response = seeded_client.post("/api/bom/skus/ZZZ/calculate", json={"net_length": 100})
    assert response.status_code == 404


# --- Formula listing and cache ---

def test_list_resolved_formulas(seeded_client):
    types = _product_types(seeded_client)
    gn_id = _style_id(seeded_client, "wood-vertical", "good-neighbor-residential")
    response = seeded_client.get(f"/api/bom/formulas/{types['wood-vertical']['id']}", params={"style_id": gn_id})
    assert response.status_code == 200
    formulas = response.json()
    codes = [f["component_code"] for f in formulas]
    assert codes[0] == "post"
    assert codes.count("picket") == 1
    picket = next(f for f in formulas if f["component_code"] == "picket")
    assert picket["product_style_id"] == gn_id
    assert "[picket_multiplier]" in picket["formula"]


def test_list_formulas_unknown_product_type(seeded_client):
    assert seeded_client.get("/api/bom/formulas/nope").status_code == 404


def test_cached_formulas_until_cleared(seeded_client, db):
    before = _quantities(seeded_client.post("/api/bom/skus/A01/calculate", json={"net_length": 100}))
    assert before["post"] == 14

    wood = db.query(models.ProductType).filter(models.ProductType.code == "wood-vertical").first()
    post_type = db.query(models.ComponentType).filter(models.ComponentType.code == "post").first()
    template = db.query(models.FormulaTemplate).filter(
        models.FormulaTemplate.product_type_id == wood.id,
        models.FormulaTemplate.component_type_id == post_type.id,
    ).first()
    template.formula = "5"
    db.commit()

    cached = _quantities(seeded_client.post("/api/bom/skus/A01/calculate", json={"net_length": 100}))
    assert cached["post"] == 14

    cleared = seeded_client.post("/api/bom/cache/clear").json()
    assert cleared["ok"] is True
    assert cleared["cleared"] == 1

    after = _quantities(seeded_client.post("/api/bom/skus/A01/calculate", json={"net_length": 100}))
    assert after["post"] == 5
    assert after["concrete_sand"] == 1