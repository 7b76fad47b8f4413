from pydantic import BaseModel
from typing import Optional, List, Dict, Union
from datetime import datetime

from .formulas.templates import RoundingLevel

Scalar = Union[float, int, str]


class CalculationRequest(BaseModel):
    product_type_id: str
    product_style_id: Optional[str] = None
    net_length: float
    lines: float = 1
    gates: float = 0
    height: float = 6
    variables: Dict[str, Scalar] = {}
    style_adjustments: Dict[str, Scalar] = {}
    material_attributes: Dict[str, float] = {}
    components: Dict[str, str] = {}  # component -> material SKU, joined against materials
    component_filter: Optional[List[str]] = None
    project_rounding: bool = True


class SkuCalculationRequest(BaseModel):
    net_length: float
    lines: float = 1
    gates: float = 0
    component_filter: Optional[List[str]] = None
    project_rounding: bool = True


class FormulaResult(BaseModel):
    component_code: str
    component_name: str
    raw_value: float
    rounded_value: float
    rounding_level: RoundingLevel
    formula_used: str
    class Config:
        from_attributes = True


class CalculationResponse(BaseModel):
    results: List[FormulaResult]
    calculated_values: Dict[str, float]


class FormulaTemplate(BaseModel):
    id: str
    product_type_id: str
    product_style_id: Optional[str] = None
    component_code: str
    component_name: Optional[str] = None
    formula: str
    rounding_level: RoundingLevel
    priority: int
    plain_english: Optional[str] = None
    class Config:
        from_attributes = True


class ProductStyle(BaseModel):
    id: str
    code: str
    name: str
    formula_adjustments: Dict[str, Scalar] = {}
    class Config:
        from_attributes = True


class ProductType(BaseModel):
    id: str
    code: str
    name: str
    default_post_spacing: Optional[float] = None
    styles: List[ProductStyle] = []
    class Config:
        from_attributes = True


class Material(BaseModel):
    material_sku: str
    name: str
    category: Optional[str] = None
    width_inches: Optional[float] = None
    length_feet: Optional[float] = None
    qty_per_unit: Optional[float] = None
    actual_width: Optional[float] = None
    length_ft: Optional[float] = None
    updated_at: Optional[datetime] = None
    class Config:
        from_attributes = True
