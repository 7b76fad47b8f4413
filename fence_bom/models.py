from sqlalchemy import Column, Integer, String, Float, DateTime, Text, ForeignKey, Boolean, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from .database import Base
import enum
import uuid


def _new_id() -> str:
    return str(uuid.uuid4())


class PostType(str, enum.Enum):
    WOOD = "WOOD"
    STEEL = "STEEL"


# --- Product catalog ---

class ProductType(Base):
    """Main fence product categories: wood-vertical, wood-horizontal, iron."""
    __tablename__ = "product_types"

    id = Column(String, primary_key=True, default=_new_id)  # UUID
    code = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    default_post_spacing = Column(Float, nullable=True)  # feet
    display_order = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    styles = relationship("ProductStyle", back_populates="product_type", cascade="all, delete-orphan")
    formulas = relationship("FormulaTemplate", back_populates="product_type", cascade="all, delete-orphan")


class ProductStyle(Base):
    """Style variations. formula_adjustments is the style-adjustment scope of a calculation."""
    __tablename__ = "product_styles"

    id = Column(String, primary_key=True, default=_new_id)
    product_type_id = Column(String, ForeignKey("product_types.id"), nullable=False)
    code = Column(String, nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    formula_adjustments = Column(JSON, default=dict)  # {"post_spacing": 7.71, "picket_multiplier": 1.11}
    display_order = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    product_type = relationship("ProductType", back_populates="styles")


class ComponentType(Base):
    """Master list of fence components (post, picket, rail, ...)."""
    __tablename__ = "component_types"

    id = Column(String, primary_key=True, default=_new_id)
    code = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    unit_type = Column(String, default="Each")  # 'Each' | 'Linear Feet' | 'Box'
    display_order = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)


class FormulaTemplate(Base):
    """One executable formula per (product type, style, component). NULL style = all styles."""
    __tablename__ = "formula_templates"

    id = Column(String, primary_key=True, default=_new_id)
    product_type_id = Column(String, ForeignKey("product_types.id"), nullable=False)
    product_style_id = Column(String, ForeignKey("product_styles.id"), nullable=True)
    component_type_id = Column(String, ForeignKey("component_types.id"), nullable=False)
    formula = Column(Text, nullable=False)  # 'ROUNDUP([Quantity]/[post_spacing])+1'
    rounding_level = Column(String, nullable=False, default="sku")  # sku | project | none
    plain_english = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    priority = Column(Integer, default=0)  # Higher wins for style overrides
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    product_type = relationship("ProductType", back_populates="formulas")
    product_style = relationship("ProductStyle")
    component_type = relationship("ComponentType")


class Material(Base):
    """Stocked materials. Dimension columns feed [component.attribute] formula variables."""
    __tablename__ = "materials"

    id = Column(Integer, primary_key=True, index=True)
    material_sku = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    category = Column(String, nullable=True)
    width_inches = Column(Float, nullable=True)
    length_feet = Column(Float, nullable=True)
    qty_per_unit = Column(Float, nullable=True)
    # Legacy import columns, used when the canonical ones are empty
    actual_width = Column(Float, nullable=True)
    length_ft = Column(Float, nullable=True)
    unit_cost = Column(Float, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Sku(Base):
    """Sellable fence configuration: one product type + style + height + post type."""
    __tablename__ = "skus"

    id = Column(String, primary_key=True, default=_new_id)
    sku_code = Column(String, unique=True, nullable=False)  # 'A01', 'H01', 'I01'
    sku_name = Column(String, nullable=False)
    product_type_id = Column(String, ForeignKey("product_types.id"), nullable=False)
    product_style_id = Column(String, ForeignKey("product_styles.id"), nullable=False)
    height = Column(Float, nullable=False)  # feet
    post_type = Column(String, nullable=False, default=PostType.WOOD.value)
    variables = Column(JSON, default=dict)   # {"rail_count": 2, "post_spacing": 8}
    components = Column(JSON, default=dict)  # {"post": "PS13", "picket": "P601"}
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    product_type = relationship("ProductType")
    product_style = relationship("ProductStyle")
