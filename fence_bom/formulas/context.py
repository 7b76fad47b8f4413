"""
Calculation context: all the state one BOM calculation reads and writes.

A context belongs to a single calculation. execute_all() writes each
component's rounded quantity into calculated_values as it goes, so a
context must never be shared between concurrent calculations.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Union

Scalar = Union[float, int, str]

# Formula names of the four built-in project inputs -> context attribute
PROJECT_INPUTS = {
    "Quantity": "quantity",  # Net fence length in feet
    "Lines": "lines",        # Number of fence lines
    "Gates": "gates",        # Number of gates
    "height": "height",      # Fence height in feet
}

QTY_SUFFIX = "_qty"


@dataclass
class CalculationContext:
    quantity: float = 0.0
    lines: float = 0.0
    gates: float = 0.0
    height: float = 0.0
    variables: Dict[str, Scalar] = field(default_factory=dict)
    style_adjustments: Dict[str, Scalar] = field(default_factory=dict)
    material_attributes: Dict[str, float] = field(default_factory=dict)  # "picket.width_inches" -> 5.5
    calculated_values: Dict[str, float] = field(default_factory=dict)    # "post_qty" -> 13

    def project_input(self, name: str) -> Optional[float]:
        """Value of a built-in project input by its formula name, or None."""
        attr = PROJECT_INPUTS.get(name)
        if attr is None:
            return None
        return getattr(self, attr)

    def publish(self, component_code: str, value: float) -> str:
        """Record a computed quantity under <component>_qty and return the key."""
        key = qty_key(component_code)
        self.calculated_values[key] = value
        return key


def qty_key(component_code: str) -> str:
    return f"{component_code}{QTY_SUFFIX}"


def create_formula_context(
    net_length: float,
    lines: float,
    gates: float,
    height: float,
    sku_variables: Optional[Dict[str, Scalar]] = None,
    style_adjustments: Optional[Dict[str, Scalar]] = None,
    material_attributes: Optional[Dict[str, float]] = None,
) -> CalculationContext:
    """Build a fresh context with no calculated values yet."""
    return CalculationContext(
        quantity=net_length,
        lines=lines,
        gates=gates,
        height=height,
        variables=dict(sku_variables or {}),
        style_adjustments=dict(style_adjustments or {}),
        material_attributes=dict(material_attributes or {}),
        calculated_values={},
    )
