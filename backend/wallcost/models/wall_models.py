"""
Wall instance payloads exchanged with the calling application.

A ``WallCalculationResult`` is produced once per selected wall (upstream of
the rollup engine) and never mutated afterwards.
"""
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class LayerPricing(BaseModel):
    """Resolved per-m² pricing of the material assigned to one wall layer."""
    model_config = ConfigDict(frozen=True)

    material_name: str
    material_price: float = 0.0     # won per m²
    labor_price: float = 0.0        # won per m²
    unit: str = "M2"
    work_type1: str = ""
    work_type2: str = ""
    found: bool = True


class WallCalculationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    element_id: str = ""
    wall_name: str = Field(..., description="Wall-type name; instances sharing it are rolled up together")
    area: float = Field(0.0, ge=0, description="Wall area in m²")
    room_name: str = ""
    level: str = ""
    layer_pricing: Dict[str, LayerPricing] = Field(default_factory=dict)
    material_cost: Optional[float] = None
    labor_cost: Optional[float] = None
    total_cost: Optional[float] = None


class WallInput(BaseModel):
    """A raw wall selected by the estimator, before layer pricing."""
    element_id: str = ""
    wall_name: str
    area: float = Field(0.0, ge=0)
    room_name: str = ""
    level: str = ""
    layers: Dict[str, str] = Field(
        default_factory=dict,
        description="layer key → material name / catalog id (e.g. unitPrice_C-STUD-...)",
    )
