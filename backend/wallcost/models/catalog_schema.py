from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from wallcost.services.money import to_decimal


class IndirectRates(BaseModel):
    """Precomputed surcharge rates of an assembly, in won per m²."""
    model_config = ConfigDict(frozen=True)

    material_loss: float = Field(..., ge=0)
    transport: float = Field(..., ge=0)
    material_profit: float = Field(..., ge=0)
    tool_expense: float = Field(..., ge=0)


class UnitRates(BaseModel):
    """Authoritative direct cost of an assembly per m² (before surcharges)."""
    model_config = ConfigDict(frozen=True)

    material: float = Field(0.0, ge=0)
    labor: float = Field(0.0, ge=0)


class FixedRatePercents(BaseModel):
    """Formula-mode surcharge percentages (3 / 1.5 / 15 / 2 unless overridden)."""
    model_config = ConfigDict(frozen=True)

    material_loss: float = 3.0
    transport: float = 1.5
    material_profit: float = 15.0
    tool_expense: float = 2.0


class CatalogBasicInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    item_name: str = Field(..., description="e.g. C-STUD, 일반석고보드")
    spec: str = Field("", description="e.g. 50형, 9.5T")
    size: str = Field("", description="Section size, e.g. 0.8T*60*45")
    spacing: str = Field("", description="e.g. @450")
    height: str = ""
    unit: str = "M2"
    work_type1: str = ""
    work_type2: str = ""
    indirect_rates: Optional[IndirectRates] = None
    unit_rates: Optional[UnitRates] = None


class SubComponent(BaseModel):
    """One line of an assembly's bill of sub-materials (quantities per m²)."""
    model_config = ConfigDict(frozen=True)

    name: str
    spec: str = ""
    unit: str = ""
    material_id: Optional[str] = None
    material_unit_price: float = 0.0
    labor_unit_price: float = 0.0
    labor_amount: Optional[float] = Field(
        None, description="Labor per m² when the sheet stores the amount rather than a rate"
    )
    quantity: float = Field(1.0, ge=0, description="Quantity of this material per m² of wall")

    def labor_per_area(self) -> Decimal:
        if self.labor_amount is not None:
            return to_decimal(self.labor_amount)
        return to_decimal(self.labor_unit_price) * to_decimal(self.quantity)


class CatalogItem(BaseModel):
    """A priced wall assembly ("unit price item") as stored in the catalog."""
    model_config = ConfigDict(frozen=True)

    id: str
    basic: CatalogBasicInfo
    components: List[SubComponent] = Field(default_factory=list)
    fixed_rates: FixedRatePercents = Field(default_factory=FixedRatePercents)

    @property
    def display_name(self) -> str:
        return self.basic.item_name or self.id


class MaterialDimensions(BaseModel):
    """Physical dimensions of a sheet material (boards)."""
    model_config = ConfigDict(frozen=True)

    material_id: str
    width_mm: float = Field(0.0, ge=0)
    height_mm: float = Field(0.0, ge=0)
    thickness_mm: float = Field(0.0, ge=0)
