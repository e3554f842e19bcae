"""
Value objects flowing through the cost rollup pipeline.

Every record here is a frozen dataclass: stages build new records instead of
editing old ones.  Money is ``Decimal`` throughout.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional, Tuple

from wallcost.models.catalog_schema import CatalogItem, MaterialDimensions
from wallcost.services.money import ZERO


class MaterialKind(str, Enum):
    STUD = "stud"
    RUNNER = "runner"
    BOARD = "board"
    INSULATION = "insulation"
    FASTENER = "fastener"
    WELDING_ROD = "welding_rod"
    OTHER = "other"


class CostRole(str, Enum):
    DIRECT = "direct"
    INDIRECT = "indirect"
    EXCLUDED = "excluded"


class IndirectKind(str, Enum):
    MATERIAL_LOSS = "material_loss"
    TRANSPORT = "transport"
    MATERIAL_PROFIT = "material_profit"
    TOOL_EXPENSE = "tool_expense"


# Fixed emission order of the four surcharge lines.
INDIRECT_KIND_ORDER: Tuple[IndirectKind, ...] = (
    IndirectKind.MATERIAL_LOSS,
    IndirectKind.TRANSPORT,
    IndirectKind.MATERIAL_PROFIT,
    IndirectKind.TOOL_EXPENSE,
)


class RowKind(str, Enum):
    COMPONENT = "component"
    CATEGORY_SUBTOTAL = "category_subtotal"
    INDIRECT_LINE = "indirect_line"
    INDIRECT_SUBTOTAL = "indirect_subtotal"
    ROUNDING_CORRECTION = "rounding_correction"
    GRAND_TOTAL = "grand_total"


class RoundingLayer(str, Enum):
    CATEGORY = "category"                   # per-category reconciliation
    TOTAL_TRUNCATION = "total_truncation"   # contract grand total cut to the unit


@dataclass(frozen=True)
class Component:
    """
    One atomic material of a wall type.  Equality (and hashing) use only
    name, spec, unit and category.
    """
    name: str
    spec: str
    unit: str
    category: str
    material_unit_price: Decimal = field(default=ZERO, compare=False)
    labor_unit_price: Decimal = field(default=ZERO, compare=False)      # already per m²
    per_unit_quantity: Decimal = field(default=Decimal("1"), compare=False)
    area: Decimal = field(default=ZERO, compare=False)
    material_kind: MaterialKind = field(default=MaterialKind.OTHER, compare=False)
    cost_role: CostRole = field(default=CostRole.DIRECT, compare=False)
    indirect_kind: Optional[IndirectKind] = field(default=None, compare=False)
    catalog_item_id: Optional[str] = field(default=None, compare=False)
    material_id: Optional[str] = field(default=None, compare=False)
    not_found: bool = field(default=False, compare=False)

    @property
    def key(self) -> str:
        return f"{self.name}|{self.spec}|{self.unit}|{self.category}"

    @property
    def material_per_area(self) -> Decimal:
        """Unrounded material cost per m² of wall."""
        return self.material_unit_price * self.per_unit_quantity

    @property
    def labor_per_area(self) -> Decimal:
        return self.labor_unit_price


@dataclass(frozen=True)
class CategoryInfo:
    """
    Area of one category.  ``item_areas`` splits it by the catalog item that
    fed it, first-seen order; ``catalog_item_id`` is the first known item.
    """
    name: str
    area: Decimal
    catalog_item_id: Optional[str] = None
    item_areas: Tuple[Tuple[Optional[str], Decimal], ...] = ()

    def areas_by_item(self) -> Tuple[Tuple[Optional[str], Decimal], ...]:
        return self.item_areas or ((self.catalog_item_id, self.area),)


@dataclass(frozen=True)
class ExtractedLayer:
    """Components emitted by one (wall instance, layer) pair."""
    layer_key: str
    material_name: str
    area: Decimal
    components: Tuple[Component, ...] = ()
    not_found: bool = False


@dataclass(frozen=True)
class PreparedWallType:
    """
    Output of extraction, grouping and classification for one wall type.
    Everything downstream (surcharges, reconciliation, totals) is recomputed
    from this for any contract ratio.
    """
    wall_type: str
    instance_count: int
    total_area: Decimal
    direct: Tuple[Component, ...]
    indirect: Tuple[Component, ...]
    categories: Tuple[CategoryInfo, ...]
    catalog_items: Dict[str, CatalogItem] = field(default_factory=dict)
    dimensions: Dict[str, MaterialDimensions] = field(default_factory=dict)
    not_found: Tuple[str, ...] = ()


@dataclass(frozen=True)
class IndirectCostLine:
    name: str
    kind: IndirectKind
    category: str
    amount: Decimal
    unit_rate: Decimal
    area: Decimal
    percent_rate: Optional[Decimal] = None     # None in stored-rate mode

    @property
    def is_labor_based(self) -> bool:
        return self.kind == IndirectKind.TOOL_EXPENSE


@dataclass(frozen=True)
class PriceSeries:
    material_unit: Decimal = ZERO
    material_amount: Decimal = ZERO
    labor_unit: Decimal = ZERO
    labor_amount: Decimal = ZERO

    @property
    def total_amount(self) -> Decimal:
        return self.material_amount + self.labor_amount

    @property
    def total_unit(self) -> Decimal:
        return self.material_unit + self.labor_unit

    def plus(self, other: "PriceSeries") -> "PriceSeries":
        return PriceSeries(
            material_unit=self.material_unit + other.material_unit,
            material_amount=self.material_amount + other.material_amount,
            labor_unit=self.labor_unit + other.labor_unit,
            labor_amount=self.labor_amount + other.labor_amount,
        )


def sum_series(series) -> PriceSeries:
    total = PriceSeries()
    for s in series:
        total = total.plus(s)
    return total


@dataclass(frozen=True)
class ComponentDisplay:
    """Display-only columns of a component row (never fed back into totals)."""
    thickness: Optional[str] = None
    width: Optional[str] = None
    height: Optional[str] = None
    spacing: Optional[str] = None
    count: Optional[int] = None
    display_quantity: Optional[Decimal] = None
    conversion_factor: Optional[Decimal] = None


@dataclass(frozen=True)
class RollupRow:
    kind: RowKind
    label: str
    order: PriceSeries
    contract: PriceSeries
    category: str = ""
    spec: str = ""
    unit: str = ""
    quantity: Optional[Decimal] = None
    material_kind: Optional[MaterialKind] = None
    indirect_kind: Optional[IndirectKind] = None
    rounding_layer: Optional[RoundingLayer] = None
    display: Optional[ComponentDisplay] = None
    not_found: bool = False


@dataclass(frozen=True)
class WallTypeRollup:
    wall_type: str
    instance_count: int
    total_area: Decimal
    contract_ratio: Decimal
    rows: Tuple[RollupRow, ...]
    not_found: Tuple[str, ...] = ()

    def rows_of(self, kind: RowKind) -> Tuple[RollupRow, ...]:
        return tuple(r for r in self.rows if r.kind == kind)

    @property
    def grand_total(self) -> RollupRow:
        return self.rows_of(RowKind.GRAND_TOTAL)[0]

    @property
    def order_grand_total(self) -> Decimal:
        return self.grand_total.order.total_amount

    @property
    def contract_grand_total(self) -> Decimal:
        return self.grand_total.contract.total_amount
