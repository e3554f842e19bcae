"""
Cost Rollup Engine — turns priced wall instances into an ordered row stream.

Two phases per wall type:

  prepare()  async.  Catalog lookups, extraction, grouping, classification
             and category areas.  Result: PreparedWallType (ratio-free).
  rollup()   sync.   Component rows, surcharges, category reconciliation,
             contract truncation and grand total for one contract ratio.

Changing the contract ratio only re-runs rollup(); order figures never move.
"""
import asyncio
import logging
import time
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from wallcost import config
from wallcost.models.catalog_schema import CatalogItem
from wallcost.models.rollup_models import (
    CategoryInfo,
    Component,
    IndirectCostLine,
    PreparedWallType,
    PriceSeries,
    RollupRow,
    RowKind,
    WallTypeRollup,
    sum_series,
)
from wallcost.models.wall_models import WallCalculationResult
from wallcost.services.catalog_engine import CatalogLookup
from wallcost.services.component_extractor import (
    extract_wall_instance,
    layer_material_names,
    resolve_board_dimensions,
    resolve_catalog_items,
)
from wallcost.services.cost_classifier import classify
from wallcost.services.display_rules import board_sheet_counts, component_display
from wallcost.services.grouper import category_areas, group_layers
from wallcost.services.indirect_cost_engine import compute_indirect_lines
from wallcost.services.money import ZERO, display_won, round2, to_decimal
from wallcost.services.perf_monitor import timed_async, tracker
from wallcost.services.rounding_engine import (
    reconcile_category,
    truncate_contract_total,
    truncation_row,
)

logger = logging.getLogger("wallcost-rollup")


def resolve_contract_ratio(value: Any) -> Decimal:
    """
    Finite ratio in (0, MAX_CONTRACT_RATIO], or DEFAULT_CONTRACT_RATIO (with
    a warning) for anything else.
    """
    if value is None:
        return config.DEFAULT_CONTRACT_RATIO
    ratio = to_decimal(value, default=None)
    if ratio is None or ratio <= 0 or ratio > config.MAX_CONTRACT_RATIO:
        logger.warning(
            f"Invalid contract ratio {value!r}, falling back to {config.DEFAULT_CONTRACT_RATIO}"
        )
        return config.DEFAULT_CONTRACT_RATIO
    return ratio


def group_walls_by_type(walls: Iterable[WallCalculationResult]) -> Dict[str, List[WallCalculationResult]]:
    """Wall instances keyed by wall-type name, in first-seen order."""
    groups: Dict[str, List[WallCalculationResult]] = {}
    for wall in walls:
        groups.setdefault(wall.wall_name, []).append(wall)
    return groups


def _contract_series(order: PriceSeries, quantity: Decimal, ratio: Decimal) -> PriceSeries:
    material_unit = round2(order.material_unit * ratio)
    labor_unit = round2(order.labor_unit * ratio)
    return PriceSeries(
        material_unit=material_unit,
        material_amount=round2(material_unit * quantity),
        labor_unit=labor_unit,
        labor_amount=round2(labor_unit * quantity),
    )


def _amounts_only(series: PriceSeries) -> PriceSeries:
    return PriceSeries(material_amount=series.material_amount, labor_amount=series.labor_amount)


class CostRollupEngine:
    """
    Rolls wall instances up per wall type.

    The engine never raises for data problems: a missing catalog item or
    material degrades to a zero-priced, flagged row and the run continues.
    """

    def __init__(self, catalog: CatalogLookup, lookup_timeout_s: float = config.CATALOG_LOOKUP_TIMEOUT_S):
        self.catalog = catalog
        self.lookup_timeout_s = lookup_timeout_s

    # ------------------------------------------------------------------
    # Phase 1: extraction
    # ------------------------------------------------------------------

    @timed_async
    async def prepare(self, wall_type: str, walls: Sequence[WallCalculationResult]) -> PreparedWallType:
        start = time.perf_counter()
        names = layer_material_names(walls)
        resolved = await resolve_catalog_items(self.catalog, names, self.lookup_timeout_s)
        catalog_items: Dict[str, CatalogItem] = {}
        for item in resolved.values():
            if item is not None:
                catalog_items.setdefault(item.id, item)
        dimensions = await resolve_board_dimensions(self.catalog, catalog_items.values(), self.lookup_timeout_s)

        layers = [layer for wall in walls for layer in extract_wall_instance(wall, resolved)]
        classified = classify(group_layers(layers))
        categories = category_areas(layers)

        not_found: Dict[str, None] = {}
        for layer in layers:
            if layer.not_found:
                not_found.setdefault(layer.material_name, None)
        if not_found:
            logger.warning(
                f"{wall_type}: {len(not_found)} material(s) not found: {list(not_found)}",
                extra={"wall_type": wall_type},
            )

        prepared = PreparedWallType(
            wall_type=wall_type,
            instance_count=len(walls),
            total_area=sum((to_decimal(w.area) for w in walls), ZERO),
            direct=classified.direct,
            indirect=classified.indirect,
            categories=categories,
            catalog_items=catalog_items,
            dimensions=dimensions,
            not_found=tuple(not_found),
        )
        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        tracker.record_prepared(duration_ms, len(not_found))
        logger.info(
            f"{wall_type}: {len(walls)} instance(s), {len(classified.direct)} direct / "
            f"{len(classified.indirect)} indirect components, {len(categories)} categories",
            extra={"wall_type": wall_type, "duration_ms": duration_ms},
        )
        return prepared

    async def prepare_all(self, walls: Iterable[WallCalculationResult]) -> List[PreparedWallType]:
        groups = group_walls_by_type(walls)
        return list(await asyncio.gather(*[
            self.prepare(wall_type, instances) for wall_type, instances in groups.items()
        ]))

    # ------------------------------------------------------------------
    # Phase 2: aggregation
    # ------------------------------------------------------------------

    def rollup(self, prepared: PreparedWallType, contract_ratio: Any = None) -> WallTypeRollup:
        ratio = resolve_contract_ratio(contract_ratio)
        sheet_counts = board_sheet_counts(prepared.direct, prepared.dimensions)

        category_rows: List[RollupRow] = []
        displayed: Dict[str, PriceSeries] = {}
        contract_direct = PriceSeries()
        for category in prepared.categories:
            components = [c for c in prepared.direct if c.category == category.name]
            rows = [self._component_row(c, prepared, sheet_counts, ratio) for c in components]
            subtotal = self._category_subtotal_row(category, rows, ratio)
            category_rows.extend(rows)
            category_rows.append(subtotal)
            displayed[category.name] = subtotal.order
            contract_direct = contract_direct.plus(_amounts_only(subtotal.contract))

        indirect_rows: List[RollupRow] = []
        rounding_rows: List[RollupRow] = []
        for category in prepared.categories:
            if self._category_item(category, prepared) is None:
                continue
            order = displayed[category.name]
            lines = compute_indirect_lines(
                category,
                prepared.catalog_items,
                order.material_amount,
                order.labor_amount,
                [c for c in prepared.indirect if c.category == category.name],
            )
            indirect_rows.extend(self._indirect_row(line, ratio) for line in lines)
            correction = reconcile_category(category, prepared.catalog_items, order, ratio)
            if correction is not None:
                rounding_rows.append(correction)

        indirect_subtotal = RollupRow(
            kind=RowKind.INDIRECT_SUBTOTAL,
            label="Indirect cost subtotal",
            order=sum_series(_amounts_only(r.order) for r in indirect_rows),
            contract=sum_series(_amounts_only(r.contract) for r in indirect_rows),
        )
        order_rounding = sum_series(r.order for r in rounding_rows)
        contract_rounding = sum_series(r.contract for r in rounding_rows)

        contract_sum = (
            contract_direct.total_amount
            + indirect_subtotal.contract.total_amount
            + contract_rounding.total_amount
        )
        truncation = truncation_row(truncate_contract_total(contract_sum))

        order_direct = sum_series(_amounts_only(displayed[c.name]) for c in prepared.categories)
        grand_total = RollupRow(
            kind=RowKind.GRAND_TOTAL,
            label=f"{prepared.wall_type} total",
            order=sum_series([order_direct, indirect_subtotal.order, order_rounding]),
            contract=sum_series([
                contract_direct,
                indirect_subtotal.contract,
                contract_rounding,
                truncation.contract,
            ]),
            quantity=prepared.total_area,
            not_found=bool(prepared.not_found),
        )

        rows = tuple(category_rows + indirect_rows + [indirect_subtotal] + rounding_rows + [truncation, grand_total])
        tracker.record_rollup()
        logger.debug(
            f"{prepared.wall_type}: {len(rows)} rows at ratio {ratio}, "
            f"order {grand_total.order.total_amount} / contract {grand_total.contract.total_amount}",
            extra={"wall_type": prepared.wall_type},
        )
        return WallTypeRollup(
            wall_type=prepared.wall_type,
            instance_count=prepared.instance_count,
            total_area=prepared.total_area,
            contract_ratio=ratio,
            rows=rows,
            not_found=prepared.not_found,
        )

    async def run(self, walls: Iterable[WallCalculationResult], contract_ratio: Any = None) -> List[WallTypeRollup]:
        prepared = await self.prepare_all(walls)
        return [self.rollup(p, contract_ratio) for p in prepared]

    # ------------------------------------------------------------------
    # Row builders
    # ------------------------------------------------------------------

    def _category_item(self, category: CategoryInfo, prepared: PreparedWallType) -> Optional[CatalogItem]:
        if category.name == config.DEFAULT_CATEGORY or not category.catalog_item_id:
            return None
        return prepared.catalog_items.get(category.catalog_item_id)

    def _component_row(
        self,
        comp: Component,
        prepared: PreparedWallType,
        sheet_counts: Dict[str, int],
        ratio: Decimal,
    ) -> RollupRow:
        order = PriceSeries(
            material_unit=round2(comp.material_per_area),
            material_amount=round2(comp.material_per_area * comp.area),
            labor_unit=round2(comp.labor_per_area),
            labor_amount=round2(comp.labor_per_area * comp.area),
        )
        item = prepared.catalog_items.get(comp.catalog_item_id or "")
        return RollupRow(
            kind=RowKind.COMPONENT,
            label=comp.name,
            order=order,
            contract=_contract_series(order, comp.area, ratio),
            category=comp.category,
            spec=comp.spec,
            unit=comp.unit,
            quantity=comp.area,
            material_kind=comp.material_kind,
            display=component_display(comp, item, prepared.dimensions, sheet_counts),
            not_found=comp.not_found,
        )

    def _category_subtotal_row(self, category: CategoryInfo, rows: List[RollupRow], ratio: Decimal) -> RollupRow:
        order = sum_series(r.order for r in rows)
        contract_amounts = sum_series(_amounts_only(r.contract) for r in rows)
        contract = PriceSeries(
            material_unit=round2(order.material_unit * ratio),
            material_amount=contract_amounts.material_amount,
            labor_unit=round2(order.labor_unit * ratio),
            labor_amount=contract_amounts.labor_amount,
        )
        return RollupRow(
            kind=RowKind.CATEGORY_SUBTOTAL,
            label=f"{category.name} subtotal".strip(),
            order=order,
            contract=contract,
            category=category.name,
            quantity=category.area,
            not_found=any(r.not_found for r in rows),
        )

    def _indirect_row(self, line: IndirectCostLine, ratio: Decimal) -> RollupRow:
        if line.is_labor_based:
            order = PriceSeries(labor_unit=line.unit_rate, labor_amount=line.amount)
        else:
            order = PriceSeries(material_unit=line.unit_rate, material_amount=line.amount)
        return RollupRow(
            kind=RowKind.INDIRECT_LINE,
            label=line.name,
            order=order,
            contract=_contract_series(order, line.area, ratio),
            category=line.category,
            unit=config.DEFAULT_UNIT,
            quantity=line.area,
            indirect_kind=line.kind,
        )


# ---------------------------------------------------------------------------
# JSON view
# ---------------------------------------------------------------------------

def _money(value: Optional[Decimal]) -> Optional[float]:
    return None if value is None else round(float(value), 2)


def _series_to_dict(series: PriceSeries) -> Dict[str, Any]:
    # *_display: whole won, only ever produced here.
    return {
        "material_unit": _money(series.material_unit),
        "material_amount": _money(series.material_amount),
        "labor_unit": _money(series.labor_unit),
        "labor_amount": _money(series.labor_amount),
        "total_unit": _money(series.total_unit),
        "total_amount": _money(series.total_amount),
        "total_unit_display": display_won(series.total_unit),
        "total_amount_display": display_won(series.total_amount),
    }


def _row_to_dict(row: RollupRow) -> Dict[str, Any]:
    result: Dict[str, Any] = {
        "kind": row.kind.value,
        "label": row.label,
        "category": row.category,
        "spec": row.spec,
        "unit": row.unit,
        "quantity": _money(row.quantity),
        "order": _series_to_dict(row.order),
        "contract": _series_to_dict(row.contract),
        "material_kind": row.material_kind.value if row.material_kind else None,
        "indirect_kind": row.indirect_kind.value if row.indirect_kind else None,
        "rounding_layer": row.rounding_layer.value if row.rounding_layer else None,
        "not_found": row.not_found,
    }
    if row.display is not None:
        d = row.display
        result["display"] = {
            "thickness": d.thickness,
            "width": d.width,
            "height": d.height,
            "spacing": d.spacing,
            "count": d.count,
            "display_quantity": _money(d.display_quantity),
            "conversion_factor": None if d.conversion_factor is None else float(d.conversion_factor),
        }
    return result


def rollup_to_dict(rollup: WallTypeRollup) -> Dict[str, Any]:
    return {
        "wall_type": rollup.wall_type,
        "instance_count": rollup.instance_count,
        "total_area": _money(rollup.total_area),
        "contract_ratio": float(rollup.contract_ratio),
        "order_grand_total": _money(rollup.order_grand_total),
        "contract_grand_total": _money(rollup.contract_grand_total),
        "not_found": list(rollup.not_found),
        "rows": [_row_to_dict(r) for r in rollup.rows],
    }
