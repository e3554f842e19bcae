"""Rollup API routes — wall pricing, cost rollup and catalog reads."""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from wallcost.api.deps import get_catalog, get_engine
from wallcost.models.catalog_schema import CatalogItem
from wallcost.models.wall_models import WallCalculationResult, WallInput
from wallcost.services.catalog_engine import InMemoryCatalog
from wallcost.services.rollup_engine import CostRollupEngine, rollup_to_dict
from wallcost.services.wall_pricing import price_walls

router = APIRouter(prefix="/api", tags=["Rollup"])
logger = logging.getLogger("wallcost-api.rollup")


class RollupRequest(BaseModel):
    walls: List[WallCalculationResult] = Field(..., min_length=1)
    # Any value; resolve_contract_ratio() decides.
    contract_ratio: Optional[Any] = None


class RollupResponse(BaseModel):
    wall_types: int
    order_grand_total: float
    contract_grand_total: float
    rollups: List[Dict[str, Any]]


class PriceWallsRequest(BaseModel):
    walls: List[WallInput] = Field(..., min_length=1)


@router.post("/rollup", response_model=RollupResponse)
async def rollup_walls(req: RollupRequest, engine: CostRollupEngine = Depends(get_engine)):
    """Roll priced wall instances up per wall type for one contract ratio."""
    rollups = await engine.run(req.walls, req.contract_ratio)
    payload = [rollup_to_dict(r) for r in rollups]
    logger.info(f"Rolled up {len(req.walls)} wall(s) into {len(rollups)} wall type(s)")
    return RollupResponse(
        wall_types=len(rollups),
        order_grand_total=round(sum(p["order_grand_total"] for p in payload), 2),
        contract_grand_total=round(sum(p["contract_grand_total"] for p in payload), 2),
        rollups=payload,
    )


@router.post("/walls/price", response_model=List[WallCalculationResult])
async def price_wall_layers(req: PriceWallsRequest, catalog: InMemoryCatalog = Depends(get_catalog)):
    """Price raw walls layer by layer; unknown materials come back with found=false."""
    return await price_walls(req.walls, catalog)


@router.get("/catalog/{item_id}", response_model=CatalogItem)
async def get_catalog_item(item_id: str, catalog: InMemoryCatalog = Depends(get_catalog)):
    item = await catalog.find_catalog_item(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail=f"Catalog item not found: {item_id}")
    return item
