"""FastAPI dependency injection — catalog and engine access."""
from fastapi import Depends, HTTPException, Request, status

from wallcost.services.catalog_engine import InMemoryCatalog
from wallcost.services.rollup_engine import CostRollupEngine


def get_catalog(request: Request) -> InMemoryCatalog:
    catalog = getattr(request.app.state, "catalog", None)
    if catalog is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Catalog not loaded",
        )
    return catalog


def get_engine(catalog: InMemoryCatalog = Depends(get_catalog)) -> CostRollupEngine:
    return CostRollupEngine(catalog)
