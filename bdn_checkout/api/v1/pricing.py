"""BLKD tier pricing endpoints"""

import logging
from dataclasses import asdict
from fastapi import APIRouter, Depends, HTTPException, Request

from bdn_checkout.api.v1.schemas import QuoteRequest, TierCatalogResponse, TierSchema
from bdn_checkout.api.dependencies import get_catalog, get_request_id
from bdn_checkout.domain.repositories import CatalogRepository
from bdn_checkout.domain.pricing import resolve_tier, select_preset_tier
from bdn_checkout.domain.exceptions import CatalogAPIError, InvalidQuantity, UnknownTier

router = APIRouter()


async def _load_tiers(catalog: CatalogRepository, request_id: str):
    try:
        return await catalog.list_tiers()
    except CatalogAPIError as e:
        logging.error(f"Catalog API error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Catalog service unavailable")


@router.get("/pricing/tiers", response_model=TierCatalogResponse)
async def get_tiers(request: Request, catalog: CatalogRepository = Depends(get_catalog)):
    """List preset BLKD purchase tiers in ascending quantity order"""
    tiers = await _load_tiers(catalog, get_request_id(request))
    return TierCatalogResponse(tiers=[TierSchema(**asdict(t)) for t in tiers])


@router.post("/pricing/quote", response_model=TierSchema)
async def quote(
    request_body: QuoteRequest,
    request: Request,
    catalog: CatalogRepository = Depends(get_catalog),
):
    """
    Price a BLKD purchase.

    Either a preset `tier_id` or a custom `quantity`; custom quantities get
    the discount of the highest tier they reach.
    """
    if (request_body.quantity is None) == (request_body.tier_id is None):
        raise HTTPException(status_code=422, detail="Provide exactly one of quantity or tier_id")

    tiers = await _load_tiers(catalog, get_request_id(request))
    try:
        if request_body.tier_id is not None:
            tier = select_preset_tier(request_body.tier_id, tiers)
        else:
            tier = resolve_tier(request_body.quantity, tiers)
    except UnknownTier as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidQuantity as e:
        raise HTTPException(status_code=422, detail=str(e))

    return TierSchema(**asdict(tier))
