"""POST /v1/settlement/plan - Split-source settlement preview"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Request

from bdn_checkout.api.v1.schemas import InstrumentSchema, SettlementRequest, SettlementResponse
from bdn_checkout.api.dependencies import get_catalog, get_request_id
from bdn_checkout.domain.repositories import CatalogRepository
from bdn_checkout.domain.eligibility import explain_eligibility
from bdn_checkout.domain.settlement import compute_settlement, rewards_balance
from bdn_checkout.domain.exceptions import CatalogAPIError

router = APIRouter()


@router.post("/settlement/plan", response_model=SettlementResponse)
async def preview_settlement(
    request_body: SettlementRequest,
    request: Request,
    catalog: CatalogRepository = Depends(get_catalog),
):
    """
    Compute how a charge would be split for a user.

    Flow:
    1. Fetch the user's wallets from the catalog
    2. Apply rewards credit first if opted in
    3. Check the selected instrument against the residual
    4. Report every instrument's eligibility for display
    """
    request_id = get_request_id(request)

    try:
        instruments = await catalog.list_instruments(request_body.user_id)
    except CatalogAPIError as e:
        logging.error(f"Catalog API error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Catalog service unavailable")

    credit = rewards_balance(instruments)
    selected = next((i for i in instruments if i.id == request_body.instrument_id), None)
    plan = compute_settlement(
        request_body.total_due,
        credit,
        request_body.use_rewards,
        selected,
        currency=request_body.currency,
    )

    reports = explain_eligibility(instruments, request_body.currency, plan.remaining_due)
    return SettlementResponse(
        total_due=plan.total_due,
        credit_applied=plan.credit_applied,
        remaining_due=plan.remaining_due,
        selected_instrument_id=plan.selected_instrument_id,
        is_satisfied=plan.is_satisfied,
        currency=plan.currency,
        rewards_balance=credit,
        instruments=[
            InstrumentSchema(
                id=r.instrument.id,
                kind=r.instrument.kind.value,
                name=r.instrument.name,
                currency=r.instrument.currency,
                spendable_balance=r.instrument.spendable_balance,
                is_default=r.instrument.is_default,
                eligible=r.eligible,
                ineligibility_reason=r.reason.value if r.reason else None,
            )
            for r in reports
        ],
    )
