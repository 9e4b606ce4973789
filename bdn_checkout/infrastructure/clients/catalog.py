"""Catalog API HTTP client for wallets, pricing tiers and payment targets"""

import httpx
from typing import List, Optional, Sequence
from bdn_checkout.domain.models import CheckoutTarget, PaymentInstrument, PricingTier
from bdn_checkout.domain.eligibility import ingest_instruments
from bdn_checkout.domain.exceptions import CatalogAPIError, InvalidInstrumentData
from bdn_checkout.domain.pricing import build_tier_catalog
from bdn_checkout.infrastructure.observability.metrics import catalog_fetch_failures_counter
from bdn_checkout.config import settings


class CatalogClient:
    """Client for the external Catalog/Ledger service read endpoints"""

    def __init__(self, base_url: str | None = None, timeout: float | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = base_url or settings.catalog_api_base
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    async def _get(self, path: str, **params) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.get(f"{self.base_url}{path}", params=params or None)
                if response.status_code != 404:
                    response.raise_for_status()
                return response
            except httpx.TimeoutException as e:
                catalog_fetch_failures_counter.inc()
                raise CatalogAPIError(f"Catalog API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                catalog_fetch_failures_counter.inc()
                raise CatalogAPIError(f"Catalog API error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                catalog_fetch_failures_counter.inc()
                raise CatalogAPIError(f"Catalog API unreachable: {e}") from e

    async def list_instruments(self, user_id: str) -> List[PaymentInstrument]:
        """
        Fetch the user's wallets, normalized for settlement.

        Raises:
            CatalogAPIError: On timeout, HTTP errors, or invalid response
        """
        response = await self._get("/catalog/wallets", user_id=user_id)
        if response.status_code == 404:
            return []
        try:
            return ingest_instruments(response.json()["wallets"])
        except (KeyError, ValueError, TypeError, InvalidInstrumentData) as e:
            raise CatalogAPIError(f"Invalid wallet data from catalog: {e}") from e

    async def list_tiers(self) -> Sequence[PricingTier]:
        response = await self._get("/catalog/tiers")
        try:
            data = response.json()
            return build_tier_catalog(
                ((t["quantity"], t["discountPercent"]) for t in data["tiers"]),
                base_rate=data.get("baseRate", 1),
                featured=[t["quantity"] for t in data["tiers"] if t.get("featured")],
            )
        except (KeyError, ValueError, TypeError) as e:
            raise CatalogAPIError(f"Invalid tier data from catalog: {e}") from e

    async def get_target(self, target_id: str) -> Optional[CheckoutTarget]:
        response = await self._get(f"/catalog/targets/{target_id}")
        if response.status_code == 404:
            return None
        try:
            data = response.json()
            return CheckoutTarget(
                id=str(data["id"]),
                name=data["name"],
                kind=data["kind"],
                has_plus_business=bool(data.get("hasPlusBusiness", False)),
            )
        except (KeyError, ValueError, TypeError) as e:
            raise CatalogAPIError(f"Invalid target data from catalog: {e}") from e
