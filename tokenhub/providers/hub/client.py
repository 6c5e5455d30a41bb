"""Client for the hub's authorization store.

The hub consults its own ``tokens`` / ``tokens_master`` tables when a token is
presented, so issued and refilled tokens are mirrored there through its
PostgREST endpoint. Every failure is raised as ``MirrorSyncError``; callers
turn it into a status field rather than failing the request.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from tokenhub.core.exceptions import MirrorSyncError
from tokenhub.core.ledger import TokenType
from tokenhub.schemas.product import HubProduct

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "HUB API credentials not configured"


class HubMirrorClient:
    def __init__(
        self,
        base_url: Optional[str],
        service_key: Optional[str],
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.service_key = service_key
        self._timeout = httpx.Timeout(timeout, connect=5.0)
        self._transport = transport

    @classmethod
    def from_settings(cls, settings) -> "HubMirrorClient":
        return cls(
            base_url=settings.HUB_API_URL,
            service_key=settings.HUB_API_SERVICE_ROLE_KEY,
            timeout=settings.HUB_TIMEOUT_SECONDS,
        )

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.service_key)

    @staticmethod
    def table_for(token_type: str) -> str:
        return "tokens_master" if TokenType(token_type) == TokenType.MASTER else "tokens"

    def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.service_key or "",
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        if not self.configured:
            raise MirrorSyncError(NOT_CONFIGURED)

        url = f"{self.base_url}/rest/v1/{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.request(
                    method, url, params=params, json=json, headers=self._headers(prefer)
                )
                response.raise_for_status()
        except httpx.TimeoutException:
            logger.error(f"Hub {method} {path} timed out")
            raise MirrorSyncError(f"Hub request timed out: {method} {path}")
        except httpx.HTTPStatusError as exc:
            logger.error(
                f"Hub {method} {path} failed: {exc.response.status_code} {exc.response.text}"
            )
            raise MirrorSyncError(
                f"Hub returned {exc.response.status_code} for {method} {path}"
            )
        except httpx.RequestError as exc:
            logger.error(f"Hub {method} {path} request error: {exc}")
            raise MirrorSyncError(f"Hub request failed: {exc}")

        if not response.content:
            return None
        return response.json()

    async def upsert_tokens(self, token_type: str, rows: List[Dict[str, Any]]) -> int:
        """Insert or merge token rows keyed by token string."""
        if not rows:
            return 0
        table = self.table_for(token_type)
        await self._request(
            "POST",
            table,
            params={"on_conflict": "token"},
            json=rows,
            prefer="resolution=merge-duplicates,return=minimal",
        )
        logger.info(f"Mirrored {len(rows)} {token_type} tokens to hub table {table}")
        return len(rows)

    async def _patch_token(
        self, token_type: str, token_string: str, values: Dict[str, Any]
    ) -> None:
        table = self.table_for(token_type)
        updated = await self._request(
            "PATCH",
            table,
            params={"token": f"eq.{token_string}"},
            json=values,
            prefer="return=representation",
        )
        if not updated:
            raise MirrorSyncError(f"Token not found in hub table {table}")

    async def update_credits(
        self, token_type: str, token_string: str, credits: int
    ) -> None:
        await self._patch_token(token_type, token_string, {"credits": credits})
        logger.info(f"Hub credits for {token_string[:8]}... set to {credits}")

    async def set_activated(
        self, token_type: str, token_string: str, activated: bool = True
    ) -> None:
        await self._patch_token(token_type, token_string, {"activated": activated})

    async def fetch_visible_products(self) -> List[HubProduct]:
        data = await self._request(
            "GET",
            "products",
            params={"select": "id,name,value", "visible": "eq.true"},
        )
        products = []
        for row in data or []:
            products.append(
                HubProduct(
                    id=str(row["id"]),
                    name=row.get("name") or str(row["id"]),
                    value=Decimal(str(row["value"])),
                )
            )
        return products
