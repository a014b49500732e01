"""Open Collective API client – retrying, paginating GraphQL fetcher."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from .config import LedgerConfig
from .errors import LedgerError
from .models import DonationRecord

logger = logging.getLogger("supporters.api")

ORDERS_QUERY = """query account($limit: Int, $offset: Int, $slug: String) {
  account(slug: $slug) {
    orders(limit: $limit, offset: $offset) {
      limit
      offset
      totalCount
      nodes {
        fromAccount {
          id
          name
          slug
          website
          imgUrlMed: imageUrl(height:64)
          imgUrlSmall: imageUrl(height:32)
          type
        }
        totalDonations {
          value
        }
        createdAt
      }
    }
  }
}"""


def node_to_record(node: dict[str, Any]) -> DonationRecord:
    """Normalize one order node; the ledger reports totals as floats."""
    try:
        account = node["fromAccount"]
        value = node["totalDonations"]["value"]
        return DonationRecord(
            id=str(account["id"]),
            name=account.get("name") or "",
            slug=account["slug"],
            website=account.get("website"),
            img_url_med=account.get("imgUrlMed"),
            img_url_small=account.get("imgUrlSmall"),
            type=account.get("type") or "",
            total_donations=round(float(value or 0) * 100),
            first_donation=node.get("createdAt"),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise LedgerError(f"Malformed order node: {exc!r}") from exc


class OpenCollectiveAPI:
    """Thin wrapper around the Open Collective GraphQL endpoint."""

    def __init__(self, cfg: LedgerConfig | None = None, *, transport: httpx.BaseTransport | None = None) -> None:
        self.cfg = cfg or LedgerConfig()
        self._client = httpx.Client(
            timeout=self.cfg.timeout,
            headers={"User-Agent": "supporters-sync/1.0"},
            follow_redirects=True,
            transport=transport,
        )

    def _post_json(self, payload: dict[str, Any]) -> Any:
        for attempt in range(1, self.cfg.max_retries + 1):
            try:
                resp = self._client.post(self.cfg.api_endpoint, json=payload)
                resp.raise_for_status()
                return resp.json()
            except (httpx.HTTPStatusError, httpx.TransportError) as exc:
                logger.warning("Attempt %d/%d failed for %s: %s", attempt, self.cfg.max_retries, self.cfg.api_endpoint, exc)
                if attempt == self.cfg.max_retries:
                    raise LedgerError(f"Request to {self.cfg.api_endpoint} failed: {exc}") from exc
                time.sleep(2 ** attempt)
            except ValueError as exc:
                raise LedgerError(f"Invalid JSON from {self.cfg.api_endpoint}: {exc}") from exc
        raise LedgerError("max_retries must be at least 1")

    # ── public API ───────────────────────────────────────────────

    def get_orders_page(self, slug: str, offset: int) -> list[dict]:
        """Fetch one page of raw order nodes starting at *offset*."""
        variables = {"limit": self.cfg.page_size, "offset": offset, "slug": slug}
        body = self._post_json({"query": ORDERS_QUERY, "variables": variables})
        if not isinstance(body, dict):
            raise LedgerError("Unexpected response shape: expected an object")
        if body.get("errors"):
            messages = "; ".join(str(e.get("message", e)) for e in body["errors"])
            raise LedgerError(f"GraphQL error: {messages}")
        account = (body.get("data") or {}).get("account")
        if account is None:
            raise LedgerError(f"Unknown account: {slug}")
        try:
            nodes = account["orders"]["nodes"]
        except (KeyError, TypeError) as exc:
            raise LedgerError("Unexpected response shape: missing orders.nodes") from exc
        if not isinstance(nodes, list):
            raise LedgerError("Unexpected response shape: orders.nodes is not a list")
        return nodes

    def get_all_orders(self, slug: str | None = None) -> list[DonationRecord]:
        """Fetch every order of an account, oldest page first.

        A page shorter than the page size ends the loop, so an account whose
        order count is an exact multiple of the page size costs one extra,
        empty round.
        """
        slug = slug or self.cfg.account_slug
        page_size = self.cfg.page_size
        offset = 0
        records: list[DonationRecord] = []
        while True:
            nodes = self.get_orders_page(slug, offset)
            records.extend(node_to_record(node) for node in nodes)
            offset += page_size
            if len(nodes) < page_size:
                logger.debug("retrieved %d orders", len(records))
                return records
            logger.debug("loading page %d of orders...", offset // page_size)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> OpenCollectiveAPI:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
