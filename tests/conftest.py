import io
import json
from collections.abc import Callable

import httpx
import pytest
from PIL import Image

from supporters.models import DonationRecord


def _image_bytes(fmt: str, size: tuple[int, int]) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture()
def png_bytes() -> bytes:
    """A real 48x40 PNG avatar."""
    return _image_bytes("PNG", (48, 40))


@pytest.fixture()
def jpeg_bytes() -> bytes:
    """A real 32x32 JPEG avatar, which the sync must reject."""
    return _image_bytes("JPEG", (32, 32))


@pytest.fixture()
def make_node() -> Callable[..., dict]:
    """Build one raw order node as the GraphQL API returns it."""

    def _make(
        slug: str,
        value: float = 10.0,
        *,
        type: str = "INDIVIDUAL",
        name: str | None = None,
        id: str | None = None,
    ) -> dict:
        return {
            "fromAccount": {
                "id": id or f"id-{slug}",
                "name": name if name is not None else slug.title(),
                "slug": slug,
                "website": f"https://{slug}.example.org",
                "imgUrlMed": f"https://images.example.org/{slug}/64.png",
                "imgUrlSmall": f"https://images.example.org/{slug}/32.png",
                "type": type,
            },
            "totalDonations": {"value": value},
            "createdAt": "2019-05-01T12:00:00.000Z",
        }

    return _make


@pytest.fixture()
def make_record() -> Callable[..., DonationRecord]:
    def _make(slug: str, total: int = 1000, *, type: str = "INDIVIDUAL", name: str | None = None) -> DonationRecord:
        return DonationRecord(
            id=f"id-{slug}",
            name=name if name is not None else slug.title(),
            slug=slug,
            website=None,
            img_url_med=f"https://images.example.org/{slug}/64.png",
            img_url_small=f"https://images.example.org/{slug}/32.png",
            type=type,
            total_donations=total,
            first_donation="2019-05-01T12:00:00.000Z",
        )

    return _make


class FakeLedger:
    """Serves a fixed list of order nodes page by page, recording each query."""

    def __init__(self, nodes: list[dict]) -> None:
        self.nodes = nodes
        self.requests: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        variables = json.loads(request.content)["variables"]
        self.requests.append(variables)
        offset, limit = variables["offset"], variables["limit"]
        page = self.nodes[offset:offset + limit]
        return httpx.Response(
            200,
            json={
                "data": {
                    "account": {
                        "orders": {
                            "limit": limit,
                            "offset": offset,
                            "totalCount": len(self.nodes),
                            "nodes": page,
                        }
                    }
                }
            },
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture()
def fake_ledger() -> Callable[[list[dict]], FakeLedger]:
    return FakeLedger
