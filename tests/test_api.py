from unittest.mock import patch

import httpx
import pytest

from supporters.api import OpenCollectiveAPI, node_to_record
from supporters.config import LedgerConfig
from supporters.errors import LedgerError


def _api(transport: httpx.BaseTransport, page_size: int = 3, max_retries: int = 1) -> OpenCollectiveAPI:
    cfg = LedgerConfig(api_endpoint="https://ledger.test/graphql", page_size=page_size, max_retries=max_retries)
    return OpenCollectiveAPI(cfg, transport=transport)


class TestNodeToRecord:
    def test_converts_total_to_cents(self, make_node) -> None:
        record = node_to_record(make_node("alice", 19.99))

        assert record.total_donations == 1999
        assert record.slug == "alice"
        assert record.id == "id-alice"
        assert record.img_url_med.endswith("/64.png")
        assert record.img_url_small.endswith("/32.png")
        assert record.first_donation == "2019-05-01T12:00:00.000Z"

    def test_missing_account_raises(self) -> None:
        with pytest.raises(LedgerError):
            node_to_record({"totalDonations": {"value": 1}})


class TestPagination:
    def test_short_page_ends_after_one_round(self, make_node, fake_ledger) -> None:
        ledger = fake_ledger([make_node("a"), make_node("b")])

        with _api(ledger.transport) as api:
            records = api.get_all_orders("mochajs")

        assert [r.slug for r in records] == ["a", "b"]
        assert len(ledger.requests) == 1

    def test_exactly_one_full_page_costs_an_extra_empty_round(self, make_node, fake_ledger) -> None:
        ledger = fake_ledger([make_node(s) for s in "abc"])

        with _api(ledger.transport) as api:
            records = api.get_all_orders("mochajs")

        assert len(records) == 3
        assert [r["offset"] for r in ledger.requests] == [0, 3]

    def test_offsets_advance_by_page_size_and_keep_order(self, make_node, fake_ledger) -> None:
        ledger = fake_ledger([make_node(s) for s in "abcdefg"])

        with _api(ledger.transport) as api:
            records = api.get_all_orders("mochajs")

        assert [r.slug for r in records] == list("abcdefg")
        assert [r["offset"] for r in ledger.requests] == [0, 3, 6]
        assert all(r["limit"] == 3 for r in ledger.requests)

    def test_empty_ledger(self, fake_ledger) -> None:
        ledger = fake_ledger([])

        with _api(ledger.transport) as api:
            assert api.get_all_orders("mochajs") == []
        assert len(ledger.requests) == 1

    def test_defaults_to_configured_slug(self, fake_ledger) -> None:
        ledger = fake_ledger([])
        cfg = LedgerConfig(api_endpoint="https://ledger.test/graphql", account_slug="othercollective")

        with OpenCollectiveAPI(cfg, transport=ledger.transport) as api:
            api.get_all_orders()

        assert ledger.requests[0]["slug"] == "othercollective"


class TestFailures:
    def test_transport_error_aborts(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with _api(httpx.MockTransport(handler)) as api, pytest.raises(LedgerError):
            api.get_all_orders("mochajs")

    def test_failure_on_second_page_returns_nothing(self, make_node) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                nodes = [make_node(s) for s in "abc"]
                return httpx.Response(200, json={"data": {"account": {"orders": {"nodes": nodes}}}})
            return httpx.Response(502)

        with _api(httpx.MockTransport(handler)) as api, pytest.raises(LedgerError):
            api.get_all_orders("mochajs")
        assert len(calls) == 2

    def test_retries_then_succeeds(self, make_node) -> None:
        responses = [httpx.Response(503), httpx.Response(200, json={"data": {"account": {"orders": {"nodes": [make_node("a")]}}}})]

        def handler(request: httpx.Request) -> httpx.Response:
            return responses.pop(0)

        with patch("supporters.api.time.sleep") as mock_sleep, _api(httpx.MockTransport(handler), max_retries=3) as api:
            records = api.get_all_orders("mochajs")

        assert [r.slug for r in records] == ["a"]
        mock_sleep.assert_called_once_with(2)

    def test_graphql_errors_raise(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"errors": [{"message": "Rate limit exceeded"}]})

        with _api(httpx.MockTransport(handler)) as api, pytest.raises(LedgerError, match="Rate limit"):
            api.get_all_orders("mochajs")

    def test_unknown_account_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": {"account": None}})

        with _api(httpx.MockTransport(handler)) as api, pytest.raises(LedgerError, match="Unknown account"):
            api.get_all_orders("nope")
