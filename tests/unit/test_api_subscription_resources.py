"""Unit tests for the subscription endpoints with mocked services.

Usage
-----
Run with pytest::

    pytest tests/unit/test_api_subscription_resources.py

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import typing as typ
from unittest import mock

import falcon
import falcon.testing
import pytest

from reportcourier.api.app import AppDependencies, create_app
from reportcourier.dispatch import DispatchCycleError, DispatchOutcome, DispatchReport
from reportcourier.export import ExportResult
from reportcourier.subscriptions import (
    InvalidSubscriptionError,
    ReportSubscription,
    SubscriptionInput,
    SubscriptionLog,
    SubscriptionNotFoundError,
    SubscriptionRecipient,
)
from reportcourier.subscriptions.storage import DeliveryStatus, ExportFormat

SENT_AT = dt.datetime(2024, 7, 1, 8, 2, tzinfo=dt.UTC)

VALID_BODY: dict[str, typ.Any] = {
    "company_id": "company-1",
    "dashboard_id": "dashboard-1",
    "name": "Morning sales",
    "frequency": "daily",
    "schedule_time": "08:00",
    "recipients": [{"email": "ana@acme.test", "name": "Ana"}],
}


def _row(*, is_active: bool = True) -> ReportSubscription:
    row = ReportSubscription(
        id="sub-1",
        company_id="company-1",
        dashboard_id="dashboard-1",
        name="Morning sales",
        frequency="daily",
        schedule_time="08:00",
        schedule_days_of_week=None,
        schedule_day_of_month=None,
        schedule_interval_hours=None,
        report_page=None,
        export_format=ExportFormat.PNG,
        is_active=is_active,
        last_sent_at=SENT_AT,
    )
    row.recipients = [SubscriptionRecipient(id="r-1", email="ana@acme.test")]
    return row


@dc.dataclass(slots=True)
class _Harness:
    client: falcon.testing.TestClient
    subscriptions: mock.MagicMock
    dispatch: mock.MagicMock
    export: mock.MagicMock


@pytest.fixture
def harness() -> _Harness:
    """Build the full app over mocked services."""
    subscriptions = mock.MagicMock()
    dispatch = mock.MagicMock()
    export = mock.MagicMock()
    app = create_app(
        AppDependencies(
            subscription_service=subscriptions,
            dispatch_service=dispatch,
            export_service=export,
        )
    )
    return _Harness(falcon.testing.TestClient(app), subscriptions, dispatch, export)


class TestProcessResource:
    """Tests for POST /subscriptions/process."""

    def test_reports_cycle_results(self, harness: _Harness) -> None:
        """Per-subscription failures still return HTTP 200."""
        harness.dispatch.run_cycle = mock.AsyncMock(
            return_value=DispatchReport(
                evaluated=3,
                matched=2,
                results=(
                    DispatchOutcome(id="a", success=True),
                    DispatchOutcome(id="b", success=False, error="boom"),
                ),
            )
        )

        result = harness.client.simulate_post("/subscriptions/process")

        assert result.status == falcon.HTTP_200, "expected HTTP 200"
        assert result.json == {
            "success": True,
            "processed": 2,
            "results": [
                {"id": "a", "success": True},
                {"id": "b", "success": False, "error": "boom"},
            ],
        }, "unexpected body"
        harness.dispatch.run_cycle.assert_awaited_once_with(None)

    def test_as_of_is_forwarded(self, harness: _Harness) -> None:
        """An as_of query parameter overrides the evaluation instant."""
        harness.dispatch.run_cycle = mock.AsyncMock(
            return_value=DispatchReport(evaluated=0, matched=0)
        )

        harness.client.simulate_post(
            "/subscriptions/process", params={"as_of": "2024-07-01T08:02:00+00:00"}
        )

        harness.dispatch.run_cycle.assert_awaited_once_with(SENT_AT)

    @pytest.mark.parametrize("as_of", ["yesterday", "2024-07-01T08:02:00"])
    def test_invalid_as_of(self, harness: _Harness, as_of: str) -> None:
        """Malformed or naive as_of values are rejected."""
        harness.dispatch.run_cycle = mock.AsyncMock()

        result = harness.client.simulate_post(
            "/subscriptions/process", params={"as_of": as_of}
        )

        assert result.status == falcon.HTTP_400, "expected HTTP 400"
        assert result.json["field"] == "as_of", "wrong field"
        harness.dispatch.run_cycle.assert_not_awaited()

    def test_cycle_failure_returns_500(self, harness: _Harness) -> None:
        """A cycle that cannot run returns the failure envelope."""
        harness.dispatch.run_cycle = mock.AsyncMock(
            side_effect=DispatchCycleError.fetch_failed("db down")
        )

        result = harness.client.simulate_post("/subscriptions/process")

        assert result.status == falcon.HTTP_500, "expected HTTP 500"
        assert result.json["success"] is False, "expected failure envelope"
        assert "db down" in result.json["error"], "error detail missing"


class TestExportResource:
    """Tests for POST /subscriptions/{id}/export."""

    def test_success(self, harness: _Harness) -> None:
        """Successful exports return 200 with the delivery message."""
        harness.export.export_subscription = mock.AsyncMock(
            return_value=ExportResult(
                success=True,
                message="Report image sent successfully",
                exported_as_image=True,
            )
        )

        result = harness.client.simulate_post("/subscriptions/sub-1/export")

        assert result.status == falcon.HTTP_200, "expected HTTP 200"
        assert result.json == {
            "success": True,
            "message": "Report image sent successfully",
            "exported_as_image": True,
        }, "unexpected body"
        harness.export.export_subscription.assert_awaited_once_with("sub-1")

    def test_failure(self, harness: _Harness) -> None:
        """Failed exports return 500 with the error."""
        harness.export.export_subscription = mock.AsyncMock(
            return_value=ExportResult.failed("Subscription not found")
        )

        result = harness.client.simulate_post("/subscriptions/missing/export")

        assert result.status == falcon.HTTP_500, "expected HTTP 500"
        assert result.json == {"success": False, "error": "Subscription not found"}


class TestSubscriptionCollection:
    """Tests for /subscriptions."""

    def test_create(self, harness: _Harness) -> None:
        """Valid bodies are decoded and the created row returned."""
        harness.subscriptions.create = mock.AsyncMock(return_value=_row())

        result = harness.client.simulate_post("/subscriptions", json=VALID_BODY)

        assert result.status == falcon.HTTP_201, "expected HTTP 201"
        assert result.json["id"] == "sub-1", "wrong id"
        assert result.json["last_sent_at"] == "2024-07-01T08:02:00Z"
        assert result.json["recipients"][0]["email"] == "ana@acme.test"
        (payload,) = harness.subscriptions.create.await_args.args
        assert isinstance(payload, SubscriptionInput), "body not decoded"
        assert payload.recipients[0].name == "Ana", "recipient not decoded"

    @pytest.mark.parametrize(
        ("body", "fragment"),
        [
            (b"", "request body is required"),
            (b"{not json", "not valid JSON"),
            (b'{"name": "x"}', "missing required field"),
        ],
    )
    def test_create_rejects_bad_bodies(
        self, harness: _Harness, body: bytes, fragment: str
    ) -> None:
        """Empty, malformed and incomplete bodies return 400."""
        harness.subscriptions.create = mock.AsyncMock()

        result = harness.client.simulate_post(
            "/subscriptions",
            body=body,
            headers={"content-type": "application/json"},
        )

        assert result.status == falcon.HTTP_400, "expected HTTP 400"
        assert fragment in result.json["description"], "wrong error description"
        harness.subscriptions.create.assert_not_awaited()

    def test_validation_error(self, harness: _Harness) -> None:
        """Service validation failures return 400 with the field."""
        harness.subscriptions.create = mock.AsyncMock(
            side_effect=InvalidSubscriptionError.unknown_frequency("hourly")
        )

        result = harness.client.simulate_post("/subscriptions", json=VALID_BODY)

        assert result.status == falcon.HTTP_400, "expected HTTP 400"
        assert result.json["field"] == "frequency", "wrong field"

    def test_list_requires_company(self, harness: _Harness) -> None:
        """Listing without company_id is a bad request."""
        result = harness.client.simulate_get("/subscriptions")
        assert result.status == falcon.HTTP_400, "expected HTTP 400"

    def test_list(self, harness: _Harness) -> None:
        """Listing returns the company's subscriptions."""
        harness.subscriptions.list_for_company = mock.AsyncMock(return_value=[_row()])

        result = harness.client.simulate_get(
            "/subscriptions", params={"company_id": "company-1"}
        )

        assert [s["id"] for s in result.json["subscriptions"]] == ["sub-1"]
        harness.subscriptions.list_for_company.assert_awaited_once_with("company-1")


class TestSubscriptionItem:
    """Tests for /subscriptions/{id}."""

    def test_get_missing(self, harness: _Harness) -> None:
        """Unknown ids return 404."""
        harness.subscriptions.get = mock.AsyncMock(
            side_effect=SubscriptionNotFoundError("nope")
        )
        result = harness.client.simulate_get("/subscriptions/nope")
        assert result.status == falcon.HTTP_404, "expected HTTP 404"

    def test_put_replaces(self, harness: _Harness) -> None:
        """PUT forwards the decoded body to replace."""
        harness.subscriptions.replace = mock.AsyncMock(return_value=_row())

        result = harness.client.simulate_put("/subscriptions/sub-1", json=VALID_BODY)

        assert result.status == falcon.HTTP_200, "expected HTTP 200"
        subscription_id, payload = harness.subscriptions.replace.await_args.args
        assert subscription_id == "sub-1", "wrong id"
        assert payload.schedule_time == "08:00", "body not decoded"

    def test_patch_toggles(self, harness: _Harness) -> None:
        """PATCH sets the active flag."""
        harness.subscriptions.set_active = mock.AsyncMock(
            return_value=_row(is_active=False)
        )

        result = harness.client.simulate_patch(
            "/subscriptions/sub-1", json={"is_active": False}
        )

        assert result.json["is_active"] is False, "flag not returned"
        harness.subscriptions.set_active.assert_awaited_once_with(
            "sub-1", is_active=False
        )

    def test_delete(self, harness: _Harness) -> None:
        """DELETE returns 204."""
        harness.subscriptions.delete = mock.AsyncMock(return_value=None)
        result = harness.client.simulate_delete("/subscriptions/sub-1")
        assert result.status == falcon.HTTP_204, "expected HTTP 204"


class TestDeliveryLogResource:
    """Tests for /subscriptions/{id}/logs."""

    def test_lists_logs(self, harness: _Harness) -> None:
        """Logs are rendered with their status values."""
        log = SubscriptionLog(
            id="log-1",
            subscription_id="sub-1",
            status=DeliveryStatus.SENT_WITH_LINK,
            started_at=SENT_AT,
            completed_at=SENT_AT,
            recipients_count=1,
        )
        harness.subscriptions.list_logs = mock.AsyncMock(return_value=[log])

        result = harness.client.simulate_get(
            "/subscriptions/sub-1/logs", params={"limit": "5"}
        )

        assert result.json["logs"][0]["status"] == "sent_with_link", "wrong status"
        harness.subscriptions.list_logs.assert_awaited_once_with("sub-1", limit=5)

    def test_limit_out_of_range(self, harness: _Harness) -> None:
        """Limits outside 1-500 are rejected."""
        harness.subscriptions.list_logs = mock.AsyncMock(return_value=[])
        result = harness.client.simulate_get(
            "/subscriptions/sub-1/logs", params={"limit": "1000"}
        )
        assert result.status == falcon.HTTP_400, "expected HTTP 400"
