from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from printflow.config import settings
from printflow.models.order import Order
from printflow.services.print_dispatch_service import get_retry_queue


def _age(db_session, order_id: str, **delta) -> None:
    order = db_session.scalar(select(Order).where(Order.order_id == order_id))
    order.created_at = datetime.now(timezone.utc) - timedelta(**delta)
    db_session.commit()


@pytest.mark.parametrize(
    "path",
    [
        "/api/v1/cron/reconcile-payments",
        "/api/v1/cron/cleanup-pending-orders",
        "/api/v1/cron/drain-print-retries",
    ],
)
def test_cron_endpoints_require_secret(client, path):
    assert client.post(path).status_code == 401
    assert client.post(path, headers={"X-Cron-Secret": "wrong"}).status_code == 401


def test_cron_accepts_bearer_secret(client):
    response = client.post(
        "/api/v1/cron/drain-print-retries",
        headers={"Authorization": f"Bearer {settings.cron_secret}"},
    )

    assert response.status_code == 200
    assert response.json()["attempted"] == 0


def test_reconcile_sweep_repairs_old_paid_orders(
    client, db_session, create_file_order, gateway, printer_client, cron_headers
):
    old = create_file_order()
    young = create_file_order()
    _age(db_session, old["order"]["order_id"], minutes=20)
    gateway.add_captured_payment(old["gateway_order_id"], "pay_old", 2000)
    gateway.add_captured_payment(young["gateway_order_id"], "pay_young", 2000)

    response = client.post("/api/v1/cron/reconcile-payments", headers=cron_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["scanned"] == 1
    assert body["repaired"] == [old["order"]["order_id"]]
    assert [job.order_id for job in printer_client.sent] == [old["order"]["order_id"]]


def test_cleanup_reminds_and_cancels(
    client, db_session, create_file_order, notifier, cron_headers
):
    stale = create_file_order()["order"]["order_id"]
    waiting = create_file_order()["order"]["order_id"]
    _age(db_session, stale, hours=25)
    _age(db_session, waiting, hours=3)

    response = client.post("/api/v1/cron/cleanup-pending-orders", headers=cron_headers)

    assert response.status_code == 200
    assert response.json() == {"reminded": [waiting], "cancelled": [stale], "threshold_hours": 24}
    assert client.get(f"/api/v1/orders/{stale}").json()["status"] == "cancelled"
    assert client.get(f"/api/v1/orders/{waiting}").json()["status"] == "pending_payment"
    assert len(notifier.events("payment_reminder")) == 1


def test_drain_retries_failed_dispatch(
    client, create_file_order, verify, printer_client, cron_headers, admin_headers, monkeypatch
):
    monkeypatch.setattr(get_retry_queue(), "backoff_s", 0)
    printer_client.failures_remaining = 1
    created = create_file_order()
    verify(created["gateway_order_id"])

    queued = client.get("/api/v1/printing/retry-queue", headers=admin_headers).json()
    assert [e["order_id"] for e in queued["pending"]] == [created["order"]["order_id"]]

    response = client.post("/api/v1/cron/drain-print-retries", headers=cron_headers)

    assert response.status_code == 200
    assert response.json() == {
        "attempted": 1,
        "succeeded": 1,
        "rescheduled": 0,
        "exhausted": 0,
        "dropped": 0,
    }
    assert len(printer_client.sent) == 2
    assert client.get("/api/v1/printing/retry-queue", headers=admin_headers).json()["pending"] == []
