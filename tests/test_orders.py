# =============================================================================
# tests/test_orders.py - Admin Order Lifecycle Tests
# =============================================================================
# Tests for OrderService:
# - accept / reject / ready to dispatch / update status guards
# - status history and customer emails on every change
# - returns within the return window
# - list filters, stats, bulk updates and direct edits
#
# Run with: pytest tests/test_orders.py -v
# =============================================================================

from datetime import timedelta

import pytest

from app.exceptions import BadRequestError, OrderActionError, OrderNotFoundError, StoreException
from core.models.order import OrderActionRequest, OrderPatchRequest
from core.services.order_service import OrderService, compute_order_stats
from lib.utils import utc_now


def days_ago(days: int) -> str:
    return (utc_now() - timedelta(days=days)).isoformat()


@pytest.fixture
def order_in(fake_db, sample_order):
    """Seed the sample order with a given status (and extra columns)."""
    def _seed(status: str, **columns):
        fake_db.seed("orders", {**sample_order, "status": status, **columns})
        return fake_db.rows("orders")[0]
    return _seed


def act(action: str, **fields) -> dict:
    return OrderService.perform_action("order-1", OrderActionRequest(action=action, **fields))


# =============================================================================
# Accept / Reject
# =============================================================================

class TestAcceptOrder:

    def test_accept_pending_review(self, fake_db, order_in, sent_emails):
        # Arrange
        order_in("pending_review")

        # Act
        result = act("accept", notes="Gift wrap")

        # Assert: order
        assert result == {"success": True, "message": "Order accepted successfully", "newStatus": "confirmed"}
        order = fake_db.rows("orders")[0]
        assert order["status"] == "confirmed"
        assert order["admin_notes"] == "Gift wrap"
        assert order["accepted_at"]

        # Assert: history + email
        history = fake_db.rows("order_status_history")[0]
        assert history["old_status"] == "pending_review"
        assert history["new_status"] == "confirmed"
        assert history["changed_by"] == "admin"
        assert fake_db.rows("email_logs")[0]["email_type"] == "order_accepted"

    def test_cannot_accept_shipped(self, fake_db, order_in):
        order_in("shipped")

        with pytest.raises(OrderActionError) as exc_info:
            act("accept")

        assert exc_info.value.message == "Cannot accept order with status: shipped"
        assert exc_info.value.details == {"currentStatus": "shipped"}

    def test_cannot_accept_unpaid(self, fake_db, order_in):
        order_in("pending", payment_status="pending")

        with pytest.raises(OrderActionError) as exc_info:
            act("accept")

        assert exc_info.value.message == "Payment not confirmed"

    def test_cod_order_can_be_accepted(self, fake_db, order_in, sent_emails):
        order_in("pending_review", payment_status="cod")
        assert act("accept")["newStatus"] == "confirmed"


class TestRejectOrder:

    def test_reject_paid_order_marks_refund(self, fake_db, order_in, sent_emails):
        # Arrange
        order_in("confirmed")

        # Act
        result = act("reject", reason="Out of stock")

        # Assert
        assert result["newStatus"] == "cancelled"
        order = fake_db.rows("orders")[0]
        assert order["status"] == "cancelled"
        assert order["reject_reason"] == order["cancel_reason"] == "Out of stock"
        assert order["refund_status"] == "pending"
        assert order["refund_amount"] == 1569
        assert fake_db.rows("order_status_history")[0]["change_reason"] == "Order rejected: Out of stock"
        assert fake_db.rows("email_logs")[0]["email_type"] == "order_rejected"

    def test_reject_unpaid_order_has_no_refund(self, fake_db, order_in, sent_emails):
        order_in("pending", payment_status="pending")

        act("reject", reason="Fraud check")

        assert "refund_status" not in fake_db.rows("orders")[0]

    def test_reason_required(self, fake_db, order_in):
        order_in("confirmed")
        with pytest.raises(BadRequestError) as exc_info:
            act("reject")
        assert exc_info.value.message == "Rejection reason is required"

    @pytest.mark.parametrize("status", ["shipped", "delivered", "cancelled"])
    def test_cannot_reject_after_shipping(self, fake_db, order_in, status):
        order_in(status)
        with pytest.raises(OrderActionError):
            act("reject", reason="Too late")


# =============================================================================
# Ready To Dispatch
# =============================================================================

class TestReadyToDispatch:

    def route_courier(self, shiprocket, awb_status: int = 1):
        shiprocket.add("POST", "/orders/create/adhoc", {"order_id": 555, "shipment_id": 777})
        shiprocket.add("POST", "/courier/assign/awb", {
            "awb_assign_status": awb_status,
            "response": {"data": {"awb_code": "AWB9", "courier_name": "Delhivery Surface"}},
        })
        shiprocket.add("POST", "/courier/generate/pickup", {"pickup_status": 1})
        shiprocket.add("POST", "/courier/generate/label", {"label_url": "https://labels.test/777.pdf"})
        shiprocket.add("GET", "/courier/track/awb/AWB9", {"tracking_data": {"etd": "2025-01-20 12:00:00"}})

    def test_dispatch_confirmed_order(self, fake_db, order_in, shiprocket, sent_emails):
        # Arrange
        order_in("confirmed")
        self.route_courier(shiprocket)

        # Act
        result = act("ready_to_dispatch")

        # Assert: response
        assert result["newStatus"] == "ready_to_dispatch"
        assert result["shipping"]["awbCode"] == "AWB9"
        assert result["shipping"]["trackingUrl"] == "https://www.delhivery.com/track/package/AWB9"

        # Assert: stored courier details
        order = fake_db.rows("orders")[0]
        assert order["status"] == "ready_to_dispatch"
        assert order["shiprocket_order_id"] == "555"
        assert order["shiprocket_shipment_id"] == "777"
        assert order["label_url"] == "https://labels.test/777.pdf"
        assert order["expected_delivery"] == "2025-01-20"
        assert fake_db.rows("email_logs")[0]["email_type"] == "ready_to_dispatch"

    def test_courier_calls_in_order(self, fake_db, order_in, shiprocket, sent_emails):
        order_in("processing")
        self.route_courier(shiprocket)

        act("ready_to_dispatch")

        called = [p.rsplit("/external", 1)[-1] for p in shiprocket.paths()]
        assert called == [
            "/auth/login",
            "/orders/create/adhoc",
            "/courier/assign/awb",
            "/courier/generate/pickup",
            "/courier/generate/label",
            "/courier/track/awb/AWB9",
        ]

    def test_awb_not_assigned(self, fake_db, order_in, shiprocket):
        # Arrange
        order_in("confirmed")
        self.route_courier(shiprocket, awb_status=0)

        # Act
        with pytest.raises(StoreException) as exc_info:
            act("ready_to_dispatch")

        # Assert: order untouched
        assert exc_info.value.code == "DISPATCH_FAILED"
        assert "AWB" in exc_info.value.message
        assert fake_db.rows("orders")[0]["status"] == "confirmed"

    def test_must_be_confirmed_first(self, fake_db, order_in):
        order_in("pending_review")
        with pytest.raises(OrderActionError) as exc_info:
            act("ready_to_dispatch")
        assert "Order must be confirmed first" in exc_info.value.message


# =============================================================================
# Update Status
# =============================================================================

class TestUpdateStatus:

    def test_delivered_stamps_time_and_emails(self, fake_db, order_in, sent_emails):
        order_in("shipped")

        result = act("update_status", newStatus="delivered")

        assert result["message"] == "Order status updated to delivered"
        assert fake_db.rows("orders")[0]["delivered_at"]
        assert fake_db.rows("email_logs")[0]["email_type"] == "order_delivered"

    def test_status_without_email(self, fake_db, order_in, sent_emails):
        order_in("confirmed")

        act("update_status", newStatus="processing")

        sent_emails.assert_not_called()
        assert fake_db.rows("order_status_history")[0]["change_reason"] == "Status updated to processing"

    def test_invalid_status(self, fake_db, order_in):
        order_in("confirmed")
        with pytest.raises(BadRequestError) as exc_info:
            act("update_status", newStatus="teleported")
        assert exc_info.value.message == "Invalid status: teleported"

    def test_unknown_action(self, fake_db, order_in):
        order_in("confirmed")
        with pytest.raises(BadRequestError):
            act("refund")

    def test_unknown_order(self, fake_db):
        with pytest.raises(OrderNotFoundError):
            act("accept")


# =============================================================================
# Returns
# =============================================================================

class TestReturns:

    def test_manual_return_without_awb(self, fake_db, order_in):
        # Arrange
        order_in("delivered", delivered_at=days_ago(2))

        # Act
        result = OrderService.request_return("order-1", "damaged", "Box crushed")

        # Assert
        assert result == {
            "success": True,
            "message": "Return request recorded. Please process manually.",
            "shiprocketReturn": False,
        }
        order = fake_db.rows("orders")[0]
        assert order["status"] == "return_requested"
        assert order["return_reason"] == "Damaged / Broken Item"
        assert order["return_notes"] == "Box crushed"

    def test_courier_return(self, fake_db, order_in, shiprocket):
        # Arrange
        order_in("delivered", delivered_at=days_ago(1), awb_code="AWB9", shiprocket_order_id="555")
        shiprocket.add("POST", "/orders/create/return", {"order_id": 901, "awb_code": "RAWB1"})

        # Act
        result = OrderService.request_return("order-1", "wrong_item")

        # Assert
        assert result["shiprocketReturn"] is True
        assert result["returnOrderId"] == 901
        order = fake_db.rows("orders")[0]
        assert order["return_shiprocket_order_id"] == "901"
        assert order["return_awb_code"] == "RAWB1"
        assert fake_db.rows("shipment_tracking")[0]["status"] == "RETURN_INITIATED"

    def test_courier_return_failure_is_recorded(self, fake_db, order_in, shiprocket):
        order_in("delivered", delivered_at=days_ago(1), awb_code="AWB9", shiprocket_order_id="555")
        shiprocket.add("POST", "/orders/create/return", {"message": "Pickup not serviceable"}, status=422)

        result = OrderService.request_return("order-1", "damaged")

        assert result["shiprocketReturn"] is False
        assert result["shiprocketError"] == "Pickup not serviceable"
        assert fake_db.rows("orders")[0]["status"] == "return_requested"

    def test_window_expired(self, fake_db, order_in):
        order_in("delivered", delivered_at=days_ago(10))
        with pytest.raises(BadRequestError) as exc_info:
            OrderService.request_return("order-1", "damaged")
        assert exc_info.value.message == "Return window has expired (7 days from delivery)"

    def test_not_delivered(self, fake_db, order_in):
        order_in("shipped")
        with pytest.raises(BadRequestError) as exc_info:
            OrderService.request_return("order-1", "damaged")
        assert exc_info.value.message == "Return can only be initiated for delivered orders"

    def test_invalid_reason(self, fake_db):
        with pytest.raises(BadRequestError):
            OrderService.request_return("order-1", "changed_my_mind")

    def test_eligibility(self, fake_db, order_in):
        order_in("delivered", delivered_at=days_ago(3))

        result = OrderService.return_eligibility("order-1")

        assert result["eligible"] is True
        assert result["daysRemaining"] == 4
        assert {r["value"] for r in result["validReasons"]} == {"wrong_item", "damaged"}

    def test_already_requested(self, fake_db, order_in):
        order_in("return_requested", return_requested_at=days_ago(1), return_reason="Damaged / Broken Item")

        result = OrderService.return_eligibility("order-1")

        assert result["eligible"] is False
        assert result["reason"] == "Return already requested"


# =============================================================================
# Admin List, Bulk and Edits
# =============================================================================

class TestAdminOrders:

    @pytest.fixture
    def many_orders(self, fake_db):
        fake_db.seed(
            "orders",
            {"id": "o1", "order_number": "AKU-1", "status": "pending", "payment_status": "pending",
             "customer_name": "Asha", "created_at": "2025-01-01"},
            {"id": "o2", "order_number": "AKU-2", "status": "pending_review", "payment_status": "paid",
             "customer_name": "Ravi", "created_at": "2025-01-02"},
            {"id": "o3", "order_number": "AKU-3", "status": "shipped", "payment_status": "paid",
             "customer_name": "Meera", "created_at": "2025-01-03"},
            {"id": "o4", "order_number": "AKU-4", "status": "rto_delivered", "payment_status": "paid",
             "customer_name": "Asha", "created_at": "2025-01-04"},
        )
        return fake_db

    def test_stats(self):
        stats = compute_order_stats([
            {"status": "pending", "payment_status": "pending"},
            {"status": "ready_to_dispatch", "payment_status": "paid"},
            {"status": "out_for_delivery", "payment_status": "paid"},
            {"status": "rto_initiated", "payment_status": "paid"},
        ])
        assert stats == {
            "total": 4,
            "pending": 1,
            "confirmed": 0,
            "processing": 1,
            "shipped": 1,
            "delivered": 0,
            "cancelled": 1,
            "paid": 3,
        }

    def test_status_group_filter(self, many_orders):
        result = OrderService.list_orders(status="pending")

        assert [o["id"] for o in result["orders"]] == ["o2", "o1"]
        assert result["count"] == 2
        assert result["stats"]["total"] == 4

    def test_search_and_payment_filter(self, many_orders):
        result = OrderService.list_orders(payment="paid", search="asha")
        assert [o["id"] for o in result["orders"]] == ["o4"]

    def test_bulk_status_update(self, many_orders):
        # Act
        result = OrderService.bulk_action("bulk_status_update", ["o1", "o2"], {"newStatus": "confirmed"})

        # Assert
        assert result["message"] == "2 orders updated to confirmed"
        statuses = {o["id"]: o["status"] for o in many_orders.rows("orders")}
        assert statuses == {"o1": "confirmed", "o2": "confirmed", "o3": "shipped", "o4": "rto_delivered"}
        assert len(many_orders.rows("order_status_history")) == 2

    def test_bulk_export(self, many_orders):
        result = OrderService.bulk_action("export", ["o3"], {})
        assert [o["order_number"] for o in result["orders"]] == ["AKU-3"]

    def test_bulk_requires_ids(self, fake_db):
        with pytest.raises(BadRequestError) as exc_info:
            OrderService.bulk_action("bulk_status_update", [], {})
        assert exc_info.value.message == "Invalid request: action and orderIds required"

    def test_patch_stamps_shipped_at(self, fake_db, order_in):
        order_in("ready_to_dispatch")

        result = OrderService.patch_order("order-1", OrderPatchRequest(status="shipped", awb_code="AWB9"))

        assert result["order"]["status"] == "shipped"
        assert result["order"]["awb_code"] == "AWB9"
        assert result["order"]["shipped_at"]

    def test_order_details(self, fake_db, order_in):
        order_in("confirmed")
        fake_db.seed("order_status_history", {"order_id": "order-1", "new_status": "confirmed", "created_at": "2025-01-16"})

        details = OrderService.get_order_details("order-1")

        assert details["order"]["id"] == "order-1"
        assert len(details["history"]) == 1
        assert details["tracking"] == []
        assert details["emails"] == []
