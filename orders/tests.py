from decimal import Decimal
from unittest.mock import Mock, patch

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from authentication.core.exceptions import InvalidStatusTransition, StatusChangeForbidden
from restaurants.models import Address, MenuItem, Restaurant

from .batch import _base36, generate_batch_number, generate_order_number
from .models import Order, OrderAuditLog, Review
from .services import compute_order_totals
from .state_machine import OrderStatusMachine

User = get_user_model()
PASSWORD = "StrongPass!234"


class OrderFixtureMixin:
    """Users for every role, one restaurant with two dishes, one customer address."""

    def make_users(self):
        self.customer = User.objects.create_user(email="ada@example.com", password=PASSWORD, full_name="Ada")
        self.other_customer = User.objects.create_user(email="ben@example.com", password=PASSWORD)
        self.owner = User.objects.create_user(
            email="chef@restaurant.com", password=PASSWORD, role=User.Role.RESTAURANT_OWNER
        )
        self.other_owner = User.objects.create_user(
            email="rival@restaurant.com", password=PASSWORD, role=User.Role.RESTAURANT_OWNER
        )
        self.courier = User.objects.create_user(
            email="rider@delivery.com", password=PASSWORD, role=User.Role.DELIVERY_GUY, phone_number="0800000001"
        )
        self.other_courier = User.objects.create_user(
            email="rider2@delivery.com", password=PASSWORD, role=User.Role.DELIVERY_GUY
        )
        self.admin = User.objects.create_user(email="ops@admin.com", password=PASSWORD, role=User.Role.ADMIN)

        self.restaurant = Restaurant.objects.create(owner=self.owner, name="Tandoor House", city="Pune")
        self.burger = MenuItem.objects.create(restaurant=self.restaurant, name="Burger", price=Decimal("12.99"))
        self.fries = MenuItem.objects.create(restaurant=self.restaurant, name="Fries", price=Decimal("8.99"))
        self.address = Address.objects.create(
            user=self.customer, street="1 MG Road", city="Pune", phone_number="0800000002", is_default=True
        )

    def make_order(self, status=Order.Status.PENDING, suffix="A1", **extra):
        defaults = dict(
            customer=self.customer,
            restaurant=self.restaurant,
            order_number=f"ORD-TEST-{suffix}",
            batch_number=f"foodontrack-TEST{suffix}",
            status=status,
            delivery_address="1 MG Road, Pune",
            total_amount=Decimal("72.52"),
        )
        defaults.update(extra)
        return Order.objects.create(**defaults)


# =====================================================
# Batch & order numbers
# =====================================================

class BatchNumberTests(SimpleTestCase):
    def test_batch_number_format(self):
        number = generate_batch_number(exists=lambda candidate: False, prefix="foodontrack")
        self.assertRegex(number, r"^foodontrack-[A-Z0-9]{6}$")

    @override_settings(BATCH_NUMBER_PREFIX="kitchen")
    def test_prefix_comes_from_settings(self):
        number = generate_batch_number(exists=lambda candidate: False)
        self.assertTrue(number.startswith("kitchen-"))

    def test_collision_draws_a_new_number(self):
        drawn = iter("AAAAAA" + "BBBBBB")
        exists = Mock(side_effect=lambda candidate: candidate == "foodontrack-AAAAAA")

        number = generate_batch_number(exists, prefix="foodontrack", choice=lambda alphabet: next(drawn))

        self.assertEqual(number, "foodontrack-BBBBBB")
        self.assertEqual(exists.call_count, 2)
        exists.assert_any_call("foodontrack-AAAAAA")

    def test_keeps_retrying_while_candidates_collide(self):
        exists = Mock(side_effect=[True] * 25 + [False])
        generate_batch_number(exists, prefix="foodontrack")
        self.assertEqual(exists.call_count, 26)

    def test_order_number_uses_base36_clock(self):
        number = generate_order_number(
            exists=lambda candidate: False,
            choice=lambda alphabet: "Z",
            clock=lambda: 36,
        )
        # 36000 ms in base36
        self.assertEqual(number, "ORD-RS0-ZZZ")

    def test_base36(self):
        self.assertEqual(_base36(0), "0")
        self.assertEqual(_base36(35), "Z")
        self.assertEqual(_base36(36), "10")


# =====================================================
# Totals
# =====================================================

class OrderTotalsTests(SimpleTestCase):
    def test_default_tax_example(self):
        totals = compute_order_totals(
            [(Decimal("12.99"), 1), (Decimal("8.99"), 2)],
            delivery_fee=Decimal("40"),
            tax_rate=Decimal("0.05"),
        )
        self.assertEqual(totals["subtotal"], Decimal("30.97"))
        self.assertEqual(totals["tax"], Decimal("1.55"))
        # 30.97 + 40 + 1.5485 = 72.5185
        self.assertEqual(totals["total_amount"], Decimal("72.52"))

    def test_explicit_tax_and_discount(self):
        totals = compute_order_totals(
            [(Decimal("10.00"), 3)], delivery_fee=Decimal("5"), tax=Decimal("2.50"), discount=Decimal("7.50")
        )
        self.assertEqual(totals["total_amount"], Decimal("30.00"))

    def test_discount_larger_than_order_is_rejected(self):
        from rest_framework.exceptions import ValidationError

        with self.assertRaises(ValidationError):
            compute_order_totals([(Decimal("5.00"), 1)], tax=Decimal("0"), discount=Decimal("6"))

    def test_amounts_beyond_money_column_are_rejected(self):
        from rest_framework.exceptions import ValidationError

        with self.assertRaises(ValidationError) as ctx:
            compute_order_totals([(Decimal("9999999.99"), 10)], tax=Decimal("0"))
        self.assertIn("subtotal", ctx.exception.detail)
        self.assertIn("total_amount", ctx.exception.detail)

    def test_largest_storable_total_is_accepted(self):
        totals = compute_order_totals([(Decimal("99999999.99"), 1)], tax=Decimal("0"))
        self.assertEqual(totals["total_amount"], Decimal("99999999.99"))


# =====================================================
# State machine
# =====================================================

class OrderStatusMachineTests(SimpleTestCase):
    Status = Order.Status
    Role = User.Role

    def test_owner_confirms_pending(self):
        OrderStatusMachine.validate_transition(self.Status.PENDING, self.Status.CONFIRMED, self.Role.RESTAURANT_OWNER)

    def test_customer_cannot_confirm(self):
        with self.assertRaises(StatusChangeForbidden):
            OrderStatusMachine.validate_transition(self.Status.PENDING, self.Status.CONFIRMED, self.Role.CUSTOMER)

    def test_skipping_steps_is_rejected_even_for_admin(self):
        with self.assertRaises(InvalidStatusTransition):
            OrderStatusMachine.validate_transition(self.Status.PENDING, self.Status.DELIVERED, self.Role.ADMIN)

    def test_same_status_is_not_a_transition(self):
        with self.assertRaises(InvalidStatusTransition):
            OrderStatusMachine.validate_transition(self.Status.READY, self.Status.READY, self.Role.ADMIN)

    def test_terminal_statuses_have_no_exits(self):
        for status_value in (self.Status.DELIVERED, self.Status.CANCELLED):
            self.assertTrue(OrderStatusMachine.is_terminal(status_value))
            self.assertEqual(OrderStatusMachine.allowed_targets(status_value), [])

    def test_allowed_targets_filtered_by_role(self):
        targets = OrderStatusMachine.allowed_targets(self.Status.READY, self.Role.DELIVERY_GUY)
        self.assertEqual(set(targets), {self.Status.PICKED_BY_DELIVERY, self.Status.OUT_FOR_DELIVERY})

    def test_unknown_status_is_invalid(self):
        with self.assertRaises(InvalidStatusTransition):
            OrderStatusMachine.validate_transition("pending", "teleported", self.Role.ADMIN)


# =====================================================
# Order API
# =====================================================

class OrderCreateTests(OrderFixtureMixin, APITestCase):
    url = "/api/orders/"

    def setUp(self):
        self.make_users()
        self.client.force_authenticate(user=self.customer)

    def payload(self, **overrides):
        data = {
            "restaurant_id": self.restaurant.pk,
            "address_id": self.address.pk,
            "items": [
                {"menu_item_id": self.burger.pk, "quantity": 1},
                {"menu_item_id": self.fries.pk, "quantity": 2},
            ],
            "payment_method": "cash",
            "delivery_fee": "40.00",
        }
        data.update(overrides)
        return data

    def test_create_order_prices_from_menu(self):
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(self.url, self.payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        data = response.data["data"]
        self.assertTrue(response.data["success"])
        self.assertEqual(data["total_amount"], "72.52")
        self.assertEqual(data["status"], Order.Status.PENDING)
        self.assertEqual(data["payment_method"], Order.PaymentMethod.CASH)
        self.assertEqual(data["payment_status"], Order.PaymentStatus.PENDING)
        self.assertRegex(data["batch_number"], r"^foodontrack-[A-Z0-9]{6}$")
        self.assertTrue(data["order_number"].startswith("ORD-"))
        self.assertIn("pending", data["order_timeline"])
        self.assertEqual(len(data["items"]), 2)

        order = Order.objects.get(order_id=data["order_id"])
        self.assertEqual(order.items.count(), 2)
        self.assertTrue(OrderAuditLog.objects.filter(order=order, to_status=Order.Status.PENDING).exists())

    def test_client_prices_are_ignored(self):
        payload = self.payload(items=[{"menu_item_id": self.burger.pk, "quantity": 1, "price": "0.01"}], tax="0")
        response = self.client.post(self.url, payload, format="json")
        self.assertEqual(response.data["data"]["subtotal"], "12.99")

    def test_card_payment_starts_completed(self):
        response = self.client.post(self.url, self.payload(payment_method="UPI"), format="json")
        self.assertEqual(response.data["data"]["payment_method"], Order.PaymentMethod.ONLINE)
        self.assertEqual(response.data["data"]["payment_status"], Order.PaymentStatus.COMPLETED)

    def test_unknown_payment_method_rejected(self):
        response = self.client.post(self.url, self.payload(payment_method="barter"), format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error_code"], "validation_error")

    def test_menu_item_from_another_restaurant_is_not_found(self):
        other = Restaurant.objects.create(owner=self.other_owner, name="Elsewhere")
        stray = MenuItem.objects.create(restaurant=other, name="Soup", price=Decimal("4.00"))

        response = self.client.post(
            self.url, self.payload(items=[{"menu_item_id": stray.pk, "quantity": 1}]), format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(Order.objects.exists())

    def test_address_must_belong_to_customer(self):
        foreign = Address.objects.create(user=self.other_customer, street="2 Park St", city="Pune")
        response = self.client.post(self.url, self.payload(address_id=foreign.pk), format="json")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delivery_guy_cannot_create_orders(self):
        self.client.force_authenticate(user=self.courier)
        response = self.client.post(self.url, self.payload(), format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_customer_id_is_admin_only(self):
        response = self.client.post(self.url, self.payload(customer_id=str(self.other_customer.uuid)), format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    @patch("orders.services.generate_batch_number", return_value="foodontrack-FIXED1")
    def test_duplicate_batch_number_is_a_conflict(self, mock_generate):
        self.make_order(batch_number="foodontrack-FIXED1")
        response = self.client.post(self.url, self.payload(), format="json")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["error_code"], "duplicate_entry")

    def test_quantity_above_line_limit_is_rejected(self):
        response = self.client.post(
            self.url, self.payload(items=[{"menu_item_id": self.burger.pk, "quantity": 10_000_000}]), format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error_code"], "validation_error")
        self.assertFalse(Order.objects.exists())

    def test_total_too_large_to_store_is_rejected_before_saving(self):
        banquet = MenuItem.objects.create(restaurant=self.restaurant, name="Banquet", price=Decimal("9999999.99"))
        response = self.client.post(
            self.url, self.payload(items=[{"menu_item_id": banquet.pk, "quantity": 20}]), format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error_code"], "validation_error")
        self.assertFalse(Order.objects.exists())


class OrderListAndDetailTests(OrderFixtureMixin, APITestCase):
    def setUp(self):
        self.make_users()
        self.mine = self.make_order(suffix="01")
        self.theirs = self.make_order(suffix="02", customer=self.other_customer)

    def test_customer_lists_only_own_orders(self):
        self.client.force_authenticate(user=self.customer)
        response = self.client.get("/api/orders/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([o["order_number"] for o in response.data["data"]], [self.mine.order_number])
        self.assertEqual(response.data["pagination"]["total"], 1)

    def test_owner_sees_restaurant_orders_and_filters_by_status(self):
        self.make_order(suffix="03", status=Order.Status.CONFIRMED)
        self.client.force_authenticate(user=self.owner)

        response = self.client.get("/api/orders/", {"status": "confirmed"})
        self.assertEqual(len(response.data["data"]), 1)
        self.assertEqual(response.data["data"][0]["status"], Order.Status.CONFIRMED)

    def test_pagination_limit(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get("/api/orders/", {"limit": 1, "page": 2})
        self.assertEqual(len(response.data["data"]), 1)
        self.assertEqual(response.data["pagination"]["page"], 2)
        self.assertEqual(response.data["pagination"]["pages"], 2)

    def test_detail_lists_transitions_open_to_caller(self):
        self.client.force_authenticate(user=self.owner)
        response = self.client.get(f"/api/orders/{self.mine.order_id}/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["allowed_transitions"], [Order.Status.CONFIRMED, Order.Status.CANCELLED])

    def test_other_customer_gets_403(self):
        self.client.force_authenticate(user=self.customer)
        response = self.client.get(f"/api/orders/{self.theirs.order_id}/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["error_code"], "order_access_denied")

    def test_missing_order_gets_404(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get("/api/orders/00000000-0000-0000-0000-000000000000/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_unauthenticated_is_rejected(self):
        response = APIClient().get("/api/orders/")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(response.data["success"])


class OrderStatusTests(OrderFixtureMixin, APITestCase):
    def setUp(self):
        self.make_users()
        self.order = self.make_order()

    def status_url(self, order=None):
        return f"/api/orders/{(order or self.order).order_id}/status/"

    def test_owner_confirms_and_timeline_is_stamped(self):
        self.client.force_authenticate(user=self.owner)
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.patch(self.status_url(), {"status": "confirmed"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.CONFIRMED)
        self.assertIn("confirmed", self.order.order_timeline)

        audit = OrderAuditLog.objects.get(order=self.order)
        self.assertEqual((audit.from_status, audit.to_status, audit.actor), ("pending", "confirmed", self.owner))

    def test_timeline_stamp_is_not_overwritten(self):
        self.order.order_timeline = {"confirmed": "2024-01-01T00:00:00+00:00"}
        self.order.save()

        self.client.force_authenticate(user=self.owner)
        self.client.patch(self.status_url(), {"status": "confirmed"}, format="json")

        self.order.refresh_from_db()
        self.assertEqual(self.order.order_timeline["confirmed"], "2024-01-01T00:00:00+00:00")

    def test_illegal_jump_is_400(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.patch(self.status_url(), {"status": "delivered"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error_code"], "invalid_status_transition")

    def test_customer_cannot_confirm_own_order(self):
        self.client.force_authenticate(user=self.customer)
        response = self.client.patch(self.status_url(), {"status": "confirmed"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["error_code"], "status_change_forbidden")

    def test_other_restaurant_cannot_touch_order(self):
        Restaurant.objects.create(owner=self.other_owner, name="Rival")
        self.client.force_authenticate(user=self.other_owner)
        response = self.client.patch(self.status_url(), {"status": "confirmed"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["error_code"], "order_access_denied")

    def test_cash_payment_completes_on_delivery(self):
        order = self.make_order(
            suffix="D1", status=Order.Status.OUT_FOR_DELIVERY, delivery_person=self.courier,
            payment_method=Order.PaymentMethod.CASH,
        )
        self.client.force_authenticate(user=self.courier)
        self.client.patch(self.status_url(order), {"status": "delivered"}, format="json")

        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.DELIVERED)
        self.assertEqual(order.payment_status, Order.PaymentStatus.COMPLETED)

    def test_batch_tracking_patch_merges_fields(self):
        self.order.batch_tracking = {"prepared_by": "Ravi"}
        self.order.save()

        self.client.force_authenticate(user=self.owner)
        response = self.client.patch(
            f"/api/orders/{self.order.order_id}/",
            {"batch_tracking": {"food_temperature": 68.5, "quality_check": True}},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.order.refresh_from_db()
        self.assertEqual(
            self.order.batch_tracking, {"prepared_by": "Ravi", "food_temperature": 68.5, "quality_check": True}
        )

    def test_customer_cannot_edit_batch_tracking(self):
        self.client.force_authenticate(user=self.customer)
        response = self.client.patch(
            f"/api/orders/{self.order.order_id}/", {"batch_tracking": {"notes": "hot"}}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class OrderCancelTests(OrderFixtureMixin, APITestCase):
    def setUp(self):
        self.make_users()

    def test_customer_cancels_pending_order(self):
        order = self.make_order()
        self.client.force_authenticate(user=self.customer)
        response = self.client.delete(f"/api/orders/{order.order_id}/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["status"], Order.Status.CANCELLED)

    def test_customer_cannot_cancel_confirmed_order(self):
        order = self.make_order(status=Order.Status.CONFIRMED)
        self.client.force_authenticate(user=self.customer)
        response = self.client.delete(f"/api/orders/{order.order_id}/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_delivered_order_cannot_be_cancelled(self):
        order = self.make_order(status=Order.Status.DELIVERED)
        self.client.force_authenticate(user=self.customer)
        response = self.client.delete(f"/api/orders/{order.order_id}/")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error_code"], "order_already_closed")


# =====================================================
# Delivery workflow
# =====================================================

class DeliveryWorkflowTests(OrderFixtureMixin, APITestCase):
    def setUp(self):
        self.make_users()
        self.order = self.make_order(status=Order.Status.CONFIRMED)
        self.client.force_authenticate(user=self.courier)

    def test_available_orders_lists_unassigned(self):
        self.make_order(suffix="B2", status=Order.Status.PENDING)
        response = self.client.get("/api/delivery/available-orders/")
        self.assertEqual([o["batch_number"] for o in response.data["data"]], [self.order.batch_number])

    def test_assign_claims_order(self):
        response = self.client.post("/api/delivery/assign/", {"order_id": str(self.order.order_id)}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.order.refresh_from_db()
        self.assertEqual(self.order.delivery_person, self.courier)
        self.assertEqual(self.order.status, Order.Status.PICKED_BY_DELIVERY)
        self.assertIn("ready", self.order.order_timeline)
        self.assertIn("picked_by_delivery", self.order.order_timeline)

    def test_second_assign_is_rejected(self):
        self.client.post("/api/delivery/assign/", {"order_id": str(self.order.order_id)}, format="json")

        self.client.force_authenticate(user=self.other_courier)
        response = self.client.post("/api/delivery/assign/", {"order_id": str(self.order.order_id)}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error_code"], "order_already_assigned")

    def test_customer_cannot_assign(self):
        self.client.force_authenticate(user=self.customer)
        response = self.client.post("/api/delivery/assign/", {"order_id": str(self.order.order_id)}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_only_assigned_courier_updates_status(self):
        self.order.status = Order.Status.PICKED_BY_DELIVERY
        self.order.delivery_person = self.courier
        self.order.save()

        self.client.force_authenticate(user=self.other_courier)
        payload = {"order_id": str(self.order.order_id), "status": "out_for_delivery"}
        response = self.client.post("/api/delivery/update-status/", payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.courier)
        response = self.client.post("/api/delivery/update-status/", payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["status"], Order.Status.OUT_FOR_DELIVERY)

    def test_batch_status_by_batch_number(self):
        self.order.status = Order.Status.PICKED_BY_DELIVERY
        self.order.delivery_person = self.courier
        self.order.save()

        response = self.client.patch(
            f"/api/delivery/batch/{self.order.batch_number}/status/",
            {"status": "out_for_delivery", "batch_tracking": {"handover_temperature": 61.0}},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.OUT_FOR_DELIVERY)
        self.assertEqual(self.order.batch_tracking["handover_temperature"], 61.0)

    @override_settings(DELIVERY_EARNING_PER_ORDER="50")
    def test_delivery_stats(self):
        self.make_order(suffix="S1", status=Order.Status.DELIVERED, delivery_person=self.courier)
        self.make_order(suffix="S2", status=Order.Status.DELIVERED, delivery_person=self.courier)
        self.make_order(suffix="S3", status=Order.Status.OUT_FOR_DELIVERY, delivery_person=self.courier)

        response = self.client.get("/api/delivery/stats/")
        data = response.data["data"]
        self.assertEqual((data["total_deliveries"], data["delivered"], data["active"]), (3, 2, 1))
        self.assertEqual(data["earnings"], Decimal("100.00"))

    def make_delivery_review(self, suffix, rating, **extra):
        order = self.make_order(suffix=suffix, status=Order.Status.DELIVERED, delivery_person=self.courier)
        return Review.objects.create(
            customer=self.customer, order=order, restaurant=self.restaurant, delivery_person=self.courier,
            batch_number=order.batch_number, delivery_rating=rating, **extra
        )

    def test_stats_ignore_unpublished_reviews(self):
        self.make_delivery_review("R1", 4)
        self.make_delivery_review("R2", 1, is_published=False)

        data = self.client.get("/api/delivery/stats/").data["data"]
        self.assertEqual(data["average_rating"], 4)
        self.assertEqual(data["rating_count"], 1)

    def test_courier_lists_own_published_reviews(self):
        self.make_delivery_review("R1", 5, delivery_comment="Still hot")
        self.make_delivery_review("R2", 3)
        self.make_delivery_review("R3", 1, is_published=False)
        other_order = self.make_order(suffix="R4", status=Order.Status.DELIVERED, delivery_person=self.other_courier)
        Review.objects.create(
            customer=self.customer, order=other_order, delivery_person=self.other_courier,
            batch_number=other_order.batch_number, delivery_rating=2,
        )

        response = self.client.get("/api/delivery/reviews/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data["data"]
        self.assertEqual(data["count"], 2)
        self.assertEqual(data["average_rating"], 4)
        self.assertEqual(sorted(r["delivery_rating"] for r in data["reviews"]), [3, 5])

    def test_customer_cannot_list_delivery_reviews(self):
        self.client.force_authenticate(user=self.customer)
        response = self.client.get("/api/delivery/reviews/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


# =====================================================
# Ratings
# =====================================================

class OrderRatingTests(OrderFixtureMixin, APITestCase):
    def setUp(self):
        self.make_users()
        self.order = self.make_order(status=Order.Status.DELIVERED, delivery_person=self.courier)
        self.url = f"/api/orders/{self.order.order_id}/rating/"
        self.client.force_authenticate(user=self.customer)

    def test_rating_requires_delivered_order(self):
        pending = self.make_order(suffix="P1")
        response = self.client.post(
            f"/api/orders/{pending.order_id}/rating/", {"restaurant_rating": 5}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error_code"], "order_not_delivered")
        self.assertFalse(Review.objects.exists())

    def test_non_owner_cannot_rate(self):
        self.client.force_authenticate(user=self.other_customer)
        response = self.client.post(self.url, {"restaurant_rating": 1}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["error_code"], "order_access_denied")

    def test_out_of_range_rating_rejected(self):
        response = self.client.post(self.url, {"restaurant_rating": 6}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_at_least_one_rating_required(self):
        response = self.client.post(self.url, {"restaurant_comment": "nice"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_second_rating_updates_existing_review(self):
        first = self.client.post(self.url, {"restaurant_rating": 4, "restaurant_comment": "Tasty"}, format="json")
        second = self.client.post(
            self.url, {"rating_type": "delivery", "rating": 5, "comment": "Quick"}, format="json"
        )

        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertEqual(Review.objects.count(), 1)

        review = Review.objects.get()
        self.assertEqual((review.restaurant_rating, review.delivery_rating), (4, 5))
        self.assertEqual(review.restaurant_comment, "Tasty")
        self.assertEqual(review.batch_number, self.order.batch_number)
        self.assertEqual(review.delivery_person, self.courier)

        self.order.refresh_from_db()
        self.assertEqual((self.order.restaurant_rating, self.order.delivery_rating), (4, 5))
        self.assertIsNotNone(self.order.delivery_rated_at)

        self.restaurant.refresh_from_db()
        self.assertEqual(self.restaurant.rating, Decimal("4.00"))

    def test_fetch_reports_review_presence(self):
        response = self.client.get(self.url)
        self.assertFalse(response.data["data"]["has_review"])

        self.client.post(self.url, {"restaurant_rating": 3}, format="json")
        response = self.client.get(self.url)
        self.assertTrue(response.data["data"]["has_review"])
        self.assertEqual(response.data["data"]["review"]["restaurant_rating"], 3)

    def test_delete_clears_order_ratings(self):
        self.client.post(self.url, {"restaurant_rating": 2, "delivery_rating": 3}, format="json")

        response = self.client.delete(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Review.objects.exists())

        self.order.refresh_from_db()
        for field in ("restaurant_rating", "delivery_rating", "restaurant_rated_at", "delivery_rated_at"):
            self.assertIsNone(getattr(self.order, field))

        self.restaurant.refresh_from_db()
        self.assertEqual(self.restaurant.rating, Decimal("0.00"))

    def test_delete_without_review_is_404(self):
        response = self.client.delete(self.url)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["error_code"], "review_not_found")

    def test_delivery_guy_has_no_review_access(self):
        self.client.force_authenticate(user=self.courier)
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ReviewListingTests(OrderFixtureMixin, APITestCase):
    def setUp(self):
        self.make_users()
        order = self.make_order(status=Order.Status.DELIVERED)
        self.review = Review.objects.create(
            customer=self.customer, order=order, restaurant=self.restaurant,
            batch_number=order.batch_number, restaurant_rating=5,
        )

    def test_owner_sees_reviews_with_average(self):
        self.client.force_authenticate(user=self.owner)
        response = self.client.get("/api/orders/restaurant/reviews/")
        self.assertEqual(response.data["data"]["average_rating"], 5)
        self.assertEqual(response.data["data"]["count"], 1)

    def test_owner_stats(self):
        self.client.force_authenticate(user=self.owner)
        response = self.client.get("/api/orders/restaurant/stats/")
        data = response.data["data"]
        self.assertEqual(data["total_orders"], 1)
        self.assertEqual(data["orders_by_status"]["delivered"], 1)
        self.assertEqual(data["revenue"], Decimal("72.52"))

    def test_admin_flags_review_and_filters(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.patch(
            f"/api/orders/admin/reviews/{self.review.pk}/",
            {"is_flagged": True, "flag_reason": "spam", "is_published": False},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.review.refresh_from_db()
        self.assertEqual(self.review.moderated_by, self.admin)
        self.assertIsNotNone(self.review.moderated_at)

        flagged = self.client.get("/api/orders/admin/reviews/", {"flagged": "true"})
        clean = self.client.get("/api/orders/admin/reviews/", {"flagged": "false"})
        self.assertEqual(len(flagged.data["data"]), 1)
        self.assertEqual(len(clean.data["data"]), 0)

    def test_customer_cannot_moderate(self):
        self.client.force_authenticate(user=self.customer)
        response = self.client.get("/api/orders/admin/reviews/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


# =====================================================
# Public batch lookup
# =====================================================

class BatchLookupTests(OrderFixtureMixin, TestCase):
    def setUp(self):
        self.make_users()
        self.client = APIClient()
        self.order = self.make_order(delivery_person=self.courier)

    def test_lookup_by_batch_number_hides_customer(self):
        response = self.client.get(f"/api/orders/batch/{self.order.batch_number}/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data["data"]
        self.assertEqual(data["restaurant"]["name"], "Tandoor House")
        self.assertEqual(data["delivery_person"]["phone_number"], "0800000001")
        self.assertNotIn("customer", data)

    def test_lookup_falls_back_to_order_number(self):
        response = self.client.get(f"/api/orders/batch/{self.order.order_number}/")
        self.assertEqual(response.data["data"]["batch_number"], self.order.batch_number)

    def test_unknown_batch_is_404(self):
        response = self.client.get("/api/orders/batch/foodontrack-NOPE00/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(response.data["success"])
        self.assertEqual(response.data["error_code"], "order_not_found")
