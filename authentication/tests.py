from io import StringIO
from unittest.mock import Mock, patch

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.management import CommandError, call_command
from django.db.utils import OperationalError
from django.test import SimpleTestCase, TestCase
from rest_framework import status
from rest_framework.test import APITestCase
from rest_framework_simplejwt.tokens import AccessToken

from authentication.core.jwt_utils import TokenManager
from authentication.core.permissions import HasResourcePermission
from authentication.core.rbac import (
    Action,
    Resource,
    Role,
    evaluate,
    has_minimum_role_level,
    has_permission,
    validate_email_for_role,
)
from authentication.core.rbac_log import RbacDecisionLog, RbacLogEntry, get_rbac_log

User = get_user_model()
PASSWORD = "StrongPass!234"


# =====================================================
# Permission matrix
# =====================================================

class PermissionMatrixTests(SimpleTestCase):
    def test_admin_manages_everything(self):
        for resource in Resource:
            for action in Action:
                self.assertTrue(has_permission(Role.ADMIN, resource, action), f"{resource}:{action}")

    def test_restaurant_owner(self):
        self.assertTrue(has_permission(Role.RESTAURANT_OWNER, Resource.MENU_ITEMS, Action.DELETE))
        self.assertTrue(has_permission(Role.RESTAURANT_OWNER, Resource.BATCHES, Action.CREATE))
        self.assertFalse(has_permission(Role.RESTAURANT_OWNER, Resource.ORDERS, Action.CREATE))
        self.assertFalse(has_permission(Role.RESTAURANT_OWNER, Resource.REVIEWS, Action.UPDATE))

    def test_delivery_guy_has_no_review_access(self):
        for action in Action:
            self.assertFalse(has_permission(Role.DELIVERY_GUY, Resource.REVIEWS, action))
        self.assertTrue(has_permission(Role.DELIVERY_GUY, Resource.DELIVERY_PERSONS, Action.UPDATE))

    def test_customer(self):
        self.assertTrue(has_permission(Role.CUSTOMER, Resource.ORDERS, Action.CREATE))
        self.assertFalse(has_permission(Role.CUSTOMER, Resource.ORDERS, Action.DELETE))
        self.assertTrue(has_permission(Role.CUSTOMER, Resource.REVIEWS, Action.DELETE))
        self.assertFalse(has_permission(Role.CUSTOMER, Resource.BATCHES, Action.UPDATE))

    def test_decision_carries_reason(self):
        decision = evaluate(Role.CUSTOMER, Resource.USERS, Action.DELETE)
        self.assertFalse(decision)
        self.assertIn("customer", decision.reason.lower())

        decision = evaluate(Role.ADMIN, Resource.USERS, Action.DELETE)
        self.assertTrue(decision.allowed)

    def test_unknown_values_are_denied(self):
        self.assertFalse(evaluate("GUEST", Resource.USERS, Action.READ).allowed)
        self.assertFalse(evaluate(Role.ADMIN, "spaceships", Action.READ).allowed)

    def test_role_levels(self):
        self.assertTrue(has_minimum_role_level(Role.ADMIN, Role.RESTAURANT_OWNER))
        self.assertTrue(has_minimum_role_level(Role.DELIVERY_GUY, Role.CUSTOMER))
        self.assertFalse(has_minimum_role_level(Role.CUSTOMER, Role.DELIVERY_GUY))


class EmailDomainTests(SimpleTestCase):
    def test_staff_roles_need_reserved_domain(self):
        self.assertTrue(validate_email_for_role("chef@restaurant.com", Role.RESTAURANT_OWNER)[0])
        self.assertFalse(validate_email_for_role("chef@gmail.com", Role.RESTAURANT_OWNER)[0])
        self.assertTrue(validate_email_for_role("Rider@Delivery.com", Role.DELIVERY_GUY)[0])
        self.assertFalse(validate_email_for_role("ops@example.com", Role.ADMIN)[0])

    def test_customers_cannot_use_reserved_domains(self):
        valid, message = validate_email_for_role("sneaky@admin.com", Role.CUSTOMER)
        self.assertFalse(valid)
        self.assertIn("@admin.com", message)
        self.assertTrue(validate_email_for_role("ada@example.com", Role.CUSTOMER)[0])


# =====================================================
# Decision log
# =====================================================

def _entry(user_id="u1", allowed=True, role="CUSTOMER", resource="orders", ip="10.0.0.1"):
    return RbacLogEntry(user_id=user_id, role=role, resource=resource, action="read", allowed=allowed, ip=ip)


class RbacDecisionLogTests(SimpleTestCase):
    def test_ring_buffer_drops_oldest(self):
        log = RbacDecisionLog(max_entries=3)
        for n in range(5):
            log.record(_entry(user_id=f"u{n}"))

        self.assertEqual(len(log), 3)
        self.assertEqual([e.user_id for e in log.query()], ["u4", "u3", "u2"])

    def test_query_filters(self):
        log = RbacDecisionLog()
        log.record(_entry(user_id="a", allowed=True))
        log.record(_entry(user_id="a", allowed=False, resource="reviews"))
        log.record(_entry(user_id="b", allowed=False))

        self.assertEqual(len(log.query(user_id="a")), 2)
        self.assertEqual(len(log.query(allowed=False)), 2)
        self.assertEqual(len(log.query(resource="reviews")), 1)
        self.assertEqual(len(log.query(limit=1)), 1)

    def test_stats(self):
        log = RbacDecisionLog()
        log.record(_entry(allowed=True))
        log.record(_entry(allowed=False, role="DELIVERY_GUY"))

        stats = log.stats()
        self.assertEqual((stats["total"], stats["allowed"], stats["denied"]), (2, 1, 1))
        self.assertEqual(stats["denied_percentage"], 50.0)
        self.assertEqual(stats["by_role"]["DELIVERY_GUY"], {"allowed": 0, "denied": 1})

    def test_suspicious_activity_threshold(self):
        log = RbacDecisionLog(suspicious_threshold=3)
        for _ in range(3):
            log.record(_entry(user_id="mallory", allowed=False, ip="6.6.6.6"))
        log.record(_entry(user_id="bob", allowed=False, ip="1.1.1.1"))

        report = log.suspicious_activity()
        self.assertEqual(report["users"], [{"user_id": "mallory", "denials": 3}])
        self.assertEqual(report["ips"], [{"ip": "6.6.6.6", "denials": 3}])

    def test_explicit_zero_threshold_is_kept(self):
        log = RbacDecisionLog(suspicious_threshold=3)
        log.record(_entry(user_id="bob", allowed=False, ip="1.1.1.1"))

        report = log.suspicious_activity(threshold=0)
        self.assertEqual(report["threshold"], 0)
        self.assertEqual(report["users"], [{"user_id": "bob", "denials": 1}])

    def test_clear_and_export(self):
        log = RbacDecisionLog()
        log.record(_entry())
        self.assertIn('"user_id": "u1"', log.export())

        log.clear()
        self.assertEqual(len(log), 0)

    def test_app_owns_single_instance(self):
        self.assertIs(get_rbac_log(), get_rbac_log())
        self.assertIsInstance(get_rbac_log(), RbacDecisionLog)


class HasResourcePermissionTests(TestCase):
    def setUp(self):
        get_rbac_log().clear()
        self.user = User.objects.create_user(email="rider@delivery.com", password=PASSWORD, role=Role.DELIVERY_GUY)

    def _request(self, method):
        return Mock(user=self.user, method=method, path="/api/orders/", META={"REMOTE_ADDR": "10.1.1.1"})

    def test_decision_is_recorded(self):
        view = Mock(rbac_resource=Resource.REVIEWS, rbac_actions={})

        self.assertFalse(HasResourcePermission().has_permission(self._request("GET"), view))

        entry = get_rbac_log().query()[0]
        self.assertEqual((entry.resource, entry.action, entry.allowed), ("reviews", "read", False))
        self.assertEqual(entry.user_id, str(self.user.uuid))
        self.assertEqual(entry.ip, "10.1.1.1")

    def test_view_can_remap_method(self):
        view = Mock(rbac_resource=Resource.ORDERS, rbac_actions={"DELETE": Action.UPDATE})
        self.assertTrue(HasResourcePermission().has_permission(self._request("DELETE"), view))


# =====================================================
# Auth endpoints
# =====================================================

class RegistrationTests(APITestCase):
    url = "/api/auth/register/"

    def test_customer_registration_returns_tokens(self):
        response = self.client.post(self.url, {
            "email": "ada@example.com", "password": PASSWORD, "full_name": "Ada Lovelace",
        }, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["data"]["user"]["role"], Role.CUSTOMER)
        self.assertIn("access_token", response.data["data"]["tokens"])

    def test_delivery_registration_requires_domain(self):
        response = self.client.post(self.url, {
            "email": "rider@gmail.com", "password": PASSWORD, "role": Role.DELIVERY_GUY,
        }, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error_code"], "invalid_email_domain")
        self.assertFalse(User.objects.filter(email="rider@gmail.com").exists())

    def test_delivery_registration_stores_vehicle(self):
        response = self.client.post(self.url, {
            "email": "rider@delivery.com", "password": PASSWORD, "role": Role.DELIVERY_GUY,
            "vehicle_type": "bike", "vehicle_number": "MH12AB1234",
        }, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(User.objects.get(email="rider@delivery.com").vehicle_number, "MH12AB1234")

    def test_admin_cannot_self_register(self):
        response = self.client.post(self.url, {
            "email": "boss@admin.com", "password": PASSWORD, "role": Role.ADMIN,
        }, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_duplicate_email(self):
        User.objects.create_user(email="ada@example.com", password=PASSWORD)
        response = self.client.post(self.url, {"email": "ada@example.com", "password": PASSWORD}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class LoginLogoutTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.user = User.objects.create_user(email="ada@example.com", password=PASSWORD)

    def login(self, password=PASSWORD):
        return self.client.post("/api/auth/login/", {"email": "ada@example.com", "password": password}, format="json")

    def test_login_and_me(self):
        response = self.login()
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        access = response.data["data"]["tokens"]["access_token"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")
        me = self.client.get("/api/auth/me/")
        self.assertEqual(me.status_code, status.HTTP_200_OK)
        self.assertEqual(me.data["data"]["email"], "ada@example.com")
        self.assertEqual(me.data["data"]["role_level"], 1)

    def test_wrong_password(self):
        response = self.login(password="nope")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(response.data["success"])

    def test_lockout_after_repeated_failures(self):
        for _ in range(5):
            self.login(password="nope")
        response = self.login()
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["error_code"], "account_locked")

    def test_refresh_rotates_tokens(self):
        tokens = self.login().data["data"]["tokens"]
        response = self.client.post(
            "/api/auth/token/refresh/", {"refresh_token": tokens["refresh_token"]}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertNotEqual(response.data["data"]["refresh_token"], tokens["refresh_token"])

    def test_logout_blacklists_tokens(self):
        tokens = self.login().data["data"]["tokens"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access_token']}")

        response = self.client.post("/api/auth/logout/", {"refresh_token": tokens["refresh_token"]}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["tokens_blacklisted"], 2)

        self.assertEqual(self.client.get("/api/auth/me/").status_code, status.HTTP_401_UNAUTHORIZED)

        self.client.credentials()
        refreshed = self.client.post(
            "/api/auth/token/refresh/", {"refresh_token": tokens["refresh_token"]}, format="json"
        )
        self.assertEqual(refreshed.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_token_carries_role_claims(self):
        owner = User.objects.create_user(email="chef@restaurant.com", password=PASSWORD, role=Role.RESTAURANT_OWNER)
        tokens = TokenManager.generate_tokens(owner)
        payload = AccessToken(tokens["access_token"])
        self.assertEqual(payload["role"], Role.RESTAURANT_OWNER)
        self.assertEqual(payload["role_level"], 3)
        self.assertEqual(payload["user_uuid"], str(owner.uuid))

        valid, user_uuid, token_type = TokenManager.validate_token(tokens["access_token"])
        self.assertTrue(valid)
        self.assertEqual((user_uuid, token_type), (str(owner.uuid), "access"))


class RbacLogEndpointTests(APITestCase):
    url = "/api/auth/admin/rbac-logs/"

    def setUp(self):
        get_rbac_log().clear()
        self.admin = User.objects.create_user(email="ops@admin.com", password=PASSWORD, role=Role.ADMIN)
        self.rider = User.objects.create_user(email="rider@delivery.com", password=PASSWORD, role=Role.DELIVERY_GUY)

    def test_denials_show_up_in_logs_and_stats(self):
        self.client.force_authenticate(user=self.rider)
        self.client.post("/api/orders/", {}, format="json")

        self.client.force_authenticate(user=self.admin)
        logs = self.client.get(self.url, {"action": "denials"})
        self.assertEqual(logs.status_code, status.HTTP_200_OK)
        self.assertEqual(logs.data["data"]["count"], 1)
        self.assertEqual(logs.data["data"]["denials"][0]["role"], Role.DELIVERY_GUY)

        stats = self.client.get(self.url, {"action": "stats"})
        self.assertEqual(stats.data["data"]["denied"], 1)

    def test_export_is_attachment(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get(self.url, {"action": "export"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("attachment", response["Content-Disposition"])

    def test_unknown_action(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get(self.url, {"action": "explode"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_clear(self):
        get_rbac_log().record(RbacLogEntry(user_id="x", role="CUSTOMER", resource="orders", action="read", allowed=False))
        self.client.force_authenticate(user=self.admin)

        response = self.client.delete(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(get_rbac_log()), 0)

    def test_non_admin_forbidden(self):
        self.client.force_authenticate(user=self.rider)
        self.assertEqual(self.client.get(self.url).status_code, status.HTTP_403_FORBIDDEN)


class WaitForDbCommandTests(SimpleTestCase):
    @patch("authentication.management.commands.wait_for_db.time.sleep")
    @patch("authentication.management.commands.wait_for_db.connections")
    def test_retries_until_database_answers(self, mock_connections, mock_sleep):
        mock_connections.__getitem__.return_value.ensure_connection.side_effect = [
            OperationalError("down"), OperationalError("down"), None,
        ]
        out = StringIO()

        call_command("wait_for_db", attempts=5, interval=0, stdout=out)

        self.assertEqual(mock_sleep.call_count, 2)
        self.assertIn("after 3 attempt(s)", out.getvalue())

    @patch("authentication.management.commands.wait_for_db.time.sleep")
    @patch("authentication.management.commands.wait_for_db.connections")
    def test_gives_up_after_fixed_attempts(self, mock_connections, mock_sleep):
        mock_connections.__getitem__.return_value.ensure_connection.side_effect = OperationalError("down")

        with self.assertRaises(CommandError):
            call_command("wait_for_db", attempts=3, interval=0, stdout=StringIO())
        self.assertEqual(mock_connections.__getitem__.return_value.ensure_connection.call_count, 3)
