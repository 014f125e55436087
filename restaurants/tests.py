from decimal import Decimal

from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.test import APITestCase

from .models import Address, MenuItem, Restaurant

User = get_user_model()
PASSWORD = "StrongPass!234"


class RestaurantCatalogueTests(APITestCase):
    def setUp(self):
        self.owner = User.objects.create_user(
            email="chef@restaurant.com", password=PASSWORD, role=User.Role.RESTAURANT_OWNER
        )
        self.restaurant = Restaurant.objects.create(owner=self.owner, name="Tandoor House", city="Pune")
        closed_owner = User.objects.create_user(
            email="closed@restaurant.com", password=PASSWORD, role=User.Role.RESTAURANT_OWNER
        )
        Restaurant.objects.create(owner=closed_owner, name="Shut Shop", city="Pune", is_active=False)

        MenuItem.objects.create(restaurant=self.restaurant, name="Naan", price=Decimal("2.50"))
        MenuItem.objects.create(restaurant=self.restaurant, name="Old Special", price=Decimal("9.00"), is_available=False)

    def test_list_shows_active_restaurants_only(self):
        response = self.client.get("/api/restaurants/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([r["name"] for r in response.data["data"]], ["Tandoor House"])

    def test_menu_hides_unavailable_items(self):
        response = self.client.get(f"/api/restaurants/{self.restaurant.pk}/menu/")
        self.assertEqual([item["name"] for item in response.data["data"]], ["Naan"])

    def test_menu_of_unknown_restaurant_is_404(self):
        response = self.client.get("/api/restaurants/9999/menu/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["error_code"], "not_found")

    def test_owner_adds_menu_item(self):
        self.client.force_authenticate(user=self.owner)
        response = self.client.post(
            "/api/restaurants/menu-items/", {"name": "Dal", "price": "6.75", "category": "Mains"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["data"]["restaurant_id"], self.restaurant.pk)
        self.assertTrue(self.restaurant.menu_items.filter(name="Dal").exists())

    def test_customer_cannot_add_menu_item(self):
        customer = User.objects.create_user(email="ada@example.com", password=PASSWORD)
        self.client.force_authenticate(user=customer)
        response = self.client.post("/api/restaurants/menu-items/", {"name": "Dal", "price": "6.75"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_owner_without_restaurant_is_forbidden(self):
        owner = User.objects.create_user(email="new@restaurant.com", password=PASSWORD, role=User.Role.RESTAURANT_OWNER)
        self.client.force_authenticate(user=owner)
        response = self.client.post("/api/restaurants/menu-items/", {"name": "Dal", "price": "6.75"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AddressTests(APITestCase):
    url = "/api/restaurants/addresses/"

    def setUp(self):
        self.customer = User.objects.create_user(email="ada@example.com", password=PASSWORD)
        self.client.force_authenticate(user=self.customer)

    def test_new_default_address_replaces_previous_default(self):
        first = Address.objects.create(user=self.customer, street="1 MG Road", city="Pune", is_default=True)

        response = self.client.post(
            self.url, {"street": "9 FC Road", "city": "Pune", "is_default": True}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        first.refresh_from_db()
        self.assertFalse(first.is_default)
        self.assertEqual(Address.objects.filter(user=self.customer, is_default=True).count(), 1)

    def test_lists_only_own_addresses(self):
        other = User.objects.create_user(email="ben@example.com", password=PASSWORD)
        Address.objects.create(user=other, street="2 Park St", city="Pune")
        Address.objects.create(user=self.customer, street="1 MG Road", city="Pune")

        response = self.client.get(self.url)
        self.assertEqual([a["street"] for a in response.data["data"]], ["1 MG Road"])

    def test_restaurant_owner_cannot_create_address(self):
        owner = User.objects.create_user(email="chef@restaurant.com", password=PASSWORD, role=User.Role.RESTAURANT_OWNER)
        self.client.force_authenticate(user=owner)
        response = self.client.post(self.url, {"street": "3 Lane", "city": "Pune"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
