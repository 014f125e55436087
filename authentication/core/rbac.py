"""
Role-based access control.

The permission matrix is a static, enum-keyed table of
role -> resource -> allowed actions. `evaluate` is the only lookup and
returns a `PermissionDecision` so callers (and the decision log) get the
reason alongside the verdict.
"""
from dataclasses import dataclass

from django.db import models

from authentication.models import CustomUser

Role = CustomUser.Role


class Resource(models.TextChoices):
    USERS = 'users', 'Users'
    RESTAURANTS = 'restaurants', 'Restaurants'
    MENU_ITEMS = 'menu_items', 'Menu Items'
    ORDERS = 'orders', 'Orders'
    REVIEWS = 'reviews', 'Reviews'
    ADDRESSES = 'addresses', 'Addresses'
    TRANSACTIONS = 'transactions', 'Transactions'
    DELIVERY_PERSONS = 'delivery_persons', 'Delivery Persons'
    BATCHES = 'batches', 'Batches'


class Action(models.TextChoices):
    CREATE = 'create', 'Create'
    READ = 'read', 'Read'
    UPDATE = 'update', 'Update'
    DELETE = 'delete', 'Delete'
    MANAGE = 'manage', 'Manage'


ROLE_LEVELS = {
    Role.ADMIN: 4,
    Role.RESTAURANT_OWNER: 3,
    Role.DELIVERY_GUY: 2,
    Role.CUSTOMER: 1,
}

_ALL = frozenset(Action)
_CRUD = frozenset({Action.CREATE, Action.READ, Action.UPDATE, Action.DELETE})
_READ = frozenset({Action.READ})
_READ_UPDATE = frozenset({Action.READ, Action.UPDATE})
_NONE = frozenset()

# Ownership ("own orders only", "assigned batches only") is not expressed
# here; it is applied to querysets by `apply_role_filter`.
PERMISSION_MATRIX = {
    Role.ADMIN: {resource: _ALL for resource in Resource},
    Role.RESTAURANT_OWNER: {
        Resource.USERS: _READ,
        Resource.RESTAURANTS: _READ_UPDATE,
        Resource.MENU_ITEMS: _CRUD,
        Resource.ORDERS: _READ_UPDATE,
        Resource.REVIEWS: _READ,
        Resource.ADDRESSES: _READ,
        Resource.TRANSACTIONS: _READ,
        Resource.DELIVERY_PERSONS: _READ,
        Resource.BATCHES: frozenset({Action.CREATE, Action.READ, Action.UPDATE}),
    },
    Role.DELIVERY_GUY: {
        Resource.USERS: _READ,
        Resource.RESTAURANTS: _READ,
        Resource.MENU_ITEMS: _READ,
        Resource.ORDERS: _READ_UPDATE,
        Resource.REVIEWS: _NONE,
        Resource.ADDRESSES: _READ,
        Resource.TRANSACTIONS: _READ,
        Resource.DELIVERY_PERSONS: _READ_UPDATE,
        Resource.BATCHES: _READ_UPDATE,
    },
    Role.CUSTOMER: {
        Resource.USERS: _READ_UPDATE,
        Resource.RESTAURANTS: _READ,
        Resource.MENU_ITEMS: _READ,
        Resource.ORDERS: frozenset({Action.CREATE, Action.READ, Action.UPDATE}),
        Resource.REVIEWS: _CRUD,
        Resource.ADDRESSES: _CRUD,
        Resource.TRANSACTIONS: _READ,
        Resource.DELIVERY_PERSONS: _READ,
        Resource.BATCHES: _READ,
    },
}


@dataclass(frozen=True)
class PermissionDecision:
    allowed: bool
    reason: str

    def __bool__(self):
        return self.allowed


def evaluate(role, resource, action):
    """Look up (role, resource, action) in the matrix. MANAGE grants every action."""
    try:
        role, resource, action = Role(role), Resource(resource), Action(action)
    except ValueError as e:
        return PermissionDecision(False, f"unknown_value: {e}")

    granted = PERMISSION_MATRIX[role].get(resource, _NONE)
    if action in granted:
        return PermissionDecision(True, f"{role.value} may {action.value} {resource.value}")
    if Action.MANAGE in granted:
        return PermissionDecision(True, f"{role.value} manages {resource.value}")
    return PermissionDecision(False, f"{role.value} may not {action.value} {resource.value}")


def has_permission(role, resource, action):
    return evaluate(role, resource, action).allowed


def has_minimum_role_level(role, required_role):
    return ROLE_LEVELS[Role(role)] >= ROLE_LEVELS[Role(required_role)]


def check_ownership(user, order):
    """True when `user` may act on `order` under the ownership rules of their role."""
    if user.is_admin:
        return True
    if user.is_customer:
        return order.customer_id == user.pk
    if user.is_restaurant_owner:
        restaurant = user.owned_restaurant
        return restaurant is not None and order.restaurant_id == restaurant.pk
    if user.is_delivery_guy:
        return order.delivery_person_id == user.pk
    return False


def apply_role_filter(queryset, user):
    """Narrow an Order queryset to what `user` is allowed to see."""
    if user.is_admin:
        return queryset
    if user.is_customer:
        return queryset.filter(customer=user)
    if user.is_restaurant_owner:
        restaurant = user.owned_restaurant
        if restaurant is None:
            return queryset.none()
        return queryset.filter(restaurant=restaurant)
    if user.is_delivery_guy:
        return queryset.filter(delivery_person=user)
    return queryset.none()


RESERVED_EMAIL_DOMAINS = {
    Role.ADMIN: '@admin.com',
    Role.RESTAURANT_OWNER: '@restaurant.com',
    Role.DELIVERY_GUY: '@delivery.com',
}


def validate_email_for_role(email, role):
    """
    Staff roles must register with their reserved domain; customers may use
    anything except the reserved domains.

    Returns (valid, message).
    """
    email = (email or '').lower()
    role = Role(role)

    if role in RESERVED_EMAIL_DOMAINS:
        domain = RESERVED_EMAIL_DOMAINS[role]
        if not email.endswith(domain):
            return False, f"{role.label} accounts must use {domain} email domain"
        return True, None

    for reserved_role, domain in RESERVED_EMAIL_DOMAINS.items():
        if email.endswith(domain):
            return False, f"Customers cannot use {domain} domain. This is reserved for {reserved_role.label} accounts."
    return True, None
