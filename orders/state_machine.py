"""
Order status state machine.

TRANSITIONS is the single definition of which status changes are legal and
which roles may perform each one. Every code path that changes
Order.status validates through OrderStatusMachine.validate_transition.
"""
import logging

from authentication.core.exceptions import InvalidStatusTransition, StatusChangeForbidden
from authentication.models import CustomUser

from .models import Order

logger = logging.getLogger(__name__)

Status = Order.Status
Role = CustomUser.Role

_KITCHEN = frozenset({Role.RESTAURANT_OWNER, Role.ADMIN})
_COURIER = frozenset({Role.DELIVERY_GUY, Role.ADMIN})

TRANSITIONS = {
    (Status.PENDING, Status.CONFIRMED): _KITCHEN,
    (Status.PENDING, Status.CANCELLED): frozenset({Role.CUSTOMER, Role.RESTAURANT_OWNER, Role.ADMIN}),

    (Status.CONFIRMED, Status.PREPARING): _KITCHEN,
    (Status.CONFIRMED, Status.READY): _KITCHEN,
    (Status.CONFIRMED, Status.CANCELLED): _KITCHEN,
    (Status.CONFIRMED, Status.PICKED_BY_DELIVERY): _COURIER,

    (Status.PREPARING, Status.READY): _KITCHEN,
    (Status.PREPARING, Status.CANCELLED): _KITCHEN,
    (Status.PREPARING, Status.PICKED_BY_DELIVERY): _COURIER,

    (Status.READY, Status.CANCELLED): _KITCHEN,
    (Status.READY, Status.PICKED_BY_DELIVERY): _COURIER,
    (Status.READY, Status.OUT_FOR_DELIVERY): _COURIER,

    (Status.PICKED_BY_DELIVERY, Status.OUT_FOR_DELIVERY): _COURIER,
    (Status.PICKED_BY_DELIVERY, Status.DELIVERED): _COURIER,

    (Status.OUT_FOR_DELIVERY, Status.DELIVERED): _COURIER,
}

TERMINAL_STATUSES = frozenset({Status.DELIVERED, Status.CANCELLED})


class OrderStatusMachine:

    @staticmethod
    def is_terminal(status):
        return status in TERMINAL_STATUSES

    @staticmethod
    def allowed_targets(current, role=None):
        """Statuses reachable from `current`, optionally limited to what `role` may set."""
        return [
            target for (source, target), roles in TRANSITIONS.items()
            if source == current and (role is None or role in roles)
        ]

    @staticmethod
    def validate_transition(current, target, role):
        """
        Raise unless `role` may move an order from `current` to `target`.

        InvalidStatusTransition (400) when the pair is not in the table,
        StatusChangeForbidden (403) when it is but the role is not listed.
        """
        try:
            current, target, role = Status(current), Status(target), Role(role)
        except ValueError:
            raise InvalidStatusTransition(f"Unknown status or role: {current!r} -> {target!r} ({role!r})")

        roles = TRANSITIONS.get((current, target))
        if roles is None:
            logger.warning(f"Rejected illegal transition {current} -> {target} by {role}")
            if OrderStatusMachine.is_terminal(current):
                raise InvalidStatusTransition(f"Order is already {current.label.lower()}; its status can no longer change.")
            raise InvalidStatusTransition(f"Cannot change order status from {current} to {target}.")

        if role not in roles:
            logger.warning(f"Role {role} may not move order {current} -> {target}")
            raise StatusChangeForbidden(f"{role.label} cannot set order status to {target}.")
