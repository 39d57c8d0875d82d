"""
Control de acceso por capacidades.

Un único punto de decisión ``is_allowed(actor, action, resource)`` en lugar
de comprobaciones de rol repartidas por cada router. ``resource`` es el
documento de MongoDB sobre el que se actúa (reserva o pago) o ``None`` para
acciones que no dependen de un documento concreto.
"""
from enum import Enum
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel

from .errors import ForbiddenError
from .schemas.user import Role


class Actor(BaseModel):
    id: str
    email: str
    role: Role
    name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.admin


class Action(str, Enum):
    booking_read = "booking:read"
    booking_update = "booking:update"
    booking_cancel = "booking:cancel"
    booking_pay = "booking:pay"
    booking_assign = "booking:assign"
    booking_advance = "booking:advance"
    booking_list_all = "booking:list_all"
    booking_list_assigned = "booking:list_assigned"
    payment_read = "payment:read"
    payment_list_all = "payment:list_all"
    payment_reconcile = "payment:reconcile"
    catalog_manage = "catalog:manage"
    user_manage = "user:manage"


Resource = Optional[Dict[str, Any]]


def owns_booking(actor: Actor, booking: Resource) -> bool:
    if not booking:
        return False
    if str(booking.get("userId", "")) == actor.id:
        return True
    # Reservas antiguas solo guardaban el email del dueño
    return bool(booking.get("userEmail")) and booking.get("userEmail") == actor.email


def is_assigned_decorator(actor: Actor, booking: Resource) -> bool:
    if not booking or actor.role != Role.decorator:
        return False
    assigned = booking.get("assignedDecorator") or {}
    return bool(assigned.get("email")) and assigned.get("email") == actor.email


def owns_payment(actor: Actor, payment: Resource) -> bool:
    return bool(payment) and str(payment.get("userId", "")) == actor.id


_RULES: Dict[Action, Callable[[Actor, Resource], bool]] = {
    Action.booking_read: lambda a, r: owns_booking(a, r) or is_assigned_decorator(a, r),
    Action.booking_update: owns_booking,
    Action.booking_cancel: owns_booking,
    Action.booking_pay: owns_booking,
    Action.booking_assign: lambda a, r: False,
    Action.booking_advance: is_assigned_decorator,
    Action.booking_list_all: lambda a, r: False,
    Action.booking_list_assigned: lambda a, r: a.role == Role.decorator,
    Action.payment_read: owns_payment,
    Action.payment_list_all: lambda a, r: False,
    Action.payment_reconcile: lambda a, r: False,
    Action.catalog_manage: lambda a, r: False,
    Action.user_manage: lambda a, r: False,
}


def is_allowed(actor: Actor, action: Action, resource: Resource = None) -> bool:
    # El administrador puede hacerlo todo
    if actor.is_admin:
        return True
    rule = _RULES.get(action)
    return bool(rule and rule(actor, resource))


_DENIED_MESSAGES = {
    Action.booking_assign: "Admin access required",
    Action.booking_list_all: "Admin access required",
    Action.payment_list_all: "Admin access required",
    Action.payment_reconcile: "Admin access required",
    Action.catalog_manage: "Admin access required",
    Action.user_manage: "Admin access required",
    Action.booking_advance: "You are not assigned to this project",
    Action.booking_list_assigned: "Decorator access required",
}


def authorize(actor: Actor, action: Action, resource: Resource = None) -> None:
    if not is_allowed(actor, action, resource):
        raise ForbiddenError(_DENIED_MESSAGES.get(action, "Access denied"))
