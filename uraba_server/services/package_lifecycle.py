# Copyright (C) 2024 Uraba Logistics Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Package lifecycle: status guards, messenger assignment and derived fields.

Any status in PACKAGE_STATUSES may follow any other; only who may set it is
checked. Messengers may touch only packages assigned to them, and only
operators/admins may (re)open or cancel a package.
"""

import logging
import secrets
import string
import time
from datetime import date, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from uraba_server.auth import CurrentUser
from uraba_server.errors import AuthorizationError, NotFoundError, ValidationError
from uraba_server.models import Package
from uraba_server.models.package import (
    PACKAGE_STATUSES,
    STATUS_CANCELLED,
    STATUS_DELIVERED,
    STATUS_IN_TRANSIT,
    STATUS_OUT_FOR_DELIVERY,
    STATUS_REGISTERED,
)
from uraba_server.models.user import ROLE_ADMIN, ROLE_MESSENGER, ROLE_OPERATOR
from uraba_server.services import package_repository

logger = logging.getLogger(__name__)

TRACKING_PREFIX = "URABA"
TRACKING_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
TRACKING_SUFFIX_LENGTH = 5

BASE_COST = 10000
COST_PER_KG = 5000

DELIVERY_DAYS = 3

# Statuses only operators and admins may set
RESTRICTED_STATUSES = frozenset({STATUS_REGISTERED, STATUS_CANCELLED})
STATUS_ADMIN_ROLES = frozenset({ROLE_OPERATOR, ROLE_ADMIN})

LOCATIONS = {
    STATUS_REGISTERED: "Central warehouse",
    STATUS_IN_TRANSIT: "En route",
    STATUS_OUT_FOR_DELIVERY: "Local delivery",
    STATUS_DELIVERED: "Recipient location",
    STATUS_CANCELLED: "Cancelled shipment",
}
UNKNOWN_LOCATION = "Unavailable"


def generate_tracking_code(now_ms: int | None = None) -> str:
    """URABA-<epoch millis>-<5 random uppercase alphanumerics>."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(secrets.choice(TRACKING_SUFFIX_ALPHABET) for _ in range(TRACKING_SUFFIX_LENGTH))
    return f"{TRACKING_PREFIX}-{now_ms}-{suffix}"


def compute_cost(weight: float | None) -> float:
    if weight is None:
        return float(BASE_COST)
    return BASE_COST + float(weight) * COST_PER_KG


def describe_location(status: str) -> str:
    return LOCATIONS.get(status, UNKNOWN_LOCATION)


def estimate_delivery(created_at: datetime) -> date:
    return (created_at + timedelta(days=DELIVERY_DAYS)).date()


def authorize_status_change(actor: CurrentUser, package: Package, new_status: str) -> None:
    """Raise unless actor may set package to new_status."""
    if actor.role == ROLE_MESSENGER and package.assigned_messenger_id != actor.user_id:
        raise AuthorizationError("You are not allowed to modify this package")
    if actor.role not in STATUS_ADMIN_ROLES and new_status in RESTRICTED_STATUSES:
        raise AuthorizationError("You are not allowed to set this status")
    if new_status not in PACKAGE_STATUSES:
        raise ValidationError("Invalid status", valid_statuses=list(PACKAGE_STATUSES))


async def register_package(
    db: AsyncSession,
    sender_name: str,
    recipient_name: str,
    delivery_address: str,
    client_id: int,
    weight: float | None = None,
) -> Package:
    client = await package_repository.get_user(db, client_id)
    if client is None:
        raise ValidationError("Client does not exist")
    package = Package(
        tracking_code=generate_tracking_code(),
        sender_name=sender_name,
        recipient_name=recipient_name,
        delivery_address=delivery_address,
        weight=weight,
        cost=compute_cost(weight),
        client_id=client_id,
        status=STATUS_REGISTERED,
    )
    package = await package_repository.create_package(db, package)
    logger.info("Package %s registered for client %s (cost %s)", package.tracking_code, client_id, package.cost)
    return package


async def change_status(db: AsyncSession, actor: CurrentUser, package_id: int, new_status: str) -> Package:
    package = await package_repository.get_package(db, package_id, for_update=True)
    if package is None:
        raise NotFoundError("Package not found")
    authorize_status_change(actor, package, new_status)
    previous = package.status
    package = await package_repository.update_status(db, package, new_status)
    logger.info(
        "Package %s status %s -> %s by user %s (%s)",
        package.tracking_code, previous, new_status, actor.user_id, actor.role,
    )
    return package


async def assign_messenger(db: AsyncSession, package_id: int, messenger_id: int) -> Package:
    """Point a package at a messenger. The package is untouched if the user is not one."""
    messenger = await package_repository.get_user(db, messenger_id)
    if messenger is None or messenger.role != ROLE_MESSENGER:
        raise ValidationError("User does not exist or is not a messenger")
    package = await package_repository.get_package(db, package_id, for_update=True)
    if package is None:
        raise NotFoundError("Package not found")
    package = await package_repository.assign_messenger(db, package, messenger_id)
    logger.info("Package %s assigned to messenger %s", package.tracking_code, messenger_id)
    return package
