# Copyright (C) 2024 Uraba Logistics Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Persistence for packages. Rows come back with client/messenger display names."""

from sqlalchemy import Select, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from uraba_server.errors import ConflictError
from uraba_server.models import Package, User

PackageRow = tuple[Package, str | None, str | None]


def _select_with_names() -> Select:
    client = aliased(User)
    messenger = aliased(User)
    return (
        select(
            Package,
            (client.first_name + " " + client.last_name).label("client_name"),
            (messenger.first_name + " " + messenger.last_name).label("messenger_name"),
        )
        .outerjoin(client, Package.client_id == client.id)
        .outerjoin(messenger, Package.assigned_messenger_id == messenger.id)
    )


async def get_user(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def create_package(db: AsyncSession, package: Package) -> Package:
    """Insert a package. Duplicate tracking codes raise ConflictError."""
    db.add(package)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Tracking code already exists") from None
    await db.commit()
    await db.refresh(package)
    return package


async def get_package(db: AsyncSession, package_id: int, for_update: bool = False) -> Package | None:
    stmt = select(Package).where(Package.id == package_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_package_by_tracking_code(db: AsyncSession, tracking_code: str) -> PackageRow | None:
    result = await db.execute(_select_with_names().where(Package.tracking_code == tracking_code))
    row = result.first()
    return tuple(row) if row else None


async def list_packages(
    db: AsyncSession,
    client_id: int | None = None,
    messenger_id: int | None = None,
) -> list[PackageRow]:
    """All packages newest first, optionally filtered by owner or messenger."""
    stmt = _select_with_names()
    if client_id is not None:
        stmt = stmt.where(Package.client_id == client_id)
    if messenger_id is not None:
        stmt = stmt.where(Package.assigned_messenger_id == messenger_id)
    result = await db.execute(stmt.order_by(Package.created_at.desc(), Package.id.desc()))
    return [tuple(row) for row in result.all()]


async def update_status(db: AsyncSession, package: Package, status: str) -> Package:
    package.status = status
    await db.commit()
    await db.refresh(package)
    return package


async def assign_messenger(db: AsyncSession, package: Package, messenger_id: int) -> Package:
    package.assigned_messenger_id = messenger_id
    await db.commit()
    await db.refresh(package)
    return package
