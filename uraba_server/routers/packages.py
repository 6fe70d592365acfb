# Copyright (C) 2024 Uraba Logistics Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Package API routes."""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from uraba_server.api.schemas import (
    MessengerAssignment,
    PackageCreate,
    PackageResponse,
    StatusUpdate,
    TrackingResponse,
)
from uraba_server.auth import CurrentUser, get_current_user
from uraba_server.database import get_db
from uraba_server.errors import NotFoundError
from uraba_server.models import Package
from uraba_server.services import package_lifecycle, package_repository
from uraba_server.services.qr import build_qr_payload, render_qr_png

router = APIRouter(prefix="/packages", tags=["packages"])


def _package_response(
    package: Package,
    client_name: str | None = None,
    messenger_name: str | None = None,
) -> PackageResponse:
    out = PackageResponse.model_validate(package)
    out.client_name = client_name
    out.messenger_name = messenger_name
    return out


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register_package(
    data: PackageCreate,
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Register a shipment; tracking code and cost are computed here."""
    package = await package_lifecycle.register_package(
        db,
        sender_name=data.sender_name,
        recipient_name=data.recipient_name,
        delivery_address=data.delivery_address,
        client_id=data.client_id,
        weight=data.weight,
    )
    return {
        "message": "Package registered",
        "package": _package_response(package).model_dump(mode="json"),
    }


@router.get("", response_model=list[PackageResponse])
async def list_packages(
    db: AsyncSession = Depends(get_db),
) -> list[PackageResponse]:
    """All packages, newest first."""
    rows = await package_repository.list_packages(db)
    return [_package_response(p, cn, mn) for p, cn, mn in rows]


@router.get("/tracking/{tracking_code}", response_model=TrackingResponse)
async def track_package(
    tracking_code: str,
    db: AsyncSession = Depends(get_db),
) -> TrackingResponse:
    """Public tracking lookup with location and delivery estimate."""
    row = await package_repository.get_package_by_tracking_code(db, tracking_code)
    if not row:
        raise NotFoundError("Package not found", detail="Check the tracking code")
    package, client_name, messenger_name = row
    return TrackingResponse(
        **_package_response(package, client_name, messenger_name).model_dump(),
        current_location=package_lifecycle.describe_location(package.status),
        estimated_delivery=package_lifecycle.estimate_delivery(package.created_at),
    )


@router.get("/messenger/my-deliveries", response_model=list[PackageResponse])
async def my_deliveries(
    current: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[PackageResponse]:
    """Packages assigned to the calling messenger."""
    rows = await package_repository.list_packages(db, messenger_id=current.user_id)
    return [_package_response(p, cn, mn) for p, cn, mn in rows]


@router.get("/client/my-packages", response_model=list[PackageResponse])
async def my_packages(
    current: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[PackageResponse]:
    """Packages owned by the calling client."""
    rows = await package_repository.list_packages(db, client_id=current.user_id)
    return [_package_response(p, cn, mn) for p, cn, mn in rows]


@router.put("/{package_id}/status")
async def update_status(
    package_id: int,
    data: StatusUpdate,
    current: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    package = await package_lifecycle.change_status(db, current, package_id, data.status)
    return {
        "message": "Status updated",
        "package": _package_response(package).model_dump(mode="json"),
    }


@router.put("/{package_id}/assign-messenger")
async def assign_messenger(
    package_id: int,
    data: MessengerAssignment,
    db: AsyncSession = Depends(get_db),
) -> dict:
    package = await package_lifecycle.assign_messenger(db, package_id, data.messenger_id)
    return {
        "message": "Messenger assigned",
        "package": _package_response(package).model_dump(mode="json"),
    }


@router.get("/{package_id}/qr")
async def package_qr(
    package_id: int,
    db: AsyncSession = Depends(get_db),
) -> Response:
    """PNG QR code for the package label."""
    package = await package_repository.get_package(db, package_id)
    if not package:
        raise NotFoundError("Package not found")
    png = render_qr_png(build_qr_payload(package))
    return Response(content=png, media_type="image/png")
