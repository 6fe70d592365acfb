# Copyright (C) 2024 Uraba Logistics Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Database models."""

from uraba_server.models.base import Base
from uraba_server.models.user import User
from uraba_server.models.package import Package

__all__ = [
    "Base",
    "User",
    "Package",
]
