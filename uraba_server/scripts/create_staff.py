#!/usr/bin/env python3
# Copyright (C) 2024 Uraba Logistics Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Create a messenger, operator or admin account. Run: python -m uraba_server.scripts.create_staff"""

import asyncio
import getpass
import sys

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from uraba_server.auth import hash_password
from uraba_server.database import async_session_maker, init_db
from uraba_server.models import User
from uraba_server.models.user import ROLE_ADMIN, ROLE_MESSENGER, ROLE_OPERATOR

STAFF_ROLES = (ROLE_MESSENGER, ROLE_OPERATOR, ROLE_ADMIN)


async def create_staff_user(
    session: AsyncSession,
    *,
    first_name: str,
    last_name: str,
    document_number: str,
    email: str,
    password: str,
    role: str,
    address: str = "",
    phone: str = "",
) -> User:
    """Insert a verified staff account. Raises ValueError on bad role or duplicates."""
    if role not in STAFF_ROLES:
        raise ValueError(f"Role must be one of: {', '.join(STAFF_ROLES)}")
    email = email.strip().lower()
    result = await session.execute(
        select(User).where(or_(func.lower(User.email) == email, User.document_number == document_number))
    )
    if result.scalars().first():
        raise ValueError("User with that email or document number already exists")
    user = User(
        first_name=first_name,
        last_name=last_name,
        document_number=document_number,
        email=email,
        address=address,
        phone=phone,
        role=role,
        password_hash=hash_password(password),
        is_email_verified=True,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def main():
    await init_db()
    role = input(f"Role ({'/'.join(STAFF_ROLES)}): ").strip()
    first_name = input("First name: ").strip()
    last_name = input("Last name: ").strip()
    document_number = input("Document number: ").strip()
    email = input("Email: ").strip()
    password = getpass.getpass("Password: ")
    if not all([role, first_name, last_name, document_number, email, password]):
        print("All fields required")
        sys.exit(1)

    async with async_session_maker() as session:
        try:
            user = await create_staff_user(
                session,
                first_name=first_name,
                last_name=last_name,
                document_number=document_number,
                email=email,
                password=password,
                role=role,
            )
        except ValueError as e:
            print(e)
            sys.exit(1)
        print(f"{user.role.capitalize()} user created (id {user.id}).")


if __name__ == "__main__":
    asyncio.run(main())
