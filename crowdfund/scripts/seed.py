#!/usr/bin/env python3
"""
Seed roles and the initial admin user.

Usage:
    python -m crowdfund.scripts.seed --admin-email admin@example.com

Idempotent: existing roles, users and role bindings are reused.
"""
import argparse
import logging
from typing import Optional
from uuid import uuid4

from sqlalchemy import and_, insert, select

from crowdfund.core.database import create_all_tables, get_db_session, roles, users, users_roles
from crowdfund.core.logging import configure_logging

logger = logging.getLogger("crowdfund")

ADMIN_ROLE = "admin"
ADMIN_ROLE_DESCRIPTION = "admins are kind"


def ensure_role(session, name: str, description: Optional[str] = None) -> str:
    role_id = session.execute(select(roles.c.id).where(roles.c.name == name)).scalar_one_or_none()
    if role_id:
        return role_id
    role_id = str(uuid4())
    session.execute(insert(roles).values(id=role_id, name=name, description=description))
    return role_id


def ensure_user(session, email: str) -> str:
    user_id = session.execute(select(users.c.id).where(users.c.email == email)).scalar_one_or_none()
    if user_id:
        return user_id
    user_id = str(uuid4())
    session.execute(insert(users).values(id=user_id, email=email, verified=True))
    return user_id


def grant_role(session, user_id: str, role_id: str) -> bool:
    """Bind role to user; False when the binding already existed."""
    existing = session.execute(
        select(users_roles.c.user_id).where(
            and_(users_roles.c.user_id == user_id, users_roles.c.role_id == role_id)
        )
    ).first()
    if existing:
        return False
    session.execute(insert(users_roles).values(user_id=user_id, role_id=role_id))
    return True


def seed_admin(session, admin_email: str) -> str:
    role_id = ensure_role(session, ADMIN_ROLE, ADMIN_ROLE_DESCRIPTION)
    user_id = ensure_user(session, admin_email)
    if grant_role(session, user_id, role_id):
        logger.info(f"Granted {ADMIN_ROLE} to {admin_email}")
    return user_id


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Seed roles and the admin user")
    parser.add_argument("--admin-email", required=True, help="Email of the initial admin user")
    parser.add_argument("--create-tables", action="store_true", help="Create missing tables first")
    args = parser.parse_args(argv)

    configure_logging()
    if args.create_tables:
        create_all_tables()
    with get_db_session() as session:
        user_id = seed_admin(session, args.admin_email)
    logger.info(f"Seeded admin user {user_id}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
