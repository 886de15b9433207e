#!/usr/bin/env python
"""Operator CLI for bootstrapping and day-to-day portal administration.

Usage:
    python -m vpnportal.cli.manage --init-db                 # Create tables
    python -m vpnportal.cli.manage --create-admin            # Create admin from ADMIN_* settings
    python -m vpnportal.cli.manage --issue-invite            # Issue an unbound invite
    python -m vpnportal.cli.manage --issue-invite --email a@b.c --hours 24
    python -m vpnportal.cli.manage --list-pending            # Pending registrations, oldest first
"""
import argparse
import logging
import sys
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from vpnportal.db.database import SessionLocal, init_db
from vpnportal.db.models_auth import User, UserRole, UserStatus
from vpnportal.services.auth import ensure_admin_exists
from vpnportal.services.errors import PortalError
from vpnportal.services.invites import InviteLedger
from vpnportal.services.registration import RegistrationPipeline

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _acting_admin(db: Session) -> Optional[User]:
    return db.execute(
        select(User)
        .where(User.role == UserRole.ADMIN, User.status == UserStatus.ACTIVE)
        .order_by(User.created_at.asc())
        .limit(1)
    ).scalar_one_or_none()


def issue_invite(db: Session, email: Optional[str], hours: Optional[int]) -> int:
    admin = _acting_admin(db)
    if admin is None:
        print("No active admin account; run --create-admin first.", file=sys.stderr)
        return 1
    invite = InviteLedger(db).issue(admin, email=email, ttl_hours=hours)
    print(f"Invite token: {invite.token}")
    print(f"Expires at:   {invite.expires_at.isoformat()} UTC")
    if invite.email:
        print(f"Bound to:     {invite.email}")
    return 0


def list_pending(db: Session) -> int:
    admin = _acting_admin(db)
    if admin is None:
        print("No active admin account; run --create-admin first.", file=sys.stderr)
        return 1
    pending = RegistrationPipeline(db).list_pending(admin)
    print("\nPending Registrations:")
    print("=" * 80)
    for reg in pending:
        print(f"  {reg.id}  {reg.submitted_at:%Y-%m-%d %H:%M}  {reg.username:<20} {reg.email}")
    print(f"\nTotal: {len(pending)}")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="VPN portal administration")
    parser.add_argument("--init-db", action="store_true", help="Create database tables")
    parser.add_argument("--create-admin", action="store_true", help="Create the bootstrap admin account")
    parser.add_argument("--issue-invite", action="store_true", help="Issue a registration invite")
    parser.add_argument("--email", help="Bind the invite to this email")
    parser.add_argument("--hours", type=int, help="Invite lifetime in hours")
    parser.add_argument("--list-pending", action="store_true", help="List pending registrations")
    args = parser.parse_args(argv)

    if not any([args.init_db, args.create_admin, args.issue_invite, args.list_pending]):
        parser.print_help()
        return 1

    if args.init_db:
        init_db()

    db = SessionLocal()
    try:
        if args.create_admin:
            admin = ensure_admin_exists(db)
            if admin is None:
                print("ADMIN_PASSWORD is not set; no admin created.", file=sys.stderr)
                return 1
            print(f"Admin account: {admin.username} <{admin.email}>")
        if args.issue_invite:
            rc = issue_invite(db, args.email, args.hours)
            if rc:
                return rc
        if args.list_pending:
            rc = list_pending(db)
            if rc:
                return rc
    except PortalError as e:
        logger.error(f"{e.code}: {e.message}")
        return 2
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
