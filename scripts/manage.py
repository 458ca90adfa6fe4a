#!/usr/bin/env python3
"""
Portal Management Script
========================

Operator commands for the certificate portal.

Usage:
    python scripts/manage.py init-db
    python scripts/manage.py verify-institution <institution_id>
    python scripts/manage.py verify-institution <institution_id> --revoke
    python scripts/manage.py reconcile

Version: 0.1.0
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from educhain.logging import get_logger, log_context, setup_logging

setup_logging(log_level="INFO", json_logs=False, service_name="manage")
logger = get_logger(__name__)


async def init_db() -> bool:
    """Create collection indexes."""
    from educhain.database import MongoDBClient

    logger.info("Initializing MongoDB...")

    try:
        health = await MongoDBClient.health_check()
        if health.get("status") != "healthy":
            logger.error(f"MongoDB health check failed: {health.get('error')}")
            return False

        await MongoDBClient.create_indexes()
        logger.info("MongoDB indexes created")
        return True

    except Exception as e:
        logger.error(f"MongoDB initialization failed: {e}")
        return False

    finally:
        await MongoDBClient.close()


async def verify_institution(institution_id: str, verified: bool) -> bool:
    """Set an institution's verification flag."""
    from educhain.database import MongoDBClient
    from services.portal.services import InstitutionRepository

    try:
        repo = InstitutionRepository(MongoDBClient.get_database())
        doc = await repo.set_verified(institution_id, verified)
        if doc is None:
            logger.error(f"Institution not found: {institution_id}")
            return False

        logger.info(f"{doc['name']}: verified={doc['is_verified']}")
        return True

    finally:
        await MongoDBClient.close()


async def reconcile() -> bool:
    """Run one ledger/database reconciliation pass."""
    from educhain.blockchain import get_ledger_client
    from educhain.database import MongoDBClient
    from services.portal.services import CertificateReconciler

    ledger = get_ledger_client()
    try:
        await ledger.connect()
        report = await CertificateReconciler(MongoDBClient.get_database(), ledger).reconcile()

        logger.info(f"  Promoted: {report.promoted}")
        logger.info(f"  Released: {report.released}")
        logger.info(f"  Still pending: {report.still_pending}")
        logger.info(f"  Revoked locally: {report.revoked}")
        if report.orphaned:
            logger.warning(f"  Orphaned ledger tokens: {report.orphaned}")
        return True

    finally:
        await ledger.disconnect()
        await MongoDBClient.close()


async def main(args: argparse.Namespace) -> int:
    """Dispatch the selected command."""
    with log_context(command=args.command):
        if args.command == "init-db":
            ok = await init_db()
        elif args.command == "verify-institution":
            ok = await verify_institution(args.institution_id, not args.revoke)
        else:
            ok = await reconcile()

    return 0 if ok else 1


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Manage the certificate portal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create MongoDB indexes")

    verify = subparsers.add_parser("verify-institution", help="Verify an institution")
    verify.add_argument("institution_id", help="Institution ObjectId")
    verify.add_argument(
        "--revoke",
        action="store_true",
        help="Remove verification instead",
    )

    subparsers.add_parser("reconcile", help="Reconcile ledger and database")

    return parser.parse_args(argv)


if __name__ == "__main__":
    args = parse_args()
    exit_code = asyncio.run(main(args))
    sys.exit(exit_code)
