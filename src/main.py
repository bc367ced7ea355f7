"""Process bootstrap and command-line entry point for the compliance engine.

Usage:
    python -m src.main init-db
    python -m src.main seed-rules
    python -m src.main assess-risk USER_ID [--assessed-by NAME]
    python -m src.main review-due
"""

import argparse
import asyncio
import json

import structlog

from src.config import settings
from src.domains.compliance.catalog import seed_default_rules
from src.domains.compliance.config import ComplianceConfig
from src.domains.compliance.engine import ComplianceEngine
from src.domains.compliance.risk_scoring import get_users_due_for_review
from src.domains.compliance.store import ComplianceStore
from src.shared.logging import setup_logging

logger = structlog.get_logger()


async def bootstrap(
    store: ComplianceStore,
    config: ComplianceConfig | None = None,
    seed_rules: bool | None = None,
) -> ComplianceEngine:
    """Configure logging, seed the rule catalog and build the engine.

    Call once per process; the store handle is passed in explicitly.
    """
    setup_logging(settings.log_level, settings.json_logs and not settings.debug)
    logger.info("compliance_engine_starting", app_name=settings.app_name, version=settings.app_version)

    if settings.seed_rules_on_startup if seed_rules is None else seed_rules:
        await seed_default_rules(store)

    return ComplianceEngine(
        store,
        config or ComplianceConfig.from_env(),
        serialize_per_user=settings.compliance_serialize_per_user,
    )


async def _run(args: argparse.Namespace) -> int:
    from src.db.database import check_db, compliance_session, dispose_db, init_db
    from src.domains.compliance.sql_store import SqlComplianceStore

    setup_logging(settings.log_level, settings.json_logs and not settings.debug)

    try:
        if not await check_db():
            return 1

        if args.command == "init-db":
            await init_db()
            return 0

        async with compliance_session() as session:
            store = SqlComplianceStore(session)

            if args.command == "seed-rules":
                created = await seed_default_rules(store)
                print(json.dumps({"created": created}))
            elif args.command == "assess-risk":
                engine = ComplianceEngine(store, ComplianceConfig.from_env())
                profile = await engine.update_user_risk_profile(args.user_id, args.assessed_by)
                print(profile.model_dump_json(indent=2))
            elif args.command == "review-due":
                due = await get_users_due_for_review(store)
                print(json.dumps([p.user_id for p in due]))
    finally:
        await dispose_db()

    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="AML transaction compliance engine")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init-db", help="Create database tables")
    sub.add_parser("seed-rules", help="Seed the default AML monitoring rules (idempotent)")
    assess = sub.add_parser("assess-risk", help="Recalculate and persist a user's risk profile")
    assess.add_argument("user_id")
    assess.add_argument("--assessed-by", default=None)
    sub.add_parser("review-due", help="List users whose risk review is due")

    args = parser.parse_args()
    raise SystemExit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
