"""Settlement engine command line interface.

Provides operational tools for:
- Running the API server
- Creating the database schema
- Failing stale processing claims
- Inspecting a country's statutory tables

Usage:
    python -m settlement_engine.cli serve --port 8000
    python -m settlement_engine.cli init-db
    python -m settlement_engine.cli reap-stale
    python -m settlement_engine.cli compliance --country CI
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from decimal import Decimal
from typing import Any, Callable

from settlement_engine.calculators import ComplianceRulesProvider, OvertimeKind
from settlement_engine.calculators.types import EmployeeCategory
from settlement_engine.config import configure_logging, get_settings
from settlement_engine.errors import SettlementEngineError


class SettlementCli:
    """Settlement engine command line interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m settlement_engine.cli",
            description="Settlement engine operational tools",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        # serve command
        serve = subparsers.add_parser("serve", help="Run the HTTP API")
        serve.add_argument("--host", type=str, help="Bind address (default: $HOST)")
        serve.add_argument("--port", type=int, help="Port (default: $PORT)")
        serve.add_argument(
            "--reload",
            action="store_true",
            help="Reload on code changes (development only)",
        )

        # init-db command
        subparsers.add_parser("init-db", help="Create database tables")

        # reap-stale command
        reap = subparsers.add_parser(
            "reap-stale",
            help="Fail processing cases whose worker stopped reporting",
        )
        reap.add_argument(
            "--timeout",
            type=int,
            help="Stale-claim timeout in seconds (default: $STALE_CLAIM_TIMEOUT_SECONDS)",
        )

        # compliance command
        compliance = subparsers.add_parser(
            "compliance",
            help="Print a country's statutory severance, notice and leave tables",
        )
        compliance.add_argument(
            "--country",
            type=str,
            help="ISO country code (default: $DEFAULT_COUNTRY_CODE)",
        )
        compliance.add_argument(
            "--format",
            type=str,
            choices=["text", "json"],
            default="text",
            help="Output format",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        # Dispatch to command handler
        handlers: dict[str, Callable[..., int]] = {
            "serve": self._cmd_serve,
            "init-db": self._cmd_init_db,
            "reap-stale": self._cmd_reap_stale,
            "compliance": self._cmd_compliance,
        }

        handler = handlers.get(parsed.command)
        if handler:
            return handler(parsed)

        print(f"Unknown command: {parsed.command}", file=sys.stderr)
        return 1

    def _cmd_serve(self, args: argparse.Namespace) -> int:
        """Run uvicorn."""
        import uvicorn

        settings = get_settings()
        uvicorn.run(
            "settlement_engine.api.app:app",
            host=args.host or settings.HOST,
            port=args.port or settings.PORT,
            reload=args.reload or settings.DEBUG,
            log_level=settings.log_level.lower(),
        )
        return 0

    def _cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create every table of the ORM metadata."""
        from settlement_engine.database import dispose_db, init_db
        from settlement_engine.models import Base

        async def create() -> None:
            engine, _ = init_db()
            try:
                async with engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
            finally:
                await dispose_db()

        configure_logging()
        asyncio.run(create())
        print("Database schema created")
        return 0

    def _cmd_reap_stale(self, args: argparse.Namespace) -> int:
        """Run one stale-claim reaper pass and wait for redelivered jobs."""
        from dataclasses import replace

        from settlement_engine.calculators import SettlementCalculator
        from settlement_engine.database import dispose_db, init_db
        from settlement_engine.documents import StubDocumentGenerator
        from settlement_engine.services import AsyncioJobQueue, TerminationProcessor

        settings = get_settings()
        if args.timeout is not None:
            settings = replace(settings, stale_claim_timeout_seconds=args.timeout)

        async def reap() -> list[Any]:
            _, session_factory = init_db()
            processor = TerminationProcessor(
                session_factory,
                SettlementCalculator(engine_version=settings.engine_version),
                StubDocumentGenerator(base_url=settings.document_base_url),
                settings=settings,
            )
            queue = AsyncioJobQueue()
            try:
                reaped = await processor.reap_stale_cases(queue)
                await queue.drain()
                return reaped
            finally:
                await queue.shutdown()
                await dispose_db()

        configure_logging(settings.log_level)
        reaped = asyncio.run(reap())
        print(f"Reaped {len(reaped)} stale case(s)")
        for case_id in reaped:
            print(f"  {case_id}")
        return 0

    def _cmd_compliance(self, args: argparse.Namespace) -> int:
        """Print statutory tables."""
        country = args.country or get_settings().default_country_code
        try:
            rules = ComplianceRulesProvider.for_country(country)
        except SettlementEngineError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        tables = self._compliance_tables(rules)
        if args.format == "json":
            print(json.dumps(tables, indent=2, default=str))
            return 0

        print(f"Compliance tables: {rules.country_code} ({rules.currency})")
        print("=" * 40)
        print("\nSeverance (% of average monthly salary per year of service):")
        for bracket in tables["severance_brackets"]:
            print(f"  {bracket['label']:>6} years: {bracket['rate_percent']}%")
        print("\nMinimum notice (days):")
        for category, steps in tables["notice_days"].items():
            print(f"  {category}: " + ", ".join(f"{k}: {v}" for k, v in steps.items()))
        print(f"\nLeave accrual: {tables['leave_days_per_month']} days/month")
        print("\nOvertime multipliers:")
        for kind, multiplier in tables["overtime_multipliers"].items():
            print(f"  {kind}: x{multiplier}")
        print(f"\nGratification rate: {tables['gratification_rate']}")
        print(f"Retirement age: {tables['retirement_age']}")
        return 0

    @staticmethod
    def _compliance_tables(rules: ComplianceRulesProvider) -> dict[str, Any]:
        # Sample seniorities that land in each notice step
        samples = [Decimal("0.25"), Decimal("1"), Decimal("3"), Decimal("6")]
        return {
            "country_code": rules.country_code,
            "currency": rules.currency,
            "severance_brackets": [
                {"label": b.label, "rate_percent": str(b.rate_percent)}
                for b in rules.severance_brackets()
            ],
            "notice_days": {
                category.value: {
                    f"{years} years": rules.legal_minimum_notice_days(years, category)
                    for years in samples
                }
                for category in EmployeeCategory
            },
            "leave_days_per_month": str(rules.leave_accrual_minimum()),
            "overtime_multipliers": {
                kind.value: str(rules.overtime_multiplier(kind)) for kind in OvertimeKind
            },
            "gratification_rate": str(rules.rules.gratification_rate),
            "retirement_age": rules.rules.retirement_age,
        }


def main() -> int:
    """CLI entry point."""
    cli = SettlementCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
