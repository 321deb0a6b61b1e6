"""Settlement engine command line interface.

Provides operational tools for:
- Annual ScHADS wage increases (validate, preview, apply)
- Budget deduction backfill for completed shifts
- Tax bracket seeding

Usage:
    python -m shift_settlement wage-increase validate --percentage 3.75 --effective-date 2025-07-01
    python -m shift_settlement wage-increase preview --percentage 3.75
    python -m shift_settlement wage-increase apply --percentage 3.75 --effective-date 2025-07-01 \\
        --description "FWC annual wage review" --applied-by USER_ID
    python -m shift_settlement backfill-budgets
    python -m shift_settlement seed-tax-brackets --tax-year 2025
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Callable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shift_settlement.calculators.tax_calculator import current_tax_year, seed_default_tax_brackets
from shift_settlement.config import get_settings
from shift_settlement.database import dispose_engine, init_db, session_scope
from shift_settlement.exceptions import WageIncreaseValidationError
from shift_settlement.services.settlement_service import ShiftSettlementService
from shift_settlement.services.wage_scale_service import (
    WageIncreaseConfig,
    WageScaleService,
    get_next_wage_increase_date,
    is_wage_increase_due,
    validate_wage_increase,
    wage_increase_warnings,
)

logger = logging.getLogger(__name__)


def parse_date(s: str) -> date:
    """Parse ISO date string."""
    return date.fromisoformat(s)


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


def parse_decimal(s: str) -> Decimal:
    try:
        return Decimal(s)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid decimal value: {s!r}")


class SettlementCli:
    """Settlement engine command line interface."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self.parser = self._build_parser()
        self._session_factory = session_factory

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="shift-settlement",
            description="NDIS shift settlement and payroll tools",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        # wage-increase command
        wage = subparsers.add_parser(
            "wage-increase",
            help="Annual pay scale increase",
        )
        wage_actions = wage.add_subparsers(dest="action", help="Actions")

        validate = wage_actions.add_parser("validate", help="Check an increase without applying it")
        validate.add_argument("--percentage", type=parse_decimal, required=True)
        validate.add_argument("--effective-date", type=parse_date, required=True)

        preview = wage_actions.add_parser("preview", help="Show sample rates after the increase")
        preview.add_argument("--percentage", type=parse_decimal, required=True)
        preview.add_argument(
            "--sample-size",
            type=int,
            default=6,
            help="Number of pay scale rows to show (default: 6)",
        )

        apply = wage_actions.add_parser("apply", help="Apply the increase to every tenant")
        apply.add_argument("--percentage", type=parse_decimal, required=True)
        apply.add_argument("--effective-date", type=parse_date, required=True)
        apply.add_argument("--description", type=str, required=True)
        apply.add_argument(
            "--applied-by",
            type=parse_uuid,
            help="User ID recorded in the activity log",
        )

        # backfill-budgets command
        backfill = subparsers.add_parser(
            "backfill-budgets",
            help="Deduct completed shifts that were never charged to a budget",
        )
        backfill.add_argument(
            "--acting-user-id",
            type=parse_uuid,
            help="User ID recorded on the budget transactions",
        )

        # seed-tax-brackets command
        seed = subparsers.add_parser(
            "seed-tax-brackets",
            help="Insert the default tax brackets for a tax year",
        )
        seed.add_argument(
            "--tax-year",
            type=int,
            help="Tax year (default: current financial year)",
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
            "wage-increase": self._cmd_wage_increase,
            "backfill-budgets": self._cmd_backfill_budgets,
            "seed-tax-brackets": self._cmd_seed_tax_brackets,
        }

        handler = handlers.get(parsed.command)
        if handler:
            return handler(parsed)

        print(f"Unknown command: {parsed.command}", file=sys.stderr)
        return 1

    def _cmd_wage_increase(self, args: argparse.Namespace) -> int:
        if args.action == "validate":
            return self._wage_validate(args)
        if args.action == "preview":
            return self._run(self._wage_preview(args))
        if args.action == "apply":
            return self._run(self._wage_apply(args))

        print("Specify an action: validate, preview or apply", file=sys.stderr)
        return 1

    def _wage_validate(self, args: argparse.Namespace) -> int:
        errors = validate_wage_increase(args.percentage, args.effective_date)
        warnings = wage_increase_warnings(args.effective_date)

        next_date = get_next_wage_increase_date()
        print(f"Next annual increase date: {next_date}")
        if is_wage_increase_due():
            print("  An annual increase is due within 30 days")

        for warning in warnings:
            print(f"WARNING: {warning}")
        if errors:
            for error in errors:
                print(f"ERROR: {error}", file=sys.stderr)
            return 1

        print(f"{args.percentage}% from {args.effective_date}: OK")
        return 0

    async def _wage_preview(self, args: argparse.Namespace) -> int:
        service = WageScaleService(self._factory())
        preview = await service.preview_wage_increase(args.percentage, args.sample_size)

        print(f"Wage increase preview: {preview.increase_percentage}%")
        print(f"  Pay scales: {preview.total_pay_scales} across {preview.tenant_count} tenant(s)")
        print()
        print(f"  {'Level':>5} {'Point':>5} {'Type':<10} {'Old':>10} {'New':>10} {'Change':>8}")
        for row in preview.sample:
            print(
                f"  {row.level:>5} {row.pay_point:>5} {row.employment_type:<10} "
                f"{row.old_rate:>10} {row.new_rate:>10} {row.increase:>8}"
            )
        return 0

    async def _wage_apply(self, args: argparse.Namespace) -> int:
        config = WageIncreaseConfig(
            effective_date=args.effective_date,
            increase_percentage=args.percentage,
            description=args.description,
            applied_by=args.applied_by,
        )
        service = WageScaleService(self._factory())
        try:
            results = await service.apply_yearly_wage_increase(config)
        except WageIncreaseValidationError as e:
            for error in e.errors:
                print(f"ERROR: {error}", file=sys.stderr)
            return 1

        for result in results:
            if result.success:
                print(f"  {result.tenant_name}: {result.rows_updated} pay scales updated")
            else:
                print(f"  {result.tenant_name}: FAILED ({result.error})")

        failed = [r for r in results if not r.success]
        print(f"\n{len(results) - len(failed)} of {len(results)} tenant(s) updated")
        return 1 if failed else 0

    def _cmd_backfill_budgets(self, args: argparse.Namespace) -> int:
        return self._run(self._backfill(args))

    async def _backfill(self, args: argparse.Namespace) -> int:
        service = ShiftSettlementService(self._factory())
        summary = await service.backfill_budget_deductions(args.acting_user_id)

        print("Budget backfill")
        print(f"  Examined:     {summary.examined}")
        print(f"  Deducted:     {summary.deducted}")
        print(f"  Insufficient: {summary.insufficient}")
        print(f"  Skipped:      {summary.skipped}")
        print(f"  Failed:       {summary.failed}")
        return 1 if summary.failed else 0

    def _cmd_seed_tax_brackets(self, args: argparse.Namespace) -> int:
        return self._run(self._seed(args))

    async def _seed(self, args: argparse.Namespace) -> int:
        tax_year = args.tax_year or get_settings().tax_year or current_tax_year()
        async with session_scope(self._factory()) as session:
            created = await seed_default_tax_brackets(session, tax_year)

        if created:
            print(f"Seeded {created} tax brackets for {tax_year}")
        else:
            print(f"Tax brackets for {tax_year} already present")
        return 0

    def _factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            _, self._session_factory = init_db()
        return self._session_factory

    def _run(self, coro) -> int:
        owns_engine = self._session_factory is None

        async def runner() -> int:
            try:
                return await coro
            finally:
                if owns_engine:
                    await dispose_engine()

        try:
            return asyncio.run(runner())
        except Exception as e:
            logger.exception("Command failed")
            print(f"ERROR: {e}", file=sys.stderr)
            return 1


def main() -> int:
    """CLI entry point."""
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    cli = SettlementCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
