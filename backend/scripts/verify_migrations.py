#!/usr/bin/env python3
"""
Database Migration Verification Script.

Verifies that migrations have been applied and that the ledger's safety
objects exist: tables, unique indexes and the non-negative balance checks.

Usage:
    python scripts/verify_migrations.py

    # With specific database URL
    DATABASE_URL=postgresql://... python scripts/verify_migrations.py
"""

import asyncio
import os
import sys
from typing import NamedTuple

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, create_async_engine

REQUIRED_TABLES = [
    "users",
    "wallets",
    "transactions",
    "tournaments",
    "registrations",
    "room_details",
    "winner_declarations",
    "announcements",
]

# (index, table): uniqueness here is what makes retries and double clicks safe
REQUIRED_UNIQUE_INDEXES = [
    ("ix_users_email", "users"),
    ("ix_wallets_user_id", "wallets"),
    ("ix_transactions_transaction_id", "transactions"),
    ("ix_transactions_idempotency_key", "transactions"),
    ("ix_room_details_tournament_id", "room_details"),
    ("ix_winner_declarations_tournament_id", "winner_declarations"),
]

REQUIRED_CONSTRAINTS = [
    "ck_wallets_main_non_negative",
    "ck_wallets_winning_non_negative",
    "ck_transactions_amount_positive",
    "ck_tournaments_capacity",
    "uq_registrations_tournament_user",
    "uq_registrations_tournament_player",
]


class VerificationResult(NamedTuple):
    """Result of a verification check."""
    name: str
    passed: bool
    message: str


async def _exists(conn: AsyncConnection, query: str, **params) -> bool:
    result = await conn.execute(text(query), params)
    return bool(result.scalar())


async def verify_migrations(database_url: str) -> list[VerificationResult]:
    """
    Verify database migrations and schema.

    Args:
        database_url: PostgreSQL connection URL

    Returns:
        List of verification results
    """
    results = []
    engine = create_async_engine(database_url)

    async with engine.connect() as conn:
        # 1. Alembic version
        alembic_exists = await _exists(
            conn,
            "SELECT EXISTS (SELECT FROM information_schema.tables "
            "WHERE table_name = 'alembic_version')",
        )
        version = None
        if alembic_exists:
            version = (await conn.execute(text("SELECT version_num FROM alembic_version"))).scalar()
        results.append(VerificationResult(
            name="Migration version",
            passed=version is not None,
            message=f"Current version: {version}" if version else "No migration version found",
        ))

        # 2. Tables
        for table in REQUIRED_TABLES:
            exists = await _exists(
                conn,
                "SELECT EXISTS (SELECT FROM information_schema.tables WHERE table_name = :name)",
                name=table,
            )
            results.append(VerificationResult(
                name=f"Table: {table}",
                passed=exists,
                message=f"Table '{table}' exists" if exists else f"Table '{table}' MISSING",
            ))

        # 3. Unique indexes
        for index_name, table_name in REQUIRED_UNIQUE_INDEXES:
            exists = await _exists(
                conn,
                "SELECT EXISTS (SELECT FROM pg_indexes WHERE indexname = :name "
                "AND indexdef LIKE 'CREATE UNIQUE%')",
                name=index_name,
            )
            results.append(VerificationResult(
                name=f"Unique index: {index_name}",
                passed=exists,
                message=(
                    f"Unique index '{index_name}' on '{table_name}' exists"
                    if exists else f"Unique index '{index_name}' MISSING"
                ),
            ))

        # 4. Check and unique constraints
        for constraint in REQUIRED_CONSTRAINTS:
            exists = await _exists(
                conn,
                "SELECT EXISTS (SELECT FROM pg_constraint WHERE conname = :name)",
                name=constraint,
            )
            results.append(VerificationResult(
                name=f"Constraint: {constraint}",
                passed=exists,
                message=f"Constraint '{constraint}' exists" if exists else f"Constraint '{constraint}' MISSING",
            ))

        # 5. Pending queue query should be index-backed
        result = await conn.execute(text("""
            EXPLAIN (FORMAT JSON)
            SELECT * FROM transactions
            WHERE tx_type = 'add_cash' AND status = 'pending'
            ORDER BY created_at LIMIT 20
        """))
        plan = result.scalar()
        uses_index = "Index" in str(plan) if plan else False
        results.append(VerificationResult(
            name="Query plan: pending deposits",
            passed=uses_index,
            message="Uses index scan" if uses_index else "WARNING: May use sequential scan",
        ))

    await engine.dispose()
    return results


def print_results(results: list[VerificationResult]) -> bool:
    """Print verification results. Returns True if all checks passed."""
    print("\n" + "=" * 60)
    print("DATABASE MIGRATION VERIFICATION REPORT")
    print("=" * 60 + "\n")

    failed = 0
    for result in results:
        status = "PASS" if result.passed else "FAIL"
        print(f"{status} | {result.name}")
        print(f"       {result.message}")
        print()
        if not result.passed:
            failed += 1

    print("=" * 60)
    print(f"SUMMARY: {len(results) - failed} passed, {failed} failed")
    print("=" * 60 + "\n")

    return failed == 0


async def main():
    """Main entry point."""
    database_url = os.getenv("DATABASE_URL")

    if not database_url:
        print("ERROR: DATABASE_URL environment variable not set")
        print("Usage: DATABASE_URL=postgresql://... python scripts/verify_migrations.py")
        sys.exit(1)

    # Convert to async URL if needed
    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    print("Connecting to database...")

    try:
        results = await verify_migrations(database_url)
    except Exception as e:
        print(f"ERROR: Failed to verify migrations: {e}")
        sys.exit(1)

    if not print_results(results):
        print("Some checks failed. Please review and fix before deployment.")
        sys.exit(1)
    print("All migration checks passed!")


if __name__ == "__main__":
    asyncio.run(main())
