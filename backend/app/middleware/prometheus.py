"""Prometheus metrics middleware and custom metrics.

Features:
- HTTP request metrics (latency, count, errors)
- Ledger metrics (deposits, withdrawals, entry fees, refunds)
- Prize payout outcomes
- Announcement deliveries
"""

from fastapi import FastAPI
from prometheus_client import Counter, Info
from prometheus_fastapi_instrumentator import Instrumentator, metrics


# =============================================================================
# Custom Metrics
# =============================================================================

APP_INFO = Info("arena_app", "Application information")

# Wallet requests by lifecycle step (requested, approved, rejected)
DEPOSITS_TOTAL = Counter(
    "arena_deposits_total",
    "Add-cash requests",
    ["outcome"],
)

WITHDRAWALS_TOTAL = Counter(
    "arena_withdrawals_total",
    "Withdrawal requests",
    ["outcome"],
)

# Money moved, in paise
LEDGER_AMOUNT = Counter(
    "arena_ledger_amount_paise_total",
    "Amount moved through the ledger",
    ["tx_type"],
)

ENTRY_FEES_TOTAL = Counter(
    "arena_entry_fees_total",
    "Paid tournament registrations",
)

REFUNDS_TOTAL = Counter(
    "arena_refunds_total",
    "Refunded tournament registrations",
)

PRIZE_PAYOUTS = Counter(
    "arena_prize_payouts_total",
    "Per-winner prize payout attempts",
    ["outcome"],  # paid, failed, already_paid
)

ANNOUNCEMENTS_SENT = Counter(
    "arena_announcements_total",
    "Announcement dispatches",
    ["status"],  # sent, failed
)


# =============================================================================
# Instrumentator Setup
# =============================================================================

def setup_prometheus(app: FastAPI, app_version: str = "1.0.0") -> Instrumentator:
    """Setup Prometheus metrics instrumentation.

    Args:
        app: FastAPI application instance
        app_version: Application version string

    Returns:
        Configured Instrumentator instance
    """
    APP_INFO.info({
        "version": app_version,
        "app_name": "arena-backend",
    })

    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_respect_env_var=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/health", "/metrics"],
        inprogress_name="arena_http_requests_inprogress",
        inprogress_labels=True,
    )

    instrumentator.add(
        metrics.default(
            metric_namespace="arena",
            metric_subsystem="http",
            latency_highr_buckets=(0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5),
        )
    )

    instrumentator.instrument(app)
    instrumentator.expose(app, endpoint="/metrics", include_in_schema=True, tags=["Monitoring"])

    return instrumentator


# =============================================================================
# Metric Helper Functions
# =============================================================================

def record_deposit(outcome: str, amount: int = 0) -> None:
    """Record an add-cash request step.

    Args:
        outcome: requested, approved or rejected
        amount: Amount in paise (counted only when approved)
    """
    DEPOSITS_TOTAL.labels(outcome=outcome).inc()
    if outcome == "approved" and amount:
        LEDGER_AMOUNT.labels(tx_type="add_cash").inc(amount)


def record_withdrawal(outcome: str, amount: int = 0) -> None:
    """Record a withdrawal step.

    Args:
        outcome: requested, approved or rejected
        amount: Gross amount in paise (counted only when approved)
    """
    WITHDRAWALS_TOTAL.labels(outcome=outcome).inc()
    if outcome == "approved" and amount:
        LEDGER_AMOUNT.labels(tx_type="withdraw").inc(amount)


def record_entry_fee(amount: int) -> None:
    ENTRY_FEES_TOTAL.inc()
    if amount:
        LEDGER_AMOUNT.labels(tx_type="entry_fee").inc(amount)


def record_refund(amount: int) -> None:
    REFUNDS_TOTAL.inc()
    if amount:
        LEDGER_AMOUNT.labels(tx_type="refund").inc(amount)


def record_prize_payout(outcome: str, amount: int = 0) -> None:
    """Record one winner's payout attempt.

    Args:
        outcome: paid, failed or already_paid
        amount: Prize in paise (counted only when paid)
    """
    PRIZE_PAYOUTS.labels(outcome=outcome).inc()
    if outcome == "paid" and amount:
        LEDGER_AMOUNT.labels(tx_type="prize_win").inc(amount)


def record_announcement(status: str) -> None:
    ANNOUNCEMENTS_SENT.labels(status=status).inc()
