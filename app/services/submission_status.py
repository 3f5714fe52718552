"""
Submission Status Aggregation

Answers "has this bank filed / been approved for period P?" and "may it
submit for the current period?" from the bank's stored tax reports. Pure
functions: the caller does the database reads.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from app.models.tax_report import TaxReportStatus
from app.schemas.tax_report import (
    MonthlySubmission,
    MonthlySubmissionView,
    PeriodInfo,
    SubmissionStatus,
)
from app.services.periods import Period, current_period, iter_periods, missing_periods, start_period

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _as_aware(value: Optional[datetime]) -> datetime:
    if value is None:
        return _EPOCH
    # Mongo returns naive UTC datetimes unless the client is tz_aware
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def report_period(report: Dict[str, Any]) -> Period:
    return Period(int(report["year"]), int(report["month"]))


def last_submitted_at(report: Dict[str, Any]) -> datetime:
    """Most recent (re)submission time of a report"""
    return max(_as_aware(report.get("submitted_at")), _as_aware(report.get("resubmitted_at")))


def latest_by_period(reports: Iterable[Dict[str, Any]]) -> Dict[Period, Dict[str, Any]]:
    """
    One authoritative report per period.

    Duplicates should not exist, but if they do (e.g. after a backfill) the
    most recently submitted report wins.
    """
    latest: Dict[Period, Dict[str, Any]] = {}
    for report in reports:
        period = report_period(report)
        existing = latest.get(period)
        if existing is None or last_submitted_at(report) > last_submitted_at(existing):
            latest[period] = report
    return latest


def summarize(reports: Iterable[Dict[str, Any]], current: Period) -> SubmissionStatus:
    """Submission eligibility for the current period"""
    report = latest_by_period(reports).get(current)
    if report is None:
        return SubmissionStatus(
            has_submitted_current_period=False,
            has_approved_current_period=False,
            can_submit_current_period=True,
        )

    status = TaxReportStatus(report.get("status") or TaxReportStatus.PENDING.value)
    approved = status == TaxReportStatus.APPROVED
    return SubmissionStatus(
        has_submitted_current_period=True,
        has_approved_current_period=approved,
        can_submit_current_period=not approved and status == TaxReportStatus.REJECTED,
        current_period_report_id=report.get("id"),
        current_period_status=status,
    )


def _period_info(period: Period) -> PeriodInfo:
    return PeriodInfo(year=period.year, month=period.month, label=period.label, key=period.key)


def build_monthly_view(
    reports: List[Dict[str, Any]],
    invoices: List[Dict[str, Any]],
    created_at: Optional[datetime],
    now: datetime,
    fallback_months: int = 6
) -> MonthlySubmissionView:
    """
    Full submission history for a bank, from its creation month (or the
    fallback window) to the current month.
    """
    current = current_period(now)
    latest = latest_by_period(reports)
    invoices_by_report = {
        invoice["tax_report_id"]: invoice
        for invoice in invoices
        if invoice.get("tax_report_id")
    }

    entries: Dict[Period, MonthlySubmission] = {}
    for period, report in latest.items():
        invoice = invoices_by_report.get(report.get("id"), {})
        status = TaxReportStatus(report.get("status") or TaxReportStatus.PENDING.value)
        entries[period] = MonthlySubmission(
            year=period.year,
            month=period.month,
            label=period.label,
            key=period.key,
            submitted=True,
            approved=status == TaxReportStatus.APPROVED,
            status=status,
            submission_date=report.get("resubmitted_at") or report.get("submitted_at"),
            amount=invoice.get("tax_amount", 0.0),
            report_id=report.get("id"),
            invoice_id=invoice.get("id"),
        )

    submissions = sorted(entries.values(), key=lambda s: (s.year, s.month), reverse=True)

    start = min(start_period(created_at, now, fallback_months), current)
    timeline = [
        entries.get(period) or MonthlySubmission(
            year=period.year, month=period.month, label=period.label, key=period.key, submitted=False
        )
        for period in iter_periods(start, current)
    ]

    missing = missing_periods(created_at, latest.keys(), now, fallback_months)

    return MonthlySubmissionView(
        current_period=_period_info(current),
        submissions=submissions,
        periods=timeline,
        missing_periods=[_period_info(period) for period in missing],
        status=summarize(reports, current),
    )
