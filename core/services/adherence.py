"""
Adherence statistics over a ledger snapshot.

Every function here is pure: it reads the medicines and logs it is given and
never touches the store. "Today" and "now" are parameters so that results are
reproducible; they default to the local clock.
"""

from collections.abc import Iterable, Sequence
from datetime import date, datetime, timedelta

from core.domain.models import (
    AdherenceSummary,
    DailyAdherence,
    IntakeLog,
    LogStatus,
    Medicine,
    StreakStats,
    TodayProgress,
    to_epoch_ms,
)

MS_PER_DAY = 86_400_000


def adherence_rate(
    logs: Iterable[IntakeLog], window_days: int, now: datetime | None = None
) -> float:
    """
    Fraction of Taken among Taken + Skipped logs in the trailing window.

    Returns 0.0 when nothing was logged in the window; the result is always
    within [0, 1].
    """
    cutoff = to_epoch_ms(now or datetime.now()) - window_days * MS_PER_DAY
    taken = skipped = 0
    for log in logs:
        if log.timestamp < cutoff:
            continue
        if log.status == LogStatus.TAKEN:
            taken += 1
        elif log.status == LogStatus.SKIPPED:
            skipped += 1

    denominator = taken + skipped
    if denominator == 0:
        return 0.0
    return taken / denominator


def taken_dates(logs: Iterable[IntakeLog]) -> list[date]:
    """Distinct calendar dates with at least one Taken log, ascending."""
    return sorted(
        {date.fromisoformat(log.date_str) for log in logs if log.status == LogStatus.TAKEN}
    )


def streak_stats(logs: Iterable[IntakeLog], today: date | None = None) -> StreakStats:
    """
    Current and longest runs of consecutive days with a Taken log.

    The current streak is the length of the most recent run, but only while
    that run is still alive: its last day is today or yesterday.
    """
    dates = taken_dates(logs)
    if not dates:
        return StreakStats(current=0, longest=0)

    today = today or date.today()
    longest = run = 1
    for previous, current in zip(dates, dates[1:]):
        if current - previous == timedelta(days=1):
            run += 1
        else:
            run = 1
        longest = max(longest, run)

    alive = dates[-1] in (today, today - timedelta(days=1))
    return StreakStats(current=run if alive else 0, longest=longest)


def is_low_stock(medicine: Medicine) -> bool:
    return medicine.current_stock is not None and (
        medicine.current_stock <= medicine.effective_threshold
    )


def low_stock_medicines(medicines: Iterable[Medicine]) -> list[Medicine]:
    return [m for m in medicines if is_low_stock(m)]


def is_logged_today(medicine_id: str, logs: Iterable[IntakeLog], today: date | None = None) -> bool:
    """Any log (any status) for the medicine today."""
    today_str = (today or date.today()).isoformat()
    return any(log.medicine_id == medicine_id and log.date_str == today_str for log in logs)


def today_progress(
    medicines: Sequence[Medicine], logs: Iterable[IntakeLog], today: date | None = None
) -> TodayProgress:
    """Medicines in the catalog with a Taken log today; repeated logs count once."""
    today_str = (today or date.today()).isoformat()
    taken_today = {
        log.medicine_id
        for log in logs
        if log.date_str == today_str and log.status == LogStatus.TAKEN
    }
    completed = sum(1 for m in medicines if m.id in taken_today)
    total = len(medicines)
    percent = round(completed / total * 100) if total > 0 else 0
    return TodayProgress(completed=completed, total=total, percent=percent)


def daily_breakdown(
    logs: Iterable[IntakeLog], days: int = 7, today: date | None = None
) -> list[DailyAdherence]:
    """Taken/skipped counts for the last ``days`` days, oldest first, today last."""
    today = today or date.today()
    window = [(today - timedelta(days=offset)).isoformat() for offset in range(days - 1, -1, -1)]
    counts: dict[str, list[int]] = {day: [0, 0] for day in window}

    for log in logs:
        bucket = counts.get(log.date_str)
        if bucket is None:
            continue
        if log.status == LogStatus.TAKEN:
            bucket[0] += 1
        elif log.status == LogStatus.SKIPPED:
            bucket[1] += 1

    return [
        DailyAdherence(date_str=day, taken=counts[day][0], skipped=counts[day][1])
        for day in window
    ]


def status_totals(logs: Iterable[IntakeLog]) -> dict[LogStatus, int]:
    totals = {status: 0 for status in LogStatus}
    for log in logs:
        totals[log.status] += 1
    return totals


def summarize(
    medicines: Sequence[Medicine],
    logs: Sequence[IntakeLog],
    window_days: int = 7,
    history_days: int = 7,
    now: datetime | None = None,
) -> AdherenceSummary:
    now = now or datetime.now()
    totals = status_totals(logs)
    return AdherenceSummary(
        window_days=window_days,
        adherence_rate=adherence_rate(logs, window_days, now),
        streaks=streak_stats(logs, now.date()),
        total_taken=totals[LogStatus.TAKEN],
        total_skipped=totals[LogStatus.SKIPPED],
        daily=daily_breakdown(logs, history_days, now.date()),
        low_stock_medicine_ids=[m.id for m in low_stock_medicines(medicines)],
    )
