"""
End-to-end walkthrough of the adherence core.

This script exercises:
1. Configuration loading and validation
2. Login, catalog edits and reminder scheduling
3. Intake logging with stock decrement and refill warnings
4. Adherence statistics
5. Persistence failure and compensation

Run with: python demo.py
"""

import asyncio
import tempfile
from datetime import datetime, timedelta
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from adapters.storage.factory import create_backend
from adapters.storage.memory import InMemoryPersistence
from core.config import get_config, print_config_summary, validate_config
from core.domain.models import IntakeLog, LogStatus, Medicine, UserIdentity
from core.log_setup import configure_logging
from core.services.notifier import ConsoleNotifier
from core.services.ports import Result
from core.services.session import IdentitySession, MedicationSession

console = Console()


class FlakyPersistence(InMemoryPersistence):
    """In-memory backend whose log writes always fail."""

    async def append_log(self, identity: str, log: IntakeLog) -> Result[IntakeLog, Exception]:
        return Result.err(ConnectionError("ledger unavailable"))


async def check_configuration() -> bool:
    console.print(Panel("Configuration", style="blue"))
    try:
        validate_config()
        print_config_summary()
        return True
    except Exception as e:
        console.print(f"Configuration check failed: {e}", style="red")
        return False


async def check_session_flow(data_file: Path) -> bool:
    console.print(Panel("Session, reminders and intake", style="blue"))
    config = get_config()
    # A couple of minutes ahead, so the background ticks never reach it first
    due_at = datetime.now().replace(second=0, microsecond=0) + timedelta(minutes=2)

    backend = create_backend(
        config.persistence.model_copy(update={"data_file_path": str(data_file)})
    )

    identity = IdentitySession()
    session = MedicationSession(backend, ConsoleNotifier(console), identity, config)
    await identity.login(UserIdentity(uid="demo-user", display_name="Demo"))

    added = await session.catalog.add_medicine(
        name="Metformin",
        dosage="500mg",
        time=due_at.strftime("%H:%M"),
        current_stock=3,
        low_stock_threshold=2,
    )
    if added.is_err():
        console.print(f"Could not add medicine: {added.unwrap_err()}", style="red")
        return False
    medicine = added.unwrap()

    events = session.scheduler.evaluate(due_at)
    console.print(f"Reminders emitted at {due_at:%H:%M}: {len(events)}")

    result = await session.intake.record_intake(medicine.id, LogStatus.TAKEN)
    if result.is_err():
        console.print(f"Intake failed: {result.unwrap_err()}", style="red")
        return False

    stock = session.store.get_medicine(medicine.id)
    console.print(f"Remaining stock: {stock.current_stock if stock else 'n/a'}")

    # Re-polling the same minute from a fresh guard finds the dose already taken
    session.scheduler.reset()
    console.print(f"Reminders after intake: {len(session.scheduler.evaluate(due_at))}")

    await identity.logout()
    await session.close()
    return True


async def check_statistics() -> bool:
    console.print(Panel("Adherence statistics", style="blue"))
    backend = InMemoryPersistence()
    today = datetime.now().replace(hour=9, minute=0, second=0, microsecond=0)
    medicine = Medicine(name="Vitamin D", dosage="1000 IU", time="09:00")
    await backend.save_medicine("stats-user", medicine)
    for offset in range(5):
        status = LogStatus.SKIPPED if offset == 3 else LogStatus.TAKEN
        await backend.append_log(
            "stats-user", IntakeLog.create(medicine.id, status, today - timedelta(days=offset))
        )

    identity = IdentitySession()
    session = MedicationSession(backend, ConsoleNotifier(console), identity, get_config())
    await identity.login(UserIdentity(uid="stats-user"))
    summary = session.summary()

    table = Table(title="Last 7 days")
    table.add_column("Date", style="cyan")
    table.add_column("Taken", style="green")
    table.add_column("Skipped", style="yellow")
    for day in summary.daily:
        table.add_row(day.date_str, str(day.taken), str(day.skipped))
    console.print(table)
    console.print(
        f"Adherence rate: {summary.adherence_rate:.0%} | "
        f"current streak: {summary.streaks.current} | longest: {summary.streaks.longest}"
    )

    await session.close()
    return True


async def check_compensation() -> bool:
    console.print(Panel("Persistence failure handling", style="blue"))
    backend = FlakyPersistence()
    identity = IdentitySession()
    session = MedicationSession(backend, ConsoleNotifier(console), identity, get_config())
    await identity.login(UserIdentity(uid="flaky-user"))

    added = await session.catalog.add_medicine(
        name="Lisinopril", dosage="10mg", time="20:00", current_stock=10
    )
    medicine = added.unwrap()
    result = await session.intake.record_intake(medicine.id, LogStatus.TAKEN)

    stock = session.store.get_medicine(medicine.id)
    reverted = (
        result.is_err()
        and not session.store.list_logs()
        and stock is not None
        and stock.current_stock == 10
    )
    style = "green" if reverted else "red"
    console.print(f"Intake failed and was reverted: {reverted}", style=style)

    await session.close()
    return reverted


async def run_all_checks() -> None:
    configure_logging(get_config().logging)
    console.print(Panel("MediMind core - system walkthrough", style="bold blue"))

    with tempfile.TemporaryDirectory() as tmp:
        checks = [
            ("Configuration", check_configuration),
            ("Session flow", lambda: check_session_flow(Path(tmp) / "ledger.json")),
            ("Statistics", check_statistics),
            ("Compensation", check_compensation),
        ]

        results = []
        for name, check in checks:
            console.print(f"\n{'=' * 60}")
            try:
                results.append((name, await check()))
            except Exception as e:
                console.print(f"{name} failed with exception: {e}", style="red")
                results.append((name, False))

    summary_table = Table(title="Results")
    summary_table.add_column("Check", style="cyan")
    summary_table.add_column("Result", style="white")
    for name, ok in results:
        summary_table.add_row(name, "PASSED" if ok else "FAILED")
    console.print(summary_table)


if __name__ == "__main__":
    try:
        asyncio.run(run_all_checks())
    except KeyboardInterrupt:
        console.print("\nStopped by user", style="yellow")
