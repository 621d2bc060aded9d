"""
Notifier implementations and safe dispatch.

The core only decides when to notify and with what text; delivery belongs to
the notifier. A failing notifier must never break the scheduler tick or an
intake transaction, so every call goes through ``dispatch_notification``.
"""

from datetime import datetime

import structlog
from rich.console import Console
from rich.panel import Panel

from core.services.ports import Notifier

logger = structlog.get_logger(__name__)


def dispatch_notification(notifier: Notifier, title: str, body: str) -> bool:
    """Send one notification; errors are logged and reported as False."""
    try:
        notifier.notify(title, body)
        return True
    except Exception as e:
        logger.error("notification_dispatch_failed", error=str(e), title=title)
        return False


class ConsoleNotifier:
    """Development notifier that renders each notification as a rich panel."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def notify(self, title: str, body: str) -> None:
        stamp = datetime.now().strftime("%H:%M:%S")
        self.console.print(Panel(body, title=f"[bold]{title}[/bold]", subtitle=stamp, style="cyan"))


class LoggingNotifier:
    """Headless notifier: emits one structured log event per notification."""

    def __init__(self, channel: str = "default") -> None:
        self.logger = logger.bind(component="logging_notifier", channel=channel)

    def notify(self, title: str, body: str) -> None:
        self.logger.info("notification", title=title, body=body)
