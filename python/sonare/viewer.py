"""
Terminal viewer for stored leads and analytics.

Prompt-driven rather than full screen: the active tab is printed as a table,
then a single command is read. Commands: a row number opens its detail view,
``t`` switches tab, ``r`` reloads, ``q`` quits.
"""

from datetime import datetime
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from shared.logging import get_logger
from . import store
from .database import Database

logger = get_logger(__name__)

TABS = ("Form Entries (Leads)", "Analytics")
LEADS_TAB, ANALYTICS_TAB = 0, 1


def truncate(value: str, limit: int) -> str:
    if len(value) > limit:
        return value[:limit - 1] + "…"
    return value


def format_time(value: Optional[datetime], fmt: str = "%Y-%m-%d %H:%M") -> str:
    return value.strftime(fmt) if value else ""


class DataViewer:
    """Browses leads and analytics from the database."""

    def __init__(self, db: Database, console: Optional[Console] = None):
        self.db = db
        self.console = console or Console()
        self.active_tab = LEADS_TAB
        self.leads = []
        self.analytics = []

    def refresh(self) -> None:
        """Reload the active tab; a failed query shows an empty table."""
        try:
            with self.db.session() as session:
                if self.active_tab == LEADS_TAB:
                    self.leads = store.list_leads(session)
                else:
                    self.analytics = store.list_analytics(session)
        except SQLAlchemyError as e:
            logger.error(f"VIEWER: failed to load {TABS[self.active_tab]}: {e}")
            if self.active_tab == LEADS_TAB:
                self.leads = []
            else:
                self.analytics = []

    def switch_tab(self) -> None:
        self.active_tab = (self.active_tab + 1) % len(TABS)
        self.refresh()

    def rows(self) -> list:
        return self.leads if self.active_tab == LEADS_TAB else self.analytics

    def build_table(self) -> Table:
        table = Table(title=TABS[self.active_tab], header_style="bold", show_lines=False)
        table.add_column("#", justify="right", style="dim")
        if self.active_tab == LEADS_TAB:
            table.add_column("ID", justify="right")
            table.add_column("Name", max_width=15)
            table.add_column("Business", max_width=15)
            table.add_column("Email", max_width=20)
            table.add_column("Message", max_width=30)
            table.add_column("Time")
            for idx, lead in enumerate(self.leads, 1):
                table.add_row(
                    str(idx),
                    str(lead.id),
                    lead.name,
                    lead.business,
                    lead.email,
                    truncate(lead.message or "", 28),
                    format_time(lead.created_at),
                )
        else:
            table.add_column("IP", max_width=15)
            table.add_column("Loc", max_width=15)
            table.add_column("Path", max_width=15)
            table.add_column("Method")
            table.add_column("Time")
            for idx, event in enumerate(self.analytics, 1):
                table.add_row(
                    str(idx),
                    event.ip,
                    truncate(f"{event.city}, {event.country}", 15),
                    event.path,
                    event.method,
                    format_time(event.created_at, "%H:%M:%S"),
                )
        return table

    def detail_panel(self, index: int) -> Optional[Panel]:
        """Detail view for the row at 0-based ``index`` of the active tab."""
        rows = self.rows()
        if not 0 <= index < len(rows):
            return None
        item = rows[index]
        when = format_time(item.created_at, "%a %b %d %H:%M:%S %Y")
        if self.active_tab == LEADS_TAB:
            title = f"Lead #{item.id}"
            body = (
                f"NAME:     {item.name}\n"
                f"BUSINESS: {item.business}\n"
                f"EMAIL:    {item.email}\n"
                f"SYSTEM:   {item.playback}\n"
                f"PALETTE:  {item.palette}\n"
                f"SCALE:    {item.hours_est} Hours / {item.store_count} Stores\n\n"
                f"TIME:     {when}\n\n"
                f"MESSAGE:\n{item.message}"
            )
        else:
            title = f"Analytics Event #{item.id}"
            body = (
                f"IP ADDRESS: {item.ip}\n"
                f"LOCATION:   {item.city}, {item.country}\n"
                f"PATH:       {item.path}\n"
                f"METHOD:     {item.method}\n"
                f"USER AGENT: {item.user_agent}\n"
                f"TIME:       {when}"
            )
        return Panel(body, title=title, border_style="magenta", padding=(1, 2), expand=False)

    def render(self) -> None:
        tabs = "  ".join(
            f"[bold magenta]{name}[/bold magenta]" if i == self.active_tab else f"[dim]{name}[/dim]"
            for i, name in enumerate(TABS)
        )
        self.console.print(tabs)
        self.console.print(self.build_table())
        self.console.print("[dim]Enter a row number for details • 't' to switch • 'r' to refresh • 'q' to quit[/dim]")

    def run(self) -> None:
        self.refresh()
        while True:
            self.console.clear()
            self.render()
            choice = Prompt.ask("Select", console=self.console, default="r").strip().lower()
            if choice in ("q", "quit"):
                return
            if choice == "t":
                self.switch_tab()
            elif choice == "r":
                self.refresh()
            elif choice.isdigit():
                panel = self.detail_panel(int(choice) - 1)
                if panel is None:
                    continue
                self.console.clear()
                self.console.print(panel)
                Prompt.ask("Press enter to go back", console=self.console, default="")


def start(db: Database, console: Optional[Console] = None) -> None:
    """Run the viewer until the operator quits."""
    DataViewer(db, console).run()
