#!/usr/bin/env python3
"""tracklog TUI: live category timers, sleep toggle and today's habits, powered by Textual."""

from __future__ import annotations

import sys

from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import DataTable, Footer, Header, Input, Label, Static

from tracker import CategoryKind, TrackerService, setup_logging, workspace_root

CSS = """
#main-layout { height: 1fr; }
#timers-pane { width: 2fr; padding: 0 1; }
#side-pane { width: 1fr; padding: 0 1; border-left: solid $primary-background; }
.section-title { text-style: bold; margin: 1 0 0 0; }
#new-category { margin: 1 0 0 0; }
"""


def _fmt(minutes: float) -> str:
    seconds = int(minutes * 60)
    return f"{seconds // 3600:d}:{seconds % 3600 // 60:02d}:{seconds % 60:02d}"


class TracklogApp(App):
    """tracklog: interactive time tracker."""

    TITLE = "tracklog"
    CSS = CSS

    BINDINGS = [
        Binding("space", "toggle_timer", "Start/Stop"),
        Binding("x", "stop_all", "Stop all"),
        Binding("s", "toggle_sleep", "Sleep/Wake"),
        Binding("h", "toggle_habit", "Tick habit"),
        Binding("delete", "delete_category", "Delete"),
        Binding("q", "quit_app", "Quit"),
    ]

    def __init__(self, service: TrackerService) -> None:
        super().__init__()
        self.service = service
        self._row_ids: list[str] = []
        self._habit_index = 0

    def compose(self) -> ComposeResult:
        yield Header()
        yield Horizontal(
            Vertical(
                Label("Timers", classes="section-title"),
                DataTable(id="timers", cursor_type="row"),
                Input(placeholder="New category (prefix 'sports:' for sports)", id="new-category"),
                id="timers-pane",
            ),
            Vertical(
                Label("Sleep", classes="section-title"),
                Static(id="sleep-info"),
                Label("Habits today", classes="section-title"),
                Static(id="habit-info"),
                Static(id="message"),
                id="side-pane",
            ),
            id="main-layout",
        )
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#timers", DataTable)
        table.add_columns("", "Category", "Kind", "Today", "Week", "Total")
        self._rebuild_table()
        self._refresh()
        self.set_interval(1.0, self._refresh)

    # ── Rendering ─────────────────────────────────────────────

    def _rebuild_table(self) -> None:
        table = self.query_one("#timers", DataTable)
        table.clear()
        self._row_ids = []
        for category in self.service.categories():
            table.add_row("", category.name, category.kind.value, "", "", "", key=category.id)
            self._row_ids.append(category.id)

    def _refresh(self) -> None:
        """Redraw live values; runs once a second while the app is open."""
        table = self.query_one("#timers", DataTable)
        columns = list(table.columns)
        for category_id in self._row_ids:
            category = self.service.category(category_id)
            if category is None:
                continue
            ct = self.service.current_time(category_id)
            values = ["●" if category.is_running else "", category.name, category.kind.value,
                      _fmt(ct.today), _fmt(ct.week), _fmt(ct.total)]
            for column, value in zip(columns, values):
                table.update_cell(category_id, column, value)

        sleep_state = self.service.data.sleep
        stats = self.service.sleep_statistics()
        if sleep_state.is_sleeping and sleep_state.sleep_start_time is not None:
            status = f"Asleep since {sleep_state.sleep_start_time.strftime('%H:%M')}"
        else:
            status = f"Awake. Slept {self.service.sleep_minutes_today() / 60:.1f}h today"
        remaining = self.service.wind_down_remaining_minutes()
        lines = [
            status,
            f"Average {stats.avg_duration_hours:.1f}h, consistency {stats.consistency_score:.0f}/100",
        ]
        if remaining is not None:
            lines.append(f"Wind-down in {remaining} min")
        self.query_one("#sleep-info", Static).update("\n".join(lines))

        habit_lines = []
        now = self.service.now()
        for i, habit in enumerate(self.service.habits()):
            entry = self.service.habit_entry(habit.id, now)
            mark = "[x]" if entry is not None and entry.completed else "[ ]"
            cursor = ">" if i == self._habit_index else " "
            streak = self.service.habit_stats(habit.id).current_streak
            habit_lines.append(f"{cursor} {mark} {habit.name}  (streak {streak})")
        self.query_one("#habit-info", Static).update("\n".join(habit_lines) or "(no habits yet)")

    def _say(self, message: str | None) -> None:
        self.query_one("#message", Static).update(message or "")

    def _selected_id(self) -> str | None:
        table = self.query_one("#timers", DataTable)
        if not self._row_ids or table.cursor_row is None:
            return None
        if not 0 <= table.cursor_row < len(self._row_ids):
            return None
        return self._row_ids[table.cursor_row]

    # ── Actions ───────────────────────────────────────────────

    @on(Input.Submitted, "#new-category")
    def _on_new_category(self, event: Input.Submitted) -> None:
        text = event.value.strip()
        kind = CategoryKind.WORK
        if text.lower().startswith("sports:"):
            kind = CategoryKind.SPORTS
            text = text[len("sports:"):]
        try:
            self.service.add_category(text, kind)
        except ValueError as e:
            self._say(str(e))
            return
        event.input.value = ""
        self._rebuild_table()
        self._refresh()

    def action_toggle_timer(self) -> None:
        category_id = self._selected_id()
        if category_id is not None:
            self.service.toggle_timer(category_id)
            self._refresh()

    def action_stop_all(self) -> None:
        stopped = self.service.stop_all_timers()
        self._say(f"Stopped {len(stopped)} timer(s)" if stopped else "Nothing running")
        self._refresh()

    def action_delete_category(self) -> None:
        category_id = self._selected_id()
        if category_id is not None:
            self.service.delete_category(category_id)
            self._rebuild_table()
            self._refresh()

    def action_toggle_sleep(self) -> None:
        result = self.service.toggle_sleep()
        self._say(result.get("message"))
        self._refresh()

    def action_toggle_habit(self) -> None:
        habits = self.service.habits()
        if not habits:
            return
        self._habit_index %= len(habits)
        self.service.toggle_habit_entry(habits[self._habit_index].id)
        self._habit_index = (self._habit_index + 1) % len(habits)
        self._refresh()

    def action_quit_app(self) -> None:
        # Leaving the app stops whatever is running so the segment gets booked.
        self.service.stop_all_timers()
        self.exit()


# ── Entry point ────────────────────────────────────────────────


def main() -> None:
    setup_logging()
    root = workspace_root()
    if not root.exists():
        print(f"Workspace not found: {root}")
        print("Set TRACKLOG_ROOT or create the directory first.")
        sys.exit(1)

    app = TracklogApp(TrackerService.open(root))
    app.run()


if __name__ == "__main__":
    main()
