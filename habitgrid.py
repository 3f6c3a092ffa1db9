#!/usr/bin/env python3
import argparse
import json
import logging
import os
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, date, timedelta
from enum import Enum
from typing import List, Dict, Any, Optional, Iterable, Iterator, Tuple, Union

logger = logging.getLogger(__name__)

DEFAULT_DATA_PATH = "~/.habitgrid.json"
HABITS_KEY = "habits"
SETTINGS_KEY = "settings"
COMPLETIONS_KEY = "completions"

GRID_DAYS = 84
DEFAULT_NAME = "My habit"
DEFAULT_WEEKLY_TARGET = 3
DEFAULT_MONTHLY_TARGET = 12
DEFAULT_CUSTOM_DAYS = (1, 2, 3)
DEFAULT_WEEK_START = "sun"

STATUS_DONE = "done"
STATUS_PENDING = "pending"

# Weekday indices count from Sunday: 0=sun .. 6=sat.
WEEKDAY_LABELS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")

MARK_DONE = "✓"
MARK_OPEN = "·"
MARK_OFF = "-"
MARK_TODAY_DONE = "●"
MARK_TODAY_OPEN = "○"


class GoalType(Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


@dataclass(frozen=True)
class DailyGoal:
    pass


@dataclass(frozen=True)
class WeeklyGoal:
    target: int


@dataclass(frozen=True)
class MonthlyGoal:
    target: int


@dataclass(frozen=True)
class CustomGoal:
    days: Tuple[int, ...]


Goal = Union[DailyGoal, WeeklyGoal, MonthlyGoal, CustomGoal]


@dataclass(frozen=True)
class HabitSettings:
    """Goal configuration as collected from input and persisted.

    Every target field is kept regardless of ``goal_type``; only the one that
    matches the goal type is read, through :attr:`goal`.
    """

    name: str = DEFAULT_NAME
    goal_type: GoalType = GoalType.DAILY
    weekly_target: int = DEFAULT_WEEKLY_TARGET
    monthly_target: int = DEFAULT_MONTHLY_TARGET
    custom_days: Tuple[int, ...] = DEFAULT_CUSTOM_DAYS

    @property
    def goal(self) -> Goal:
        if self.goal_type is GoalType.WEEKLY:
            return WeeklyGoal(self.weekly_target)
        if self.goal_type is GoalType.MONTHLY:
            return MonthlyGoal(self.monthly_target)
        if self.goal_type is GoalType.CUSTOM:
            return CustomGoal(self.custom_days)
        return DailyGoal()


@dataclass
class Habit:
    id: str
    settings: HabitSettings
    completions: Dict[str, bool] = field(default_factory=dict)


@dataclass(frozen=True)
class ProgressSummary:
    today_status: str
    done: int
    total: int

    @property
    def label(self) -> str:
        return f"{self.done}/{self.total}"

    @property
    def percent(self) -> Optional[int]:
        if self.total <= 0:
            return None
        return min(int(self.done * 100 // self.total), 100)


@dataclass(frozen=True)
class DayCell:
    day: date
    key: str
    done: bool
    is_target: bool
    is_today: bool


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of calendar days, iterated one day at a time."""

    start: date
    end: date

    @classmethod
    def ending(cls, end: date, days: int) -> "DateRange":
        return cls(end - timedelta(days=days - 1), end)

    def __iter__(self) -> Iterator[date]:
        for offset in range(len(self)):
            yield self.start + timedelta(days=offset)

    def __len__(self) -> int:
        return max((self.end - self.start).days + 1, 0)

    def __contains__(self, day: object) -> bool:
        return isinstance(day, date) and self.start <= day <= self.end


def _today_local() -> date:
    return datetime.now().date()


def _parse_date(value: str) -> date:
    return datetime.strptime(value, "%Y-%m-%d").date()


def _format_date(value: date) -> str:
    return value.isoformat()


def weekday_index(day: date) -> int:
    return (day.weekday() + 1) % 7


def _weekday_from_label(label: str) -> Optional[int]:
    options = {
        "sun": 0,
        "mon": 1,
        "tue": 2,
        "wed": 3,
        "thu": 4,
        "fri": 5,
        "sat": 6,
    }
    return options.get(label.strip().lower()[:3])


def week_start_of(day: date, week_start: str = DEFAULT_WEEK_START) -> date:
    start_idx = _weekday_from_label(week_start)
    if start_idx is None:
        start_idx = 0
    delta = (weekday_index(day) - start_idx) % 7
    return day - timedelta(days=delta)


def month_start_of(day: date) -> date:
    return day.replace(day=1)


def _is_done(completions: Dict[str, bool], day: date) -> bool:
    return bool(completions.get(_format_date(day)))


def _count_done(completions: Dict[str, bool], days: Iterable[date]) -> int:
    return sum(1 for day in days if _is_done(completions, day))


def is_target_date(day: date, goal: Goal) -> bool:
    if isinstance(goal, CustomGoal):
        return weekday_index(day) in goal.days
    return True


def describe_goal(goal: Goal) -> str:
    if isinstance(goal, WeeklyGoal):
        return f"Weekly goal: {goal.target} days per week."
    if isinstance(goal, MonthlyGoal):
        return f"Monthly goal: {goal.target} days per month."
    if isinstance(goal, CustomGoal):
        labels = ", ".join(WEEKDAY_LABELS[day].title() for day in goal.days)
        return f"Specific days: {labels}."
    return "Daily goal: check in every day."


def calculate_progress(
    goal: Goal,
    completions: Dict[str, bool],
    today: date,
    week_start: str = DEFAULT_WEEK_START,
) -> ProgressSummary:
    """Summarize today's status and the progress of the current period.

    Weekly and monthly totals are the declared targets. A custom goal's total
    is the number of its weekdays that have occurred since the week started,
    so it is 0 on days before the first scheduled weekday of a week.
    """
    today_done = _is_done(completions, today)
    status = STATUS_DONE if today_done else STATUS_PENDING

    if isinstance(goal, WeeklyGoal):
        window = DateRange(week_start_of(today, week_start), today)
        return ProgressSummary(status, _count_done(completions, window), goal.target)

    if isinstance(goal, MonthlyGoal):
        window = DateRange(month_start_of(today), today)
        return ProgressSummary(status, _count_done(completions, window), goal.target)

    if isinstance(goal, CustomGoal):
        window = DateRange(week_start_of(today, week_start), today)
        target_days = [day for day in window if is_target_date(day, goal)]
        return ProgressSummary(status, _count_done(completions, target_days), len(target_days))

    return ProgressSummary(status, 1 if today_done else 0, 1)


def grid_cells(
    goal: Goal,
    completions: Dict[str, bool],
    today: date,
    window_size: int = GRID_DAYS,
) -> List[DayCell]:
    if window_size < 1:
        raise ValueError("window size must be at least 1")
    return [
        DayCell(
            day=day,
            key=_format_date(day),
            done=_is_done(completions, day),
            is_target=is_target_date(day, goal),
            is_today=day == today,
        )
        for day in DateRange.ending(today, window_size)
    ]


def build_grid(
    goal: Goal,
    completions: Dict[str, bool],
    today: date,
    window_size: int = GRID_DAYS,
) -> List[List[DayCell]]:
    """Return the last ``window_size`` days, oldest first, in 7-day columns.

    The final column is shorter when ``window_size`` is not a multiple of 7.
    """
    cells = grid_cells(goal, completions, today, window_size)
    return [cells[idx : idx + 7] for idx in range(0, len(cells), 7)]


def toggle_completion(habit: Habit, day: date) -> bool:
    if not is_target_date(day, habit.settings.goal):
        return False
    key = _format_date(day)
    habit.completions[key] = not habit.completions.get(key, False)
    return True


def _positive_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def _normalize_days(values: Any) -> Tuple[int, ...]:
    if not isinstance(values, (list, tuple)):
        return DEFAULT_CUSTOM_DAYS
    days: List[int] = []
    for value in values:
        if isinstance(value, str):
            text = value.strip()
            day = int(text) if text.isdecimal() else _weekday_from_label(text)
        elif isinstance(value, int) and not isinstance(value, bool):
            day = value
        else:
            day = None
        if day is None or not 0 <= day <= 6 or day in days:
            continue
        days.append(day)
    return tuple(days) if days else DEFAULT_CUSTOM_DAYS


def settings_from_input(
    name: Any = None,
    goal_type: Any = None,
    weekly_target: Any = None,
    monthly_target: Any = None,
    custom_days: Any = None,
) -> HabitSettings:
    """Build settings from raw input, replacing anything unusable with defaults."""
    clean_name = name.strip() if isinstance(name, str) else ""
    try:
        clean_goal = GoalType(goal_type)
    except ValueError:
        clean_goal = GoalType.DAILY
    return HabitSettings(
        name=clean_name or DEFAULT_NAME,
        goal_type=clean_goal,
        weekly_target=_positive_int(weekly_target, DEFAULT_WEEKLY_TARGET),
        monthly_target=_positive_int(monthly_target, DEFAULT_MONTHLY_TARGET),
        custom_days=_normalize_days(custom_days),
    )


def default_settings() -> HabitSettings:
    return HabitSettings()


def _new_habit_id() -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}"


def create_habit(settings: HabitSettings) -> Habit:
    return Habit(id=_new_habit_id(), settings=settings, completions={})


class JsonFileStore:
    """Key-value store kept as a single JSON object on disk.

    Reads never raise: a missing, unreadable or malformed file behaves like an
    empty store. Write errors propagate.
    """

    def __init__(self, path: str) -> None:
        self.path = path

    def _read(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            return {}
        return data if isinstance(data, dict) else {}

    def load(self, key: str) -> Optional[Any]:
        return self._read().get(key)

    def save(self, key: str, blob: Any) -> None:
        data = self._read()
        data[key] = blob
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
        logger.debug("Saved %r to %s", key, self.path)


def _settings_to_dict(settings: HabitSettings) -> Dict[str, Any]:
    return {
        "name": settings.name,
        "goal": settings.goal_type.value,
        "weeklyTarget": settings.weekly_target,
        "monthlyTarget": settings.monthly_target,
        "customDays": list(settings.custom_days),
    }


def _settings_from_dict(raw: Dict[str, Any]) -> HabitSettings:
    return settings_from_input(
        raw.get("name"),
        raw.get("goal"),
        raw.get("weeklyTarget"),
        raw.get("monthlyTarget"),
        raw.get("customDays"),
    )


def _normalize_completions(raw: Any) -> Dict[str, bool]:
    if not isinstance(raw, dict):
        return {}
    # Only true and non-zero numbers count as done; strings like "false" do not.
    return {
        key: isinstance(value, int) and bool(value)
        for key, value in raw.items()
        if isinstance(key, str)
    }


def _habit_to_dict(habit: Habit) -> Dict[str, Any]:
    payload = {"id": habit.id}
    payload.update(_settings_to_dict(habit.settings))
    payload["completions"] = dict(habit.completions)
    return payload


def _habit_from_dict(raw: Dict[str, Any]) -> Habit:
    raw_id = raw.get("id")
    habit_id = str(raw_id) if isinstance(raw_id, (str, int)) and str(raw_id) else _new_habit_id()
    return Habit(
        id=habit_id,
        settings=_settings_from_dict(raw),
        completions=_normalize_completions(raw.get("completions")),
    )


def load_habits(store: JsonFileStore) -> List[Habit]:
    raw = store.load(HABITS_KEY)
    if not isinstance(raw, list):
        return [create_habit(default_settings())]
    return [_habit_from_dict(item) for item in raw if isinstance(item, dict)]


def save_habits(store: JsonFileStore, habits: List[Habit]) -> None:
    store.save(HABITS_KEY, [_habit_to_dict(habit) for habit in habits])


def load_settings(store: JsonFileStore) -> HabitSettings:
    raw = store.load(SETTINGS_KEY)
    if not isinstance(raw, dict):
        return default_settings()
    return _settings_from_dict(raw)


def save_settings(store: JsonFileStore, settings: HabitSettings) -> None:
    store.save(SETTINGS_KEY, _settings_to_dict(settings))


def load_completions(store: JsonFileStore) -> Dict[str, bool]:
    return _normalize_completions(store.load(COMPLETIONS_KEY))


def save_completions(store: JsonFileStore, completions: Dict[str, bool]) -> None:
    store.save(COMPLETIONS_KEY, dict(completions))


@dataclass
class AppState:
    store: JsonFileStore
    habits: List[Habit]
    week_start: str = DEFAULT_WEEK_START


@dataclass(frozen=True)
class HabitView:
    habit: Habit
    goal_text: str
    summary: ProgressSummary
    columns: List[List[DayCell]]


def load_state(store: JsonFileStore, week_start: str = DEFAULT_WEEK_START) -> AppState:
    """Load the habit list, writing it back whenever a habit had to be made up.

    A store holding only the single-habit roots becomes a one-habit list; a
    missing or malformed list becomes the default habit. Either way the new
    habit is saved at once so its id stays the same on the next load.
    """
    raw = store.load(HABITS_KEY)
    if isinstance(raw, list):
        return AppState(store=store, habits=load_habits(store), week_start=week_start)
    if raw is None and isinstance(store.load(SETTINGS_KEY), dict):
        habit = create_habit(load_settings(store))
        habit.completions = load_completions(store)
        habits = [habit]
    else:
        habits = [create_habit(default_settings())]
    save_habits(store, habits)
    logger.debug("Stored initial habit %s", habits[0].id)
    return AppState(store=store, habits=habits, week_start=week_start)


def find_habit(state: AppState, ref: str) -> Optional[Habit]:
    """Look a habit up by id, or by its 1-based position in the list."""
    for habit in state.habits:
        if habit.id == ref:
            return habit
    if ref.isdecimal() and 1 <= int(ref) <= len(state.habits):
        return state.habits[int(ref) - 1]
    return None


def add_habit(state: AppState, settings: HabitSettings) -> Habit:
    habit = create_habit(settings)
    state.habits.append(habit)
    save_habits(state.store, state.habits)
    logger.debug("Created habit %s (%s)", habit.id, settings.goal_type.value)
    return habit


def toggle_day(state: AppState, habit: Habit, day: date) -> bool:
    """Flip one day and persist it; non-target days are left alone.

    After a True return both the summary and the grid are stale and must be
    rebuilt, e.g. with :func:`habit_view`.
    """
    if not toggle_completion(habit, day):
        logger.debug("Ignored toggle of %s on non-target day %s", habit.id, _format_date(day))
        return False
    save_habits(state.store, state.habits)
    logger.debug(
        "Toggled %s on %s -> %s", habit.id, _format_date(day), habit.completions[_format_date(day)]
    )
    return True


def habit_view(
    habit: Habit,
    today: date,
    week_start: str = DEFAULT_WEEK_START,
    window_size: int = GRID_DAYS,
) -> HabitView:
    goal = habit.settings.goal
    return HabitView(
        habit=habit,
        goal_text=describe_goal(goal),
        summary=calculate_progress(goal, habit.completions, today, week_start),
        columns=build_grid(goal, habit.completions, today, window_size),
    )


def _data_path() -> str:
    return os.path.expanduser(os.environ.get("HABITGRID_DATA") or DEFAULT_DATA_PATH)


def _default_week_start() -> str:
    value = (os.environ.get("HABITGRID_WEEK_START") or DEFAULT_WEEK_START).strip().lower()
    return value if value in WEEKDAY_LABELS else DEFAULT_WEEK_START


def _progress_bar(percent: Optional[int], length: int = 12) -> str:
    if percent is None:
        return "-"
    filled = length * percent // 100
    return "█" * filled + "░" * (length - filled) + f" {percent}%"


def _cell_mark(cell: DayCell) -> str:
    if cell.is_today:
        return MARK_TODAY_DONE if cell.done else MARK_TODAY_OPEN
    if cell.done:
        return MARK_DONE
    return MARK_OPEN if cell.is_target else MARK_OFF


def render_grid(columns: List[List[DayCell]]) -> List[str]:
    """Lay week columns out left to right, one text row per weekday slot."""
    if not columns:
        return []
    lines = []
    for row in range(len(columns[0])):
        label = WEEKDAY_LABELS[weekday_index(columns[0][row].day)].title()
        marks = " ".join(_cell_mark(column[row]) if row < len(column) else " " for column in columns)
        lines.append(f"{label} {marks}".rstrip())
    return lines


def _summary_line(summary: ProgressSummary) -> str:
    return (
        f"today: {summary.today_status} | "
        f"progress: {summary.label} {_progress_bar(summary.percent)}"
    )


def _print_view(view: HabitView, position: int, show_grid: bool) -> None:
    print(f"{position:>3} {view.habit.settings.name} [{view.habit.id}]")
    print(f"    {view.goal_text}")
    print(f"    {_summary_line(view.summary)}")
    if not show_grid:
        return
    first = view.columns[0][0].key
    last = view.columns[-1][-1].key
    print(f"    {first} → {last}")
    for line in render_grid(view.columns):
        print(f"    {line}")
    print(
        f"    {MARK_DONE} done  {MARK_OPEN} open  {MARK_OFF} not scheduled  "
        f"{MARK_TODAY_OPEN}/{MARK_TODAY_DONE} today"
    )


def _resolve_today(args: argparse.Namespace) -> Optional[date]:
    if getattr(args, "date", None) is None:
        return _today_local()
    try:
        return _parse_date(args.date)
    except ValueError:
        print(f"Invalid date '{args.date}'. Use YYYY-MM-DD.")
        return None


def _state_from_args(args: argparse.Namespace) -> AppState:
    store = JsonFileStore(os.path.expanduser(args.data) if args.data else _data_path())
    week_start = getattr(args, "week_start", None) or _default_week_start()
    return load_state(store, week_start)


def cmd_add(args: argparse.Namespace) -> None:
    state = _state_from_args(args)
    custom_days = args.on.split(",") if args.on else None
    settings = settings_from_input(
        args.name, args.goal, args.weekly_target, args.monthly_target, custom_days
    )
    habit = add_habit(state, settings)
    print(f"Added habit #{len(state.habits)}: {settings.name} ({describe_goal(settings.goal)})")
    print(f"    id: {habit.id}")


def cmd_list(args: argparse.Namespace) -> None:
    today = _resolve_today(args)
    if today is None:
        return
    state = _state_from_args(args)
    if not state.habits:
        print("No habits yet.")
        return
    for position, habit in enumerate(state.habits, start=1):
        _print_view(habit_view(habit, today, state.week_start), position, show_grid=False)


def cmd_show(args: argparse.Namespace) -> None:
    today = _resolve_today(args)
    if today is None:
        return
    if args.days <= 0:
        print("Days must be at least 1.")
        return
    state = _state_from_args(args)
    habit = find_habit(state, args.habit)
    if not habit:
        print(f"Habit {args.habit} not found.")
        return
    view = habit_view(habit, today, state.week_start, args.days)
    _print_view(view, state.habits.index(habit) + 1, show_grid=True)


def cmd_toggle(args: argparse.Namespace) -> None:
    today = _resolve_today(args)
    if today is None:
        return
    state = _state_from_args(args)
    habit = find_habit(state, args.habit)
    if not habit:
        print(f"Habit {args.habit} not found.")
        return
    day = today
    if args.day:
        try:
            day = _parse_date(args.day)
        except ValueError:
            print(f"Invalid date '{args.day}'. Use YYYY-MM-DD.")
            return
    if not toggle_day(state, habit, day):
        label = WEEKDAY_LABELS[weekday_index(day)].title()
        print(f"{_format_date(day)} ({label}) is not a scheduled day for {habit.settings.name}.")
        return
    state_label = "done" if habit.completions[_format_date(day)] else "not done"
    print(f"Marked {habit.settings.name} {state_label} on {_format_date(day)}.")
    _print_view(habit_view(habit, today, state.week_start), state.habits.index(habit) + 1, show_grid=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Local habit tracker with goal progress and a day grid")
    parser.add_argument("--data", help="Path to the JSON data file")
    parser.add_argument("--verbose", action="store_true", help="Log debug details")
    sub = parser.add_subparsers(dest="command", required=True)
    week_starts = list(WEEKDAY_LABELS)

    add = sub.add_parser("add", help="Add a new habit")
    add.add_argument("name", nargs="?", default="", help="Habit name")
    add.add_argument("--goal", choices=[g.value for g in GoalType], default=GoalType.DAILY.value)
    add.add_argument("--weekly-target", type=int, default=DEFAULT_WEEKLY_TARGET, help="Days per week")
    add.add_argument("--monthly-target", type=int, default=DEFAULT_MONTHLY_TARGET, help="Days per month")
    add.add_argument("--on", help="Weekdays for a custom goal, e.g. mon,wed,fri or 1,3,5")
    add.set_defaults(func=cmd_add)

    list_cmd = sub.add_parser("list", help="List habits with today's status and progress")
    list_cmd.add_argument("--date", help="Override today (YYYY-MM-DD)")
    list_cmd.add_argument("--week-start", choices=week_starts)
    list_cmd.set_defaults(func=cmd_list)

    show = sub.add_parser("show", help="Show a habit's summary and day grid")
    show.add_argument("habit", help="Habit id or list position")
    show.add_argument("--days", type=int, default=GRID_DAYS, help="Number of days in the grid")
    show.add_argument("--date", help="Override today (YYYY-MM-DD)")
    show.add_argument("--week-start", choices=week_starts)
    show.set_defaults(func=cmd_show)

    toggle = sub.add_parser("toggle", help="Flip a day's completion for a habit")
    toggle.add_argument("habit", help="Habit id or list position")
    toggle.add_argument("day", nargs="?", help="Day to flip (YYYY-MM-DD), defaults to today")
    toggle.add_argument("--date", help="Override today (YYYY-MM-DD)")
    toggle.add_argument("--week-start", choices=week_starts)
    toggle.set_defaults(func=cmd_toggle)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    args.func(args)


if __name__ == "__main__":
    main()
