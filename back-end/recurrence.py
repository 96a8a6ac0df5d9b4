"""
Recurrence rules for repeating tasks.

Everything here is pure: the caller passes "today" in when a rule depends on
it, so the same inputs always give the same answer. Creating the next task
instance lives in recurring_tasks.py.
"""
import calendar
from dataclasses import dataclass, field
from datetime import date, timedelta

from errors import ValidationError
from models import RecurrencePattern, RecurrenceType, parse_date, now_utc

MAX_INTERVAL = 365
SOFT_INTERVAL_CAPS = {
    RecurrenceType.DAILY: (30, "Daily recurrence interval should not exceed 30 days"),
    RecurrenceType.WEEKLY: (52, "Weekly recurrence interval should not exceed 52 weeks"),
    RecurrenceType.MONTHLY: (12, "Monthly recurrence interval should not exceed 12 months"),
}
GENERATION_WINDOW_DAYS = 7
DAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


@dataclass
class PatternValidation:
    valid: bool
    errors: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    def to_dict(self):
        return {"valid": self.valid, "errors": self.errors, "warnings": self.warnings}


def _coerce(pattern):
    """Return a RecurrencePattern, or None when the type is not one we know."""
    if isinstance(pattern, RecurrencePattern):
        return pattern
    try:
        return RecurrencePattern.from_dict(pattern)
    except ValidationError:
        return None


def _sunday_index(d: date) -> int:
    # date.weekday() is Monday=0; patterns use Sunday=0
    return (d.weekday() + 1) % 7


def add_months(d: date, months: int) -> date:
    """Calendar month addition, clamping to the last day of the target month."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return d.replace(year=year, month=month, day=day)


def validate_pattern(pattern, today: date | None = None) -> PatternValidation:
    """
    Check a recurrence pattern before it is stored.

    ``errors`` lists every problem found, in the order they are checked.
    The per-type interval caps are advisory: they appear in ``errors`` and
    ``warnings`` but do not make the pattern invalid.
    """
    today = today or now_utc().date()
    if isinstance(pattern, RecurrencePattern):
        p = pattern
    else:
        try:
            p = RecurrencePattern.from_dict(pattern)
        except ValidationError as e:
            return PatternValidation(False, [e.message], [])

    errors, warnings = [], []

    if p.interval < 1:
        errors.append("Interval must be at least 1")
    if p.interval > MAX_INTERVAL:
        errors.append(f"Interval cannot exceed {MAX_INTERVAL}")

    cap, message = SOFT_INTERVAL_CAPS[p.type]
    if p.interval > cap:
        warnings.append(message)

    if p.type == RecurrenceType.WEEKLY:
        if not p.days_of_week:
            errors.append("At least one day of the week must be selected for weekly recurrence")
        elif any(d < 0 or d > 6 for d in p.days_of_week):
            errors.append("Invalid days of week selected")

    if p.end_date and p.end_date <= today:
        errors.append("End date must be in the future")

    return PatternValidation(valid=not errors, errors=errors + warnings, warnings=warnings)


def next_occurrence(last_due_date, pattern) -> date | None:
    """Compute the due date that follows ``last_due_date``.

    Weekly patterns with days set pick the next configured weekday later in
    the same week; past the last one they jump ``interval`` weeks ahead and
    land on the first configured day of that week.
    """
    p = _coerce(pattern)
    last = parse_date(last_due_date)
    if p is None or last is None:
        return None

    try:
        if p.type == RecurrenceType.DAILY:
            nxt = last + timedelta(days=p.interval)
        elif p.type == RecurrenceType.WEEKLY:
            days = sorted(d for d in p.days_of_week if 0 <= d <= 6)
            if days:
                current = _sunday_index(last)
                later = [d for d in days if d > current]
                if later:
                    nxt = last + timedelta(days=later[0] - current)
                else:
                    nxt = last + timedelta(days=7 * p.interval - current + days[0])
            else:
                nxt = last + timedelta(weeks=p.interval)
        elif p.type == RecurrenceType.MONTHLY:
            nxt = add_months(last, p.interval)
        else:
            return None
    except (OverflowError, ValueError):
        raise ValidationError("Next due date is out of range")

    if p.end_date and nxt > p.end_date:
        return None
    return nxt


def should_generate(last_due_date, pattern, existing_future_due_dates, today: date | None = None) -> bool:
    nxt = next_occurrence(last_due_date, pattern)
    if nxt is None:
        return False
    today = today or now_utc().date()
    if (nxt - today).days > GENERATION_WINDOW_DAYS:
        return False
    taken = {d.isoformat() for d in (parse_date(x) for x in existing_future_due_dates) if d}
    return nxt.isoformat() not in taken


def describe_pattern(pattern) -> str:
    p = _coerce(pattern)
    if p is None:
        return ""

    if p.type == RecurrenceType.DAILY:
        text = "Every day" if p.interval == 1 else f"Every {p.interval} days"
    elif p.type == RecurrenceType.WEEKLY:
        if p.interval == 1:
            if p.days_of_week:
                names = ", ".join(DAY_NAMES[d] for d in p.days_of_week if 0 <= d <= 6)
                text = f"Weekly on {names}"
            else:
                text = "Every week"
        else:
            text = f"Every {p.interval} weeks"
    else:
        text = "Every month" if p.interval == 1 else f"Every {p.interval} months"

    if p.end_date:
        text += f" until {p.end_date.strftime('%b %d, %Y')}"
    return text
