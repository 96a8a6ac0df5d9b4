# back-end/models.py
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
import re

from errors import ValidationError

INVITATION_TTL = timedelta(days=7)
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class Priority(str, Enum):
  LOW = "low"
  MEDIUM = "medium"
  HIGH = "high"

  @property
  def rank(self) -> int:
    return {"low": 1, "medium": 2, "high": 3}[self.value]


class TaskStatus(str, Enum):
  PENDING = "pending"
  COMPLETED = "completed"


class SharePermission(str, Enum):
  VIEW = "view"
  EDIT = "edit"


class Permission(str, Enum):
  OWNER = "owner"
  EDIT = "edit"
  VIEW = "view"
  NONE = "none"


class InvitationStatus(str, Enum):
  PENDING = "pending"
  ACCEPTED = "accepted"
  DECLINED = "declined"
  EXPIRED = "expired"


class RecurrenceType(str, Enum):
  DAILY = "daily"
  WEEKLY = "weekly"
  MONTHLY = "monthly"


def now_utc():
  return datetime.now(timezone.utc)


def _canon_enum(enum_cls, value, field_name, default=None):
  if value is None or (isinstance(value, str) and not value.strip()):
    if default is not None: return default
    raise ValidationError(f"{field_name} is required")
  if isinstance(value, enum_cls): return value
  try:
    return enum_cls(str(value).strip().lower())
  except ValueError:
    allowed = ", ".join(m.value for m in enum_cls)
    raise ValidationError(f"Invalid {field_name}. Must be one of: {allowed}")


def canon_priority(p) -> Priority:
  return _canon_enum(Priority, p, "priority", default=Priority.MEDIUM)


def canon_status(s) -> TaskStatus:
  return _canon_enum(TaskStatus, s, "status", default=TaskStatus.PENDING)


def canon_share_permission(p) -> SharePermission:
  return _canon_enum(SharePermission, p, "permission")


def canon_email(email) -> str:
  v = (email or "").strip().lower()
  if not EMAIL_RE.match(v):
    raise ValidationError("A valid email address is required")
  return v


def parse_date(value):
  """Coerce a stored or submitted date into a ``date``.

  Accepts ``date``/``datetime`` objects, Firestore timestamps and ISO strings
  (``2024-01-31`` or a full ISO datetime, ``Z`` suffix allowed). Returns None
  for empty values.
  """
  if value is None or value == "":
    return None
  if isinstance(value, datetime):
    return value.date()
  if isinstance(value, date):
    return value
  if hasattr(value, "seconds"):
    return datetime.fromtimestamp(value.seconds, tz=timezone.utc).date()
  s = str(value).strip()
  try:
    if len(s) == 10:
      return date.fromisoformat(s)
    return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
  except ValueError:
    raise ValidationError(f"Invalid date: {value}")


def parse_datetime(value):
  if value is None or value == "":
    return None
  if isinstance(value, datetime):
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
  if isinstance(value, date):
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
  s = str(value).strip()
  if len(s) == 10:
    d = parse_date(s)
    return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)
  try:
    dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
  except ValueError:
    raise ValidationError(f"Invalid datetime: {value}")
  return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def format_date(d) -> str | None:
  return d.isoformat() if d else None


@dataclass(frozen=True)
class RecurrencePattern:
  type: RecurrenceType
  interval: int = 1
  days_of_week: tuple = field(default_factory=tuple)
  end_date: date | None = None

  @classmethod
  def from_dict(cls, data) -> "RecurrencePattern":
    if isinstance(data, RecurrencePattern):
      return data
    if not isinstance(data, dict):
      raise ValidationError("recurrencePattern must be an object")
    rtype = _canon_enum(RecurrenceType, data.get("type"), "recurrence type")
    interval = data.get("interval", 1)
    if isinstance(interval, float) and interval.is_integer():
      interval = int(interval)
    if isinstance(interval, bool) or not isinstance(interval, (int, str)):
      raise ValidationError("Interval must be a whole number")
    try:
      interval = int(interval)
    except ValueError:
      raise ValidationError("Interval must be a whole number")
    days = data.get("daysOfWeek")
    if days is None:
      days = []
    if not isinstance(days, (list, tuple)) or any(isinstance(d, bool) or not isinstance(d, int) for d in days):
      raise ValidationError("daysOfWeek must be a list of integers 0-6")
    days = tuple(sorted(set(days)))
    return cls(
      type=rtype,
      interval=interval,
      days_of_week=days,
      end_date=parse_date(data.get("endDate")),
    )

  def to_dict(self) -> dict:
    d = {"type": self.type.value, "interval": self.interval}
    if self.days_of_week: d["daysOfWeek"] = list(self.days_of_week)
    if self.end_date: d["endDate"] = self.end_date.isoformat()
    return d
