import os
import datetime


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def now_utc() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def to_iso(dt: datetime.datetime) -> str:
    return dt.astimezone(datetime.timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: str) -> datetime.datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing ``Z``. Naive values are read as UTC."""
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    dt = datetime.datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return dt


def split_duration_ms(ms: float) -> tuple[int, int, int]:
    ms = max(0, int(ms))
    days, rest = divmod(ms, 24 * 60 * 60 * 1000)
    hours, rest = divmod(rest, 60 * 60 * 1000)
    minutes = rest // (60 * 1000)
    return days, hours, minutes


def format_countdown(parts: tuple[int, int, int] | None) -> str:
    if parts is None:
        return "-"
    days, hours, minutes = parts
    if days:
        return f"{days}d {hours:02d}h"
    return f"{hours:02d}h {minutes:02d}m"


def format_category_name(category_id: str) -> str:
    return " ".join(w[:1].upper() + w[1:].lower() for w in category_id.split("-") if w)
