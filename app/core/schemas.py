from datetime import datetime, time
from typing import Union

DAY_NAMES = {
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
    7: "Sunday",
}


def parse_time_24(v: Union[str, time]) -> time:
    """Parse 24-hour time string (HH:MM or HH:MM:SS) to time."""
    if isinstance(v, time):
        return v
    if isinstance(v, str):
        v = v.strip()
        try:
            if len(v) <= 5:  # HH:MM or H:MM
                return datetime.strptime(v, "%H:%M").time()
            return datetime.strptime(v, "%H:%M:%S").time()
        except ValueError:
            raise ValueError("Invalid time format (HH:MM)")
    raise ValueError("start_time/end_time must be 24-hour string (e.g. 09:00, 09:45) or time")


def format_time_24(t: time) -> str:
    """Output as 24-hour string HH:MM (e.g. 09:00, 09:45)."""
    return t.strftime("%H:%M")


def describe_window(day_of_week: int, start: time, end: time) -> str:
    """Human-readable window, e.g. 'Monday 08:00-08:50'."""
    return f"{DAY_NAMES.get(day_of_week, day_of_week)} {format_time_24(start)}-{format_time_24(end)}"
