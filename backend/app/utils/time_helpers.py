from datetime import datetime, time


def string_to_time(time_str: str) -> time:
    """Parse 'HH:MM' (or 'HH:MM:SS') wall-clock strings; raises ValueError otherwise."""
    normalized = (time_str or "").strip()
    if len(normalized) == 5:
        normalized += ":00"
    return datetime.strptime(normalized, "%H:%M:%S").time()
