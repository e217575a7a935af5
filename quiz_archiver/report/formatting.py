"""Human readable formatting of durations, dates and grades used in reports."""

from datetime import datetime, tzinfo

_TIME_UNITS = (
    (365 * 24 * 3600, "year", "years"),
    (24 * 3600, "day", "days"),
    (3600, "hour", "hours"),
    (60, "min", "mins"),
    (1, "sec", "secs"),
)

DATETIME_FORMAT = "%A, %d %B %Y, %I:%M %p"


def format_time(seconds: int) -> str:
    """Format a duration using its two most significant units, e.g. ``1 hour 5 mins``."""
    remaining = abs(int(seconds))
    parts: list[tuple[int, str, str]] = []
    for unit_seconds, singular, plural in _TIME_UNITS:
        amount, remaining = divmod(remaining, unit_seconds)
        parts.append((amount, singular, plural))

    for index, (amount, _singular, _plural) in enumerate(parts):
        if amount:
            shown = [_format_unit(*parts[index])]
            if index + 1 < len(parts) and parts[index + 1][0]:
                shown.append(_format_unit(*parts[index + 1]))
            return " ".join(shown)
    return "now"


def _format_unit(amount: int, singular: str, plural: str) -> str:
    return f"{amount} {singular if amount == 1 else plural}"


def userdate(timestamp: int, tz: tzinfo) -> str:
    return datetime.fromtimestamp(timestamp, tz=tz).strftime(DATETIME_FORMAT)


def format_float(value: float, decimals: int) -> str:
    return f"{value:.{max(decimals, 0)}f}"


def rescale_grade(rawgrade: float | None, quiz_grade: float, quiz_sumgrades: float) -> float | None:
    """Convert the raw sum of marks of an attempt into the quiz grade scale."""
    if rawgrade is None:
        return None
    if quiz_sumgrades >= 0.000005:
        return rawgrade * quiz_grade / quiz_sumgrades
    return 0.0


def has_grades(quiz_grade: float, quiz_sumgrades: float) -> bool:
    return quiz_grade >= 0.000005 and quiz_sumgrades >= 0.000005
