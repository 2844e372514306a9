from dataclasses import dataclass
from datetime import date

# Months of history the rolling available balance looks at. Anything older is
# treated as a zero starting balance, and the transaction window is sized to it.
LOOKBACK_MONTHS = 24


@dataclass(frozen=True, order=True)
class MonthRef:
    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError("Month must be between 1 and 12")

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def end(self) -> date:
        return month_end(self.year, self.month)

    def shift(self, months: int) -> "MonthRef":
        index = self.year * 12 + (self.month - 1) + months
        return MonthRef(index // 12, index % 12 + 1)

    def previous(self) -> "MonthRef":
        return self.shift(-1)

    def contains(self, day: date) -> bool:
        return day.year == self.year and day.month == self.month


def month_end(year: int, month: int) -> date:
    if month == 12:
        return date(year + 1, 1, 1) - date.resolution
    return date(year, month + 1, 1) - date.resolution


def lookback_window(
    year: int, month: int, months: int = LOOKBACK_MONTHS
) -> list[MonthRef]:
    """Months ending at (year, month), oldest first."""
    target = MonthRef(year, month)
    return [target.shift(-offset) for offset in range(months - 1, -1, -1)]
