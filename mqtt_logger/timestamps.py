from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

RESET = "\x1b[0m"
GREEN = "\x1b[32m"
BLUE = "\x1b[34m"


@dataclass(frozen=True)
class Timestamp:
    year: int
    month: int
    day: int
    hour: int
    minute: int
    second: int
    millisecond: int

    @classmethod
    def from_datetime(cls, dt: datetime) -> "Timestamp":
        return cls(dt.year, dt.month, dt.day, dt.hour, dt.minute, dt.second, dt.microsecond // 1000)

    def _digits(self) -> str:
        return (
            f"{self.year:04}-{self.month:02}-{self.day:02} "
            f"{self.hour:02}:{self.minute:02}:{self.second:02}.{self.millisecond:03}"
        )

    @property
    def plain(self) -> str:
        return f"[{self._digits()}] "

    @property
    def colored(self) -> str:
        return f"{RESET}[{GREEN}{self._digits()}{RESET}] "


def stamp(now: Optional[datetime] = None) -> Timestamp:
    """Capture the reception instant in local time."""
    return Timestamp.from_datetime(now if now is not None else datetime.now())


def topic_tag(topic: str) -> str:
    return f"{RESET}[{BLUE}{topic}{RESET}] "
