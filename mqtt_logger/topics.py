from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List

from .config import Settings

log = logging.getLogger("mqttlogger.topics")


def read_topics_file(path: Path | str) -> List[str]:
    """One topic per line; surrounding whitespace and blank lines are dropped."""
    text = Path(path).read_text(encoding="utf-8")
    return [line.strip() for line in text.splitlines() if line.strip()]


def _unique(topics: Iterable[str]) -> List[str]:
    seen: set[str] = set()
    out: List[str] = []
    for t in topics:
        if t in seen:
            log.warning("Ignoring duplicate topic %s", t)
            continue
        seen.add(t)
        out.append(t)
    return out


def resolve_topics(settings: Settings) -> List[str]:
    if settings.topics and settings.topics_file:
        raise ValueError("topics and topics_file are mutually exclusive")
    if settings.topics_file:
        topics = read_topics_file(settings.topics_file)
    else:
        topics = list(settings.topics)
    topics = _unique(t for t in topics if t)
    if not topics:
        raise ValueError("no topics configured")
    return topics
