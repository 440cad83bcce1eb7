from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO, Dict, Iterable, Iterator, List, Optional

from .logging_config import report
from .transport import EXACTLY_ONCE, SubmitError, Transport

log = logging.getLogger("mqttlogger.registry")

SUFFIX = ".txt"


def _level_name(level: str) -> str:
    # Percent-escaping keeps distinct topics on distinct paths.
    name = level.replace("%", "%25")
    if name == "":
        return "%00"
    if name in (".", ".."):
        return name.replace(".", "%2E")
    return name


class TopicFileRegistry:
    """Append-only output handle per subscribed topic.

    Handles are opened while the registry is being built and the registry is
    sealed before polling starts; a sealed registry only hands out handles.
    """

    def __init__(self, directory: Path | str = ".") -> None:
        self.directory = Path(directory)
        self._files: Dict[str, BinaryIO] = {}
        self._paths: Dict[Path, str] = {}
        self._sealed = False

    def path_for(self, topic: str) -> Path:
        """One level per path component, always below the log directory."""
        *parents, leaf = [_level_name(level) for level in topic.split("/")]
        return self.directory.joinpath(*parents, f"{leaf}{SUFFIX}")

    def open(self, topic: str) -> BinaryIO:
        if self._sealed:
            raise RuntimeError("registry is sealed")
        if not topic:
            raise ValueError("topic must be non-empty")
        existing = self._files.get(topic)
        if existing is not None:
            return existing
        path = self.path_for(topic)
        other = self._paths.get(path)
        if other is not None:
            raise ValueError(f"topics {other!r} and {topic!r} map to the same file {path}")
        # Topic levels become directories.
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = open(path, "ab")
        self._files[topic] = fh
        self._paths[path] = topic
        return fh

    def seal(self) -> None:
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    def get(self, topic: str) -> Optional[BinaryIO]:
        return self._files.get(topic)

    def __contains__(self, topic: object) -> bool:
        return topic in self._files

    def __len__(self) -> int:
        return len(self._files)

    def __iter__(self) -> Iterator[str]:
        return iter(self._files)

    def close(self) -> None:
        for fh in self._files.values():
            fh.close()

    def __enter__(self) -> "TopicFileRegistry":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def subscribe_topics(
    topics: Iterable[str], transport: Transport, directory: Path | str = "."
) -> TopicFileRegistry:
    """Issue one subscribe per topic and open its log file in the same step.

    A subscribe that cannot be submitted is reported and skipped; its file is
    still opened. A file that cannot be opened aborts startup.
    """
    registry = TopicFileRegistry(directory)
    failed: List[str] = []
    try:
        for topic in topics:
            try:
                transport.subscribe(topic, EXACTLY_ONCE)
            except SubmitError as e:
                failed.append(topic)
                report(log, logging.ERROR, "Failed to subscribe", topic=topic, error=str(e))
            registry.open(topic)
    except (OSError, ValueError):
        registry.close()
        raise
    registry.seal()
    if failed:
        log.warning("%d of %d subscriptions were not submitted", len(failed), len(registry))
    return registry
