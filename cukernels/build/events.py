from __future__ import annotations

import logging
from dataclasses import dataclass, field


@dataclass(frozen=True)
class BuildEvent:
    """One diagnostic produced while building: which phase, and what happened."""

    phase: str
    message: str

    def __str__(self):
        return f"[{self.phase}] {self.message}"


@dataclass
class BuildLog:
    """Events collected during one build, emitted together by the driver."""

    events: list[BuildEvent] = field(default_factory=list)

    def add(self, phase: str, message: str) -> BuildEvent:
        event = BuildEvent(phase, message)
        self.events.append(event)
        return event

    def extend(self, events):
        self.events.extend(events)

    def emit(self, logger: logging.Logger, level: int = logging.INFO):
        for event in self.events:
            logger.log(level, "%s", event)

    def __len__(self):
        return len(self.events)

    def __iter__(self):
        return iter(self.events)
