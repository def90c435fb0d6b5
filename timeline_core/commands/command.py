from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import uuid4

from timeline_core.commands import handlers
from timeline_core.commands.types import CommandKind, Payload
from timeline_core.services.timeline import Timeline


@dataclass
class Command:
    """A reversible edit bound to one timeline.

    ``execute`` and ``undo`` dispatch on ``kind`` through the handler table;
    the payload already holds both the original and the updated values.
    """

    kind: CommandKind
    description: str
    payload: Payload
    timeline: Timeline = field(repr=False, compare=False)
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def type(self) -> str:
        return self.kind.value

    def execute(self) -> None:
        handlers.apply(self.kind, self.timeline, self.payload)

    def undo(self) -> None:
        handlers.revert(self.kind, self.timeline, self.payload)
