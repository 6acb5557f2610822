"""Append-only transcript of turn records shared by every generation call."""

from collections.abc import Iterable, Iterator

from src.models import TurnKind, TurnRecord


class Transcript:
    """Ordered, append-only sequence of TurnRecords.

    The records are held in a tuple that is replaced, never mutated, on each
    append. Readers holding a snapshot keep a consistent view no matter what
    is appended afterwards.
    """

    def __init__(self, records: Iterable[TurnRecord] = ()) -> None:
        self._records: tuple[TurnRecord, ...] = tuple(records)

    def append(self, record: TurnRecord) -> tuple[TurnRecord, ...]:
        """Append one record and return the new snapshot."""
        self._records = (*self._records, record)
        return self._records

    def snapshot(self) -> tuple[TurnRecord, ...]:
        return self._records

    def render(self) -> tuple[TurnRecord, ...]:
        """Records in insertion order for presentation. Iterable any number of times."""
        return self._records

    def agent_turn_count(self) -> int:
        return sum(1 for r in self._records if r.kind is TurnKind.AGENT)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[TurnRecord]:
        return iter(self._records)


def format_transcript(records: Iterable[TurnRecord], system_label: str = "System", user_label: str = "User") -> str:
    """Format records as "speaker: content" lines for a prompt."""
    lines: list[str] = []
    for record in records:
        if record.kind is TurnKind.AGENT:
            speaker = record.agent_name
        elif record.kind is TurnKind.USER:
            speaker = user_label
        else:
            speaker = system_label
        lines.append(f"{speaker}: {record.content}")
    return "\n".join(lines)
