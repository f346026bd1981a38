"""Append-only log of mutations awaiting remote confirmation."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from sentence_builder.models.operations import OperationKind, PendingOperation


class OfflineQueue(BaseModel):
    """Immutable FIFO of pending operations.

    Reducers append through ``enqueue``; the sync coordinator is the only
    consumer and removes entries through ``acknowledge`` once the remote
    service has accepted (or permanently rejected) them. Every method returns
    a new queue and the original is never modified.
    """

    model_config = ConfigDict(frozen=True)

    operations: tuple[PendingOperation, ...] = ()
    next_seq: int = 1

    def __len__(self) -> int:
        return len(self.operations)

    def enqueue(
        self,
        op_id: str,
        kind: OperationKind,
        payload: dict[str, Any],
        created_at: datetime,
    ) -> "OfflineQueue":
        """Append an operation at the tail.

        Args:
            op_id: Unique operation identifier.
            kind: Operation kind.
            payload: JSON-serializable operation body.
            created_at: Creation time.

        Returns:
            New queue with the operation appended.
        """
        op = PendingOperation(
            id=op_id,
            seq=self.next_seq,
            kind=kind,
            payload=payload,
            created_at=created_at,
        )
        return OfflineQueue(operations=self.operations + (op,), next_seq=self.next_seq + 1)

    def pending(self) -> tuple[PendingOperation, ...]:
        return self.operations

    def head(self) -> PendingOperation | None:
        return self.operations[0] if self.operations else None

    def contains(self, op_id: str) -> bool:
        return any(op.id == op_id for op in self.operations)

    def acknowledge(self, op_id: str) -> "OfflineQueue":
        """Remove a confirmed operation, keeping the order of the rest."""
        remaining = tuple(op for op in self.operations if op.id != op_id)
        if len(remaining) == len(self.operations):
            return self
        return OfflineQueue(operations=remaining, next_seq=self.next_seq)

    @classmethod
    def from_operations(cls, operations: list[PendingOperation]) -> "OfflineQueue":
        """Rebuild a queue from persisted operations, restoring FIFO order."""
        ordered = tuple(sorted(operations, key=lambda op: (op.seq, op.created_at)))
        next_seq = ordered[-1].seq + 1 if ordered else 1
        return cls(operations=ordered, next_seq=next_seq)
