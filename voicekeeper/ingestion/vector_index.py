"""Vector index gateway backed by a Supabase pgvector table."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, cast

from supabase import Client

UPSERT_BATCH_SIZE = 100


@dataclass(frozen=True)
class VectorRecord:
    """One vector to upsert.  ``metadata`` must contain ``recording_id``."""

    id: str
    values: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VectorMatch:
    """A nearest-neighbour hit, ranked by the index."""

    id: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


class VectorIndexGateway(Protocol):
    def upsert(self, records: list[VectorRecord]) -> int: ...

    def query(
        self,
        vector: list[float],
        top_k: int = 5,
        filter: dict[str, Any] | None = None,
    ) -> list[VectorMatch]: ...

    def delete_by_recording_id(self, recording_id: str) -> None: ...

    def delete_all(self) -> None: ...


class SupabaseVectorIndex:
    """pgvector table ``memory_vectors`` plus the ``match_memory_vectors`` RPC.

    See ``sql/schema.sql`` for the table and function definitions.
    """

    table = "memory_vectors"
    match_function = "match_memory_vectors"

    def __init__(self, client: Client, batch_size: int = UPSERT_BATCH_SIZE) -> None:
        self.client = client
        self.batch_size = batch_size

    def upsert(self, records: list[VectorRecord]) -> int:
        """Upsert *records* in batches of at most ``batch_size`` per call."""
        rows = [
            {
                "id": r.id,
                "recording_id": r.metadata.get("recording_id"),
                "embedding": r.values,
                "metadata": r.metadata,
            }
            for r in records
        ]
        for i in range(0, len(rows), self.batch_size):
            self.client.table(self.table).upsert(rows[i : i + self.batch_size]).execute()
        return len(rows)

    def query(
        self,
        vector: list[float],
        top_k: int = 5,
        filter: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        """Nearest neighbours by cosine similarity, best first."""
        result = self.client.rpc(
            self.match_function,
            {
                "query_embedding": vector,
                "match_count": top_k,
                "filter": filter or {},
            },
        ).execute()
        # Supabase .data is typed as JSON (broad union); cast to concrete type.
        rows = cast(list[dict[str, Any]], result.data) or []
        return [
            VectorMatch(
                id=str(row["id"]),
                score=float(row.get("similarity") or 0.0),
                metadata=row.get("metadata") or {},
            )
            for row in rows
        ]

    def delete_by_recording_id(self, recording_id: str) -> None:
        self.client.table(self.table).delete().eq("recording_id", recording_id).execute()

    def delete_all(self) -> None:
        # PostgREST refuses an unfiltered DELETE; every id is non-empty.
        self.client.table(self.table).delete().neq("id", "").execute()
