from typing import Dict, List, Any, Optional, Sequence, Union
import json
import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from context_engine.domain.context.memory.memory_repository import MemoryRepository
from context_engine.domain.errors import VectorStoreError
from context_engine.domain.models import (
    MemoryRecord,
    NewMemory,
    Partition,
    ScoredMemory,
    SimilarityQuery,
)

logger = structlog.get_logger(__name__)

MEMORY_COLUMNS = """
    id, agent_id, user_id, key_point, context,
    vector_embedding::text AS vector_embedding,
    update_count, created_at, updated_at
"""


def vector_literal(vector: Sequence[float]) -> str:
    """pgvector text form, e.g. [0.1,0.2]"""
    return "[" + ",".join(repr(float(x)) for x in vector) + "]"


def parse_vector(value: Any) -> Optional[List[float]]:
    """Inverse of vector_literal; passes through lists, None for NULL"""

    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return [float(x) for x in value]
    raw = str(value).strip()
    if raw.startswith("[") and raw.endswith("]"):
        raw = raw[1:-1]
    if not raw:
        return []
    return [float(x) for x in raw.split(",")]


def parse_context(value: Any) -> Dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, dict):
        return value
    decoded = json.loads(value)
    return decoded if isinstance(decoded, dict) else {}


def row_to_record(row: Any) -> MemoryRecord:
    data = row._mapping
    return MemoryRecord(
        id=data["id"],
        agent_id=data["agent_id"],
        user_id=data["user_id"],
        key_point=data["key_point"],
        context=parse_context(data["context"]),
        embedding=parse_vector(data["vector_embedding"]),
        update_count=data["update_count"],
        created_at=data["created_at"],
        updated_at=data["updated_at"]
    )


class PgVectorMemoryRepository(MemoryRepository):
    """MemoryRepository on PostgreSQL + pgvector through SQLAlchemy's async engine.

    The per-partition counter lives in its own table so deleting memories
    never rewinds it. Every multi-statement operation runs in one transaction.
    """

    def __init__(
        self,
        engine: Union[AsyncEngine, str],
        dimensions: int = 1536,
        memories_table: str = "agent_memories",
        counters_table: str = "agent_memory_counters"
    ):
        if isinstance(engine, str):
            engine = create_async_engine(engine, pool_pre_ping=True)
        self.engine = engine
        self.dimensions = int(dimensions)
        self.memories_table = memories_table
        self.counters_table = counters_table

    @property
    def supports_native_search(self) -> bool:
        return True

    def _query_vector_sql(self) -> str:
        return f"CAST(CAST(:query AS TEXT) AS vector({self.dimensions}))"

    async def create_schema(self):
        """Create the extension, tables and indexes if missing"""

        statements = [
            "CREATE EXTENSION IF NOT EXISTS vector",
            f"""
            CREATE TABLE IF NOT EXISTS {self.memories_table} (
                id BIGSERIAL PRIMARY KEY,
                agent_id INTEGER NOT NULL,
                user_id TEXT NOT NULL,
                key_point TEXT NOT NULL,
                context JSONB NOT NULL DEFAULT '{{}}'::jsonb,
                vector_embedding vector({self.dimensions}),
                update_count INTEGER NOT NULL DEFAULT 0,
                created_at TIMESTAMP NOT NULL DEFAULT (now() AT TIME ZONE 'utc'),
                updated_at TIMESTAMP NOT NULL DEFAULT (now() AT TIME ZONE 'utc')
            )
            """,
            f"""
            CREATE TABLE IF NOT EXISTS {self.counters_table} (
                agent_id INTEGER NOT NULL,
                user_id TEXT NOT NULL,
                update_count INTEGER NOT NULL DEFAULT 0,
                PRIMARY KEY (agent_id, user_id)
            )
            """,
            f"""
            CREATE INDEX IF NOT EXISTS {self.memories_table}_partition_idx
            ON {self.memories_table} (agent_id, user_id, created_at DESC)
            """,
            f"""
            CREATE INDEX IF NOT EXISTS {self.memories_table}_embedding_idx
            ON {self.memories_table}
            USING ivfflat (vector_embedding vector_cosine_ops)
            WITH (lists = 100)
            """,
        ]

        async with self.engine.begin() as conn:
            for statement in statements:
                await conn.execute(text(statement))
        logger.info("Memory schema ready", table=self.memories_table, dimensions=self.dimensions)

    async def native_find_similar(self, query: SimilarityQuery) -> List[ScoredMemory]:
        if len(query.vector) != self.dimensions:
            raise VectorStoreError(
                f"Query vector has {len(query.vector)} dimensions, column has {self.dimensions}"
            )

        distance = f"vector_embedding <=> {self._query_vector_sql()}"
        sql = text(f"""
            SELECT {MEMORY_COLUMNS}, 1 - ({distance}) AS similarity
            FROM {self.memories_table}
            WHERE agent_id = :agent_id
              AND user_id = :user_id
              AND vector_embedding IS NOT NULL
              AND 1 - ({distance}) >= :threshold
            ORDER BY {distance}
            LIMIT :limit
        """)

        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(sql, {
                    "query": vector_literal(query.vector),
                    "agent_id": query.partition.agent_id,
                    "user_id": query.partition.user_id,
                    "threshold": query.threshold,
                    "limit": query.top_k,
                })
                rows = result.fetchall()
        except SQLAlchemyError as e:
            raise VectorStoreError(f"Native similarity query failed: {e}") from e

        return [
            ScoredMemory(record=row_to_record(row), similarity=float(row._mapping["similarity"]))
            for row in rows
        ]

    async def find_recent(self, partition: Partition, limit: Optional[int] = None) -> List[MemoryRecord]:
        sql = f"""
            SELECT {MEMORY_COLUMNS}
            FROM {self.memories_table}
            WHERE agent_id = :agent_id AND user_id = :user_id
            ORDER BY created_at DESC, id DESC
        """
        params: Dict[str, Any] = {"agent_id": partition.agent_id, "user_id": partition.user_id}
        if limit is not None and limit > 0:
            sql += " LIMIT :limit"
            params["limit"] = limit

        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(text(sql), params)
                return [row_to_record(row) for row in result.fetchall()]
        except SQLAlchemyError as e:
            raise VectorStoreError(f"Loading recent memories failed: {e}") from e

    async def get(self, memory_id: int) -> Optional[MemoryRecord]:
        async with self.engine.connect() as conn:
            result = await conn.execute(
                text(f"SELECT {MEMORY_COLUMNS} FROM {self.memories_table} WHERE id = :id"),
                {"id": memory_id}
            )
            row = result.first()
        return row_to_record(row) if row else None

    async def insert(self, partition: Partition, memory: NewMemory) -> MemoryRecord:
        async with self.engine.begin() as conn:
            update_count = await self._increment(conn, partition)
            return await self._insert_row(conn, partition, memory, update_count)

    async def replace_many(
        self,
        partition: Partition,
        retire_ids: List[int],
        replacements: List[NewMemory]
    ) -> List[MemoryRecord]:
        async with self.engine.begin() as conn:
            if retire_ids:
                result = await conn.execute(
                    text(f"""
                        DELETE FROM {self.memories_table}
                        WHERE agent_id = :agent_id AND user_id = :user_id AND id = ANY(:ids)
                        RETURNING id
                    """),
                    {"agent_id": partition.agent_id, "user_id": partition.user_id, "ids": list(retire_ids)}
                )
                deleted = {row[0] for row in result.fetchall()}
                missing = sorted(set(retire_ids) - deleted)
                if missing:
                    # Raising inside begin() rolls the deletes back
                    raise VectorStoreError(f"Memories no longer present in partition: {missing}")

            update_count = await self._current_count(conn, partition)
            return [
                await self._insert_row(conn, partition, memory, update_count)
                for memory in replacements
            ]

    async def delete(self, memory_id: int) -> bool:
        async with self.engine.begin() as conn:
            result = await conn.execute(
                text(f"DELETE FROM {self.memories_table} WHERE id = :id"),
                {"id": memory_id}
            )
            return result.rowcount > 0

    async def delete_many(self, memory_ids: List[int]) -> int:
        if not memory_ids:
            return 0
        async with self.engine.begin() as conn:
            result = await conn.execute(
                text(f"DELETE FROM {self.memories_table} WHERE id = ANY(:ids)"),
                {"ids": list(memory_ids)}
            )
            return result.rowcount

    async def count(self, partition: Partition) -> int:
        async with self.engine.connect() as conn:
            result = await conn.execute(
                text(f"""
                    SELECT COUNT(*) FROM {self.memories_table}
                    WHERE agent_id = :agent_id AND user_id = :user_id
                """),
                {"agent_id": partition.agent_id, "user_id": partition.user_id}
            )
            return int(result.scalar_one())

    async def get_update_count(self, partition: Partition) -> int:
        async with self.engine.connect() as conn:
            return await self._current_count(conn, partition)

    async def increment_update_count(self, partition: Partition) -> int:
        async with self.engine.begin() as conn:
            return await self._increment(conn, partition)

    async def reset_update_count(self, partition: Partition) -> None:
        async with self.engine.begin() as conn:
            await conn.execute(
                text(f"""
                    INSERT INTO {self.counters_table} (agent_id, user_id, update_count)
                    VALUES (:agent_id, :user_id, 0)
                    ON CONFLICT (agent_id, user_id) DO UPDATE SET update_count = 0
                """),
                {"agent_id": partition.agent_id, "user_id": partition.user_id}
            )

    async def dispose(self):
        await self.engine.dispose()

    async def _increment(self, conn: AsyncConnection, partition: Partition) -> int:
        result = await conn.execute(
            text(f"""
                INSERT INTO {self.counters_table} (agent_id, user_id, update_count)
                VALUES (:agent_id, :user_id, 1)
                ON CONFLICT (agent_id, user_id)
                DO UPDATE SET update_count = {self.counters_table}.update_count + 1
                RETURNING update_count
            """),
            {"agent_id": partition.agent_id, "user_id": partition.user_id}
        )
        return int(result.scalar_one())

    async def _current_count(self, conn: AsyncConnection, partition: Partition) -> int:
        result = await conn.execute(
            text(f"""
                SELECT update_count FROM {self.counters_table}
                WHERE agent_id = :agent_id AND user_id = :user_id
            """),
            {"agent_id": partition.agent_id, "user_id": partition.user_id}
        )
        value = result.scalar_one_or_none()
        return int(value) if value is not None else 0

    async def _insert_row(
        self,
        conn: AsyncConnection,
        partition: Partition,
        memory: NewMemory,
        update_count: int
    ) -> MemoryRecord:
        result = await conn.execute(
            text(f"""
                INSERT INTO {self.memories_table}
                    (agent_id, user_id, key_point, context, vector_embedding, update_count)
                VALUES (
                    :agent_id, :user_id, :key_point,
                    CAST(CAST(:context AS TEXT) AS JSONB),
                    CAST(CAST(:embedding AS TEXT) AS vector({self.dimensions})),
                    :update_count
                )
                RETURNING {MEMORY_COLUMNS}
            """),
            {
                "agent_id": partition.agent_id,
                "user_id": partition.user_id,
                "key_point": memory.key_point,
                "context": json.dumps(memory.context, ensure_ascii=False, default=str),
                "embedding": vector_literal(memory.embedding),
                "update_count": update_count,
            }
        )
        return row_to_record(result.one())
