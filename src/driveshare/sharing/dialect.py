"""Dialect-aware SQL helpers — atomic upsert and SQLite engine setup."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import event, text

if TYPE_CHECKING:
    from sqlalchemy import Engine
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession


def get_dialect(engine: Engine | AsyncEngine) -> str:
    """Return 'sqlite', 'postgresql', or 'mssql'."""
    # AsyncEngine wraps a sync engine
    sync_engine = getattr(engine, "sync_engine", engine)
    name = sync_engine.dialect.name
    if name == "sqlite":
        return "sqlite"
    if name in ("postgresql", "postgres"):
        return "postgresql"
    if name in ("mssql", "pyodbc"):
        return "mssql"
    return name


def _emit_begin(conn: Any) -> None:
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def configure_sqlite(engine: Engine | AsyncEngine, busy_timeout: float = 5.0) -> None:
    """Make SAVEPOINT work on pysqlite/aiosqlite and set a busy timeout.

    The driver's own BEGIN handling is disabled and SQLAlchemy emits
    ``BEGIN IMMEDIATE`` itself, which is the documented workaround for
    nested transactions on SQLite.  Taking the write lock up front makes
    concurrent writers queue on the busy timeout instead of failing with
    a lock-upgrade deadlock.  Must be called before the engine opens its
    first connection.  Calling it again for the same engine is a no-op.
    """
    sync_engine = getattr(engine, "sync_engine", engine)
    if event.contains(sync_engine, "begin", _emit_begin):
        return
    timeout_ms = int(busy_timeout * 1000)

    @event.listens_for(sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, _record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute(f"PRAGMA busy_timeout = {timeout_ms}")
        cursor.close()

    event.listen(sync_engine, "begin", _emit_begin)


async def upsert(
    session: AsyncSession,
    dialect: str,
    model: type,
    values: dict[str, Any],
    conflict_keys: list[str],
    update_keys: list[str] | None = None,
    schema: str | None = None,
) -> int:
    """Dialect-aware single-statement upsert. Returns rowcount.

    *update_keys* selects the columns overwritten on conflict (default:
    every non-key column).  An empty list turns the statement into an
    insert-if-absent.

    - SQLite/PostgreSQL: INSERT ... ON CONFLICT DO UPDATE / DO NOTHING
    - MSSQL: MERGE INTO ... WITH (HOLDLOCK)
    """
    if dialect == "mssql":
        return await _upsert_mssql(session, model, values, conflict_keys, update_keys, schema)
    return await _upsert_sqlite_pg(
        session, dialect, model, values, conflict_keys, update_keys, schema
    )


async def _upsert_sqlite_pg(
    session: AsyncSession,
    dialect: str,
    model: type,
    values: dict[str, Any],
    conflict_keys: list[str],
    update_keys: list[str] | None = None,
    schema: str | None = None,
) -> int:
    """SQLite / PostgreSQL upsert using INSERT ... ON CONFLICT."""
    from sqlalchemy.dialects import sqlite as sqlite_dialect

    dialect_module = sqlite_dialect
    if dialect == "postgresql":
        from sqlalchemy.dialects import postgresql as pg_dialect

        dialect_module = pg_dialect

    stmt = dialect_module.insert(model).values(**values)

    if update_keys is not None:
        update_cols = {k: v for k, v in values.items() if k in update_keys}
    else:
        update_cols = {k: v for k, v in values.items() if k not in conflict_keys}

    if update_cols:
        stmt = stmt.on_conflict_do_update(
            index_elements=conflict_keys,
            set_=update_cols,
        )
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=conflict_keys)

    if schema:
        stmt = stmt.execution_options(schema_translate_map={None: schema})

    result = await session.execute(stmt)
    return result.rowcount  # type: ignore[return-value]


async def _upsert_mssql(
    session: AsyncSession,
    model: type,
    values: dict[str, Any],
    conflict_keys: list[str],
    update_keys: list[str] | None = None,
    schema: str | None = None,
) -> int:
    """MSSQL upsert using MERGE INTO ... WITH (HOLDLOCK)."""
    table_name: str = model.__tablename__  # type: ignore[attr-defined]
    if schema:
        table_name = f"[{schema}].{table_name}"
    on_clause = " AND ".join(f"target.{k} = :{k}" for k in conflict_keys)
    insert_cols = ", ".join(values.keys())
    insert_vals = ", ".join(f":{k}" for k in values)
    if update_keys is not None:
        update_set = ", ".join(f"target.{k} = :{k}" for k in values if k in update_keys)
    else:
        update_set = ", ".join(f"target.{k} = :{k}" for k in values if k not in conflict_keys)

    merge_sql = f"""
        MERGE INTO {table_name} WITH (HOLDLOCK) AS target
        USING (SELECT {", ".join(f":{k} AS {k}" for k in conflict_keys)}) AS source
        ON {on_clause}
        WHEN NOT MATCHED THEN
            INSERT ({insert_cols})
            VALUES ({insert_vals})
    """
    if update_set:
        merge_sql += f"""
        WHEN MATCHED THEN
            UPDATE SET {update_set}
        """
    merge_sql += ";"

    result = await session.execute(text(merge_sql), values)
    return result.rowcount  # type: ignore[return-value]
