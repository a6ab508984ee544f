from typing import Any, Sequence

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession


def _insert_factory(db: AsyncSession):
    bind = db.get_bind()
    dialect_name = bind.dialect.name if bind is not None else ""
    if dialect_name == "postgresql":
        return pg_insert
    if dialect_name == "sqlite":
        return sqlite_insert
    raise RuntimeError(f"insert_ignore не поддерживает диалект {dialect_name!r}")


async def insert_ignore(
    db: AsyncSession,
    model,
    rows: Sequence[dict[str, Any]],
    index_elements: list[str],
    returning=None,
) -> list:
    """
    INSERT ... ON CONFLICT DO NOTHING — атомарное добавление во множество средствами БД.

    Returns:
        Значения колонки returning для реально вставленных строк
        (пустой список, если returning не задан или всё уже было)
    """
    if not rows:
        return []

    stmt = (
        _insert_factory(db)(model)
        .values(list(rows))
        .on_conflict_do_nothing(index_elements=index_elements)
    )
    if returning is None:
        await db.execute(stmt)
        return []

    result = await db.execute(stmt.returning(returning))
    return list(result.scalars().all())
