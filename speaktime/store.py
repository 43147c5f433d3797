# speaktime/store.py
from typing import Any, Dict, Iterable, List, Optional, Sequence, Type, TypeVar
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, select

from speaktime.database import get_session
from speaktime.realtime.feed import ChangeEvent, ChangeFeed, DELETE, INSERT, UPDATE
from speaktime.utils.logger import logger


Row = TypeVar("Row", bound=SQLModel)


class StoreError(Exception):
    """Fallo de una operación contra el almacenamiento"""
    pass


def _where(model: Type[SQLModel], filters: Dict[str, Any]) -> list:
    """Traducir filtros de igualdad a condiciones SQL"""
    conditions = []
    for name, value in filters.items():
        column = getattr(model, name)
        if value is None:
            conditions.append(column.is_(None))
        elif isinstance(value, (list, tuple, set, frozenset)):
            conditions.append(column.in_(list(value)))
        else:
            conditions.append(column == value)
    return conditions


def _order(model: Type[SQLModel], order_by: Iterable[str]) -> list:
    """'-columna' ordena descendente"""
    clauses = []
    for name in order_by:
        if name.startswith("-"):
            clauses.append(getattr(model, name[1:]).desc())
        else:
            clauses.append(getattr(model, name).asc())
    return clauses


class RowStore:
    """Cliente de filas sobre SQLModel que publica cada cambio confirmado.

    Todas las operaciones son corutinas: cada llamada es un viaje de ida y
    vuelta al almacenamiento y no hay transacciones entre llamadas.
    """

    def __init__(self, engine: Optional[Engine] = None, feed: Optional[ChangeFeed] = None):
        self.engine = engine
        self.feed = feed

    async def _publish(self, model: Type[SQLModel], event: str, rows: Sequence[Dict[str, Any]]):
        if self.feed is None:
            return
        for row in rows:
            await self.feed.publish(ChangeEvent(table=model.__tablename__, event=event, row=row))

    async def insert(self, model: Type[Row], **values) -> Row:
        """Insertar una fila y devolverla con su identidad"""
        return (await self.insert_many(model, [values]))[0]

    async def insert_many(self, model: Type[Row], rows: List[Dict[str, Any]]) -> List[Row]:
        """Insertar varias filas en una sola llamada"""
        try:
            with get_session(self.engine) as session:
                created = [model(**values) for values in rows]
                session.add_all(created)
                session.flush()
                for row in created:
                    session.refresh(row)
                snapshots = [row.model_dump() for row in created]
        except SQLAlchemyError as e:
            logger.error(f"Error insertando en {model.__tablename__}: {e}")
            raise StoreError(str(e)) from e
        await self._publish(model, INSERT, snapshots)
        return created

    async def get(self, model: Type[Row], row_id: int) -> Optional[Row]:
        """Obtener una fila por identidad"""
        try:
            with get_session(self.engine) as session:
                return session.get(model, row_id)
        except SQLAlchemyError as e:
            raise StoreError(str(e)) from e

    async def select(self, model: Type[Row], order_by: Iterable[str] = (), limit: Optional[int] = None, **filters) -> List[Row]:
        """Seleccionar filas con filtros de igualdad (None = IS NULL, lista = IN)"""
        statement = select(model)
        conditions = _where(model, filters)
        if conditions:
            statement = statement.where(*conditions)
        ordering = _order(model, order_by)
        if ordering:
            statement = statement.order_by(*ordering)
        if limit is not None:
            statement = statement.limit(limit)
        try:
            with get_session(self.engine) as session:
                return list(session.exec(statement).all())
        except SQLAlchemyError as e:
            raise StoreError(str(e)) from e

    async def first(self, model: Type[Row], order_by: Iterable[str] = (), **filters) -> Optional[Row]:
        rows = await self.select(model, order_by=order_by, limit=1, **filters)
        return rows[0] if rows else None

    async def update(self, model: Type[Row], values: Dict[str, Any], **filters) -> List[Row]:
        """Actualizar todas las filas que cumplan el filtro"""
        statement = select(model)
        conditions = _where(model, filters)
        if conditions:
            statement = statement.where(*conditions)
        try:
            with get_session(self.engine) as session:
                rows = list(session.exec(statement).all())
                for row in rows:
                    for name, value in values.items():
                        setattr(row, name, value)
                    session.add(row)
                session.flush()
                snapshots = [row.model_dump() for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Error actualizando {model.__tablename__}: {e}")
            raise StoreError(str(e)) from e
        await self._publish(model, UPDATE, snapshots)
        return rows

    async def delete(self, model: Type[Row], row_id: int) -> Optional[Row]:
        """Borrar por identidad; los hijos caen en cascada"""
        try:
            with get_session(self.engine) as session:
                row = session.get(model, row_id)
                if row is None:
                    return None
                snapshot = row.model_dump()
                session.delete(row)
        except SQLAlchemyError as e:
            logger.error(f"Error borrando de {model.__tablename__}: {e}")
            raise StoreError(str(e)) from e
        await self._publish(model, DELETE, [snapshot])
        return row
