"""
文档存储适配器

按集合提供 get / query / count / insert / update 操作。
每个操作使用独立会话并立即提交：单文档操作是原子的，
多个操作组成的序列不是原子的，跨集合一致性由调用方的工作流负责。
"""
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, date
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional
import logging

from sqlalchemy import update as sql_update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fairway.database import SessionLocal
from fairway.models.documents import Document

logger = logging.getLogger(__name__)


class DocumentNotFound(LookupError):
    """文档不存在"""

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"{collection}/{doc_id} not found")
        self.collection = collection
        self.doc_id = doc_id


class StaleDocument(Exception):
    """条件更新时文档当前字段与期望不一致"""

    def __init__(self, collection: str, doc_id: str, current: Dict[str, Any]):
        super().__init__(f"{collection}/{doc_id} does not match expected fields")
        self.collection = collection
        self.doc_id = doc_id
        self.current = current


class DuplicateKey(Exception):
    """同一集合内自然键重复"""

    def __init__(self, collection: str, unique_key: str):
        super().__init__(f"{collection} already has a document keyed {unique_key!r}")
        self.collection = collection
        self.unique_key = unique_key


@dataclass(frozen=True)
class Condition:
    """查询条件：op 为 gte / lte / in"""
    op: str
    value: Any


class Command:
    """查询条件构造器，用法：store.query("bookings", {"date": command.gte("2026-01-01")})"""

    @staticmethod
    def gte(value: Any) -> Condition:
        return Condition("gte", value)

    @staticmethod
    def lte(value: Any) -> Condition:
        return Condition("lte", value)

    @staticmethod
    def in_(values: Iterable[Any]) -> Condition:
        return Condition("in", list(values))


command = Command()


def encode(value: Any) -> Any:
    """转换为可写入 JSON 的值（枚举取值，时间转 ISO 字符串）"""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {k: encode(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode(v) for v in value]
    return value


def _field_expr(field: str, sample: Any):
    """按样本值类型选择 JSON 字段的比较表达式"""
    column = Document.data[field]
    if isinstance(sample, bool):
        return column.as_boolean()
    if isinstance(sample, int):
        return column.as_integer()
    if isinstance(sample, float):
        return column.as_float()
    return column.as_string()


def _where_clause(field: str, value: Any):
    if isinstance(value, Condition):
        if value.op == "in":
            values = encode(value.value)
            if not values:
                return Document.id.is_(None)
            return _field_expr(field, values[0]).in_(values)
        target = encode(value.value)
        expr = _field_expr(field, target)
        if value.op == "gte":
            return expr >= target
        if value.op == "lte":
            return expr <= target
        raise ValueError(f"Unsupported condition: {value.op}")

    target = encode(value)
    if target is None:
        return Document.data[field].as_string().is_(None)
    return _field_expr(field, target) == target


def _name(collection) -> str:
    """集合名可以是字符串或枚举"""
    return collection.value if isinstance(collection, Enum) else collection


def _to_dict(doc: Document) -> Dict[str, Any]:
    return {"_id": doc.id, **(doc.data or {})}


class DocumentStore:
    """
    基于 SQLAlchemy 的文档存储

    支持依赖注入会话工厂，便于测试使用独立数据库。
    """

    def __init__(self, session_factory: Callable[[], Session] = None):
        self._session_factory = session_factory or SessionLocal

    @contextmanager
    def _session(self):
        db = self._session_factory()
        try:
            yield db
        finally:
            db.close()

    def _filtered(self, db: Session, collection: str, where: Optional[Mapping[str, Any]]):
        collection = _name(collection)
        query = db.query(Document).filter(Document.collection == collection)
        for field, value in (where or {}).items():
            query = query.filter(_where_clause(field, value))
        return query

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """按 ID 获取文档，不存在返回 None"""
        collection = _name(collection)
        with self._session() as db:
            doc = db.query(Document).filter(
                Document.collection == collection,
                Document.id == doc_id
            ).first()
            return _to_dict(doc) if doc else None

    def query(self, collection: str, where: Optional[Mapping[str, Any]] = None,
              order_by: Optional[str] = None, descending: bool = False,
              skip: int = 0, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """过滤、排序、分页查询"""
        with self._session() as db:
            query = self._filtered(db, collection, where)
            if order_by:
                key = Document.data[order_by].as_string()
                query = query.order_by(key.desc() if descending else key.asc())
            query = query.order_by(Document.created_at.desc() if descending else Document.created_at.asc())
            if skip:
                query = query.offset(skip)
            if limit is not None:
                query = query.limit(limit)
            return [_to_dict(doc) for doc in query.all()]

    def count(self, collection: str, where: Optional[Mapping[str, Any]] = None) -> int:
        """按条件计数"""
        with self._session() as db:
            return self._filtered(db, collection, where).count()

    def insert(self, collection: str, data: Mapping[str, Any],
               unique_key: Optional[str] = None) -> Dict[str, Any]:
        """
        插入文档

        Args:
            collection: 集合名
            data: 文档字段
            unique_key: 可选自然键，同一集合内唯一

        Raises:
            DuplicateKey: 自然键已存在
        """
        collection = _name(collection)
        with self._session() as db:
            doc = Document(collection=collection, data=encode(dict(data)), unique_key=unique_key)
            db.add(doc)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                if unique_key is None:
                    raise
                logger.debug(f"Duplicate key {unique_key} rejected in {collection}")
                raise DuplicateKey(collection, unique_key)
            db.refresh(doc)
            return _to_dict(doc)

    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any],
               expect: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """
        按 ID 合并更新顶层字段

        expect 不为空时做单文档内的比较并设置：期望条件与写入在同一条 UPDATE 中判断，
        并发调用者中只有一个能写入，其余得到 StaleDocument。

        Raises:
            DocumentNotFound: 文档不存在
            StaleDocument: 期望字段不匹配
        """
        collection = _name(collection)
        expected = encode(dict(expect or {}))
        with self._session() as db:
            doc = db.query(Document).filter(
                Document.collection == collection,
                Document.id == doc_id
            ).first()
            if not doc:
                raise DocumentNotFound(collection, doc_id)

            current = dict(doc.data or {})
            for key, value in expected.items():
                if current.get(key) != value:
                    raise StaleDocument(collection, doc_id, {"_id": doc.id, **current})

            # 期望条件写进 UPDATE 的 WHERE，由数据库在写锁内重新判断
            merged = {**current, **encode(dict(fields))}
            statement = (
                sql_update(Document)
                .where(
                    Document.collection == collection,
                    Document.id == doc_id,
                    *(_where_clause(key, value) for key, value in expected.items())
                )
                .values(data=merged, updated_at=datetime.now())
                .execution_options(synchronize_session=False)
            )
            result = db.execute(statement)
            if result.rowcount != 1:
                db.rollback()
                latest = self.get(collection, doc_id)
                if latest is None:
                    raise DocumentNotFound(collection, doc_id)
                raise StaleDocument(collection, doc_id, latest)
            db.commit()
            return {"_id": doc_id, **merged}


# 全局文档存储实例
document_store = DocumentStore()


def get_store() -> DocumentStore:
    """依赖注入：获取文档存储"""
    return document_store
