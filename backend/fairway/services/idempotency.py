"""
幂等守卫

创建派生记录前按自然键查询是否已存在（读取 - 检查 - 写入）。
没有唯一索引时在并发下只能尽力而为；存储支持唯一键时，
由 natural_key() 生成的键在插入时再由存储层强制唯一。
"""
from typing import Any, Dict, Mapping, Optional
import logging

from fairway.services.document_store import DocumentStore
from fairway.services.errors import DuplicateError

logger = logging.getLogger(__name__)


class IdempotencyGuard:
    """按自然键拒绝重复记录"""

    def __init__(self, store: DocumentStore, collection: str, key_fields: tuple):
        self.store = store
        self.collection = collection
        self.key_fields = key_fields

    def natural_key(self, values: Mapping[str, Any]) -> str:
        """拼接自然键，如 "player1:booking9" """
        return ":".join(str(values[f]) for f in self.key_fields)

    def find_existing(self, values: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        where = {f: values[f] for f in self.key_fields}
        found = self.store.query(self.collection, where, limit=1)
        return found[0] if found else None

    def check(self, values: Mapping[str, Any], message: str) -> None:
        """
        已存在相同自然键的记录时抛出 DuplicateError

        Raises:
            DuplicateError: 自然键重复
        """
        existing = self.find_existing(values)
        if existing:
            logger.info(
                f"Idempotency guard tripped on {self.collection} "
                f"key={self.natural_key(values)} existing={existing['_id']}"
            )
            raise DuplicateError(message)
