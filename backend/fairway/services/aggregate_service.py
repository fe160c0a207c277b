"""
派生聚合重算 - 球童平均评分

每次新评价落库后，全量重读该球童的所有评价重新计算 avgRating / ratingCount，
而不是增量累加：不会累积舍入误差，之前丢失的重算也能被下一次纠正。
同一进程内对同一球童的重算串行执行（扫描 + 写回），
最后执行的重算一定在所有已调度评价插入之后扫描，最终结果一致。
多进程部署时不同进程之间仍是最后写入者生效。
"""
from typing import Any, Callable, Dict, Optional
from datetime import datetime
import logging
import threading
import weakref

from fairway.models.ontology import Collection
from fairway.services.document_store import DocumentStore
from fairway.services.numeric_utils import mean_rounded

logger = logging.getLogger(__name__)


class CaddieAggregateRecomputer:
    """球童评分聚合重算"""

    # 没有线程持有的锁随之回收
    _locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
    _locks_guard = threading.Lock()

    def __init__(self, store: DocumentStore, now_func: Callable[[], datetime] = None):
        self.store = store
        self._now = now_func or datetime.now

    def recompute(self, caddie_id: str) -> Optional[Dict[str, Any]]:
        """
        重算并写回球童的 avgRating / ratingCount

        Returns:
            写入的聚合字段；没有任何评价时不写入，返回 None

        Raises:
            DocumentNotFound: 球童记录不存在
        """
        with self._lock_for(caddie_id):
            return self._recompute(caddie_id)

    @classmethod
    def _lock_for(cls, caddie_id: str) -> threading.Lock:
        with cls._locks_guard:
            return cls._locks.setdefault(caddie_id, threading.Lock())

    def _recompute(self, caddie_id: str) -> Optional[Dict[str, Any]]:
        ratings = self.store.query(Collection.CADDIE_RATINGS, {"caddieId": caddie_id})
        if not ratings:
            return None

        aggregate = {
            "avgRating": mean_rounded(r.get("avgScore", 0) for r in ratings),
            "ratingCount": len(ratings),
        }
        self.store.update(Collection.CADDIES, caddie_id, {**aggregate, "updatedAt": self._now()})
        logger.info(
            f"Caddie {caddie_id} aggregate recomputed: "
            f"avgRating={aggregate['avgRating']} ratingCount={aggregate['ratingCount']}"
        )
        return aggregate
