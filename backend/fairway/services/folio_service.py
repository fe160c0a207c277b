"""
球员端消费账单（只读视图）
"""
from typing import Any, Dict, List, Optional

from fairway.models.ontology import Collection
from fairway.services.document_store import DocumentStore
from fairway.services.errors import NotFoundError


class FolioService:
    """账单查询服务"""

    def __init__(self, store: DocumentStore):
        self.store = store

    def list_my_folios(self, player_id: str, club_id: str, status: Optional[str] = None,
                       page: int = 1, limit: int = 20) -> List[Dict[str, Any]]:
        """我的账单列表（最新的在前）"""
        where = {"playerId": player_id, "clubId": club_id}
        if status:
            where["status"] = status
        page = max(page, 1)
        return self.store.query(
            Collection.FOLIOS, where, order_by="createdAt", descending=True,
            skip=(page - 1) * limit, limit=limit
        )

    def _own_folio(self, player_id: str, folio_id: str) -> Dict[str, Any]:
        folio = self.store.get(Collection.FOLIOS, folio_id)
        if not folio or folio.get("playerId") != player_id:
            raise NotFoundError("账单不存在")
        return folio

    def get_folio(self, player_id: str, folio_id: str, newest_first: bool = False) -> Dict[str, Any]:
        """账单详情（含消费明细）；newest_first 用于场中实时账单"""
        folio = self._own_folio(player_id, folio_id)
        charges = self.store.query(
            Collection.FOLIO_CHARGES, {"folioId": folio_id},
            order_by="createdAt", descending=newest_first
        )
        return {"folio": folio, "charges": charges}
