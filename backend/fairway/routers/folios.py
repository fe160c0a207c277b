"""
球员端消费账单路由
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query

from fairway.security.auth import PlayerIdentity, get_current_player
from fairway.services.document_store import DocumentStore, get_store
from fairway.services.folio_service import FolioService

router = APIRouter(prefix="/api/miniapp/folios", tags=["消费账单"])


@router.get("/mine")
def my_folios(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    player: PlayerIdentity = Depends(get_current_player),
    store: DocumentStore = Depends(get_store)
):
    """我的账单列表"""
    folios = FolioService(store).list_my_folios(player.player_id, player.club_id, status, page, limit)
    return {"success": True, "data": folios}


@router.get("/{folio_id}")
def folio_detail(
    folio_id: str,
    player: PlayerIdentity = Depends(get_current_player),
    store: DocumentStore = Depends(get_store)
):
    """账单详情（含消费明细）"""
    return {"success": True, "data": FolioService(store).get_folio(player.player_id, folio_id)}


@router.get("/{folio_id}/live")
def folio_live(
    folio_id: str,
    player: PlayerIdentity = Depends(get_current_player),
    store: DocumentStore = Depends(get_store)
):
    """实时账单（最新消费在前）"""
    data = FolioService(store).get_folio(player.player_id, folio_id, newest_first=True)
    return {"success": True, "data": data}
