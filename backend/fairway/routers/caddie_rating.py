"""
球员端球童评价路由
提交评价 / 查询待评价列表
"""
from fastapi import APIRouter, Depends

from fairway.models.schemas import RatingSubmit
from fairway.security.auth import PlayerIdentity, get_current_player
from fairway.services.document_store import DocumentStore, get_store
from fairway.services.rating_service import RatingService

router = APIRouter(prefix="/api/miniapp/caddie-rating", tags=["球童评价"])


@router.get("/pending-ratings")
def pending_ratings(
    player: PlayerIdentity = Depends(get_current_player),
    store: DocumentStore = Depends(get_store)
):
    """待评价球童列表"""
    return {"success": True, "data": RatingService(store).get_pending_ratings(player.player_id)}


@router.post("/{caddie_id}/rate")
def rate_caddie(
    caddie_id: str,
    data: RatingSubmit,
    player: PlayerIdentity = Depends(get_current_player),
    store: DocumentStore = Depends(get_store)
):
    """提交球童评价（球童平均分在后台更新）"""
    rating = RatingService(store).submit_rating(
        player_id=player.player_id,
        caddie_id=caddie_id,
        booking_id=data.bookingId,
        scores=data.scores,
        tags=data.tags,
        comment=data.comment,
        anonymous=data.anonymous,
        club_id=player.club_id,
    )
    return {
        "success": True,
        "message": "评价提交成功",
        "data": {"ratingId": rating["_id"], "avgScore": rating["avgScore"]},
    }
