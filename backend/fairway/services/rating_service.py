"""
球童评价服务 - 球员端

提交评价：校验 → 幂等守卫 → 预订归属校验 → 落库 → 后台重算球童平均分。
请求是否成功只取决于评价是否落库；聚合重算在后台执行，失败只记日志。
"""
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional
from datetime import datetime, date, timedelta
from decimal import Decimal, InvalidOperation
import logging

from fairway.config import settings
from fairway.models.ontology import Collection, BookingStatus, RATING_DIMENSIONS
from fairway.models.events import EventType, RatingSubmittedData
from fairway.services.document_store import DocumentStore, DuplicateKey, command
from fairway.services.errors import (
    ValidationError, NotFoundError, ForbiddenError, DuplicateError, InvalidStateError
)
from fairway.services.event_bus import event_bus, Event
from fairway.services.idempotency import IdempotencyGuard
from fairway.services.numeric_utils import mean_rounded

logger = logging.getLogger(__name__)

MAX_TAGS = 10
MAX_COMMENT_LENGTH = 500
PENDING_BOOKING_LIMIT = 50
DUPLICATE_MESSAGE = "该次服务已评价，不可重复提交"


def _parse_score(value: Any) -> Optional[int]:
    """1-5 的整数评分，非法返回 None"""
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None
    if number != number.to_integral_value() or not 1 <= number <= 5:
        return None
    return int(number)


def validate_scores(scores: Any) -> Dict[str, int]:
    """校验五个维度的评分，返回整数评分"""
    if not isinstance(scores, Mapping):
        raise ValidationError("评分数据不正确")
    parsed = {}
    for dimension in RATING_DIMENSIONS:
        score = _parse_score(scores.get(dimension))
        if score is None:
            raise ValidationError(f"{dimension} 评分需在 1-5 之间")
        parsed[dimension] = score
    return parsed


class RatingService:
    """球童评价服务"""

    def __init__(self, store: DocumentStore,
                 event_publisher: Callable[[Event], Any] = None,
                 now_func: Callable[[], datetime] = None):
        self.store = store
        # 默认交给事件总线后台执行，调用方不等待
        self._schedule = event_publisher or event_bus.publish_async
        self._now = now_func or datetime.now
        self.guard = IdempotencyGuard(store, Collection.CADDIE_RATINGS, ("playerId", "bookingId"))

    def submit_rating(self, player_id: str, caddie_id: str, booking_id: str,
                      scores: Any, tags: Optional[Iterable[str]] = None,
                      comment: Optional[str] = None, anonymous: bool = False,
                      club_id: Optional[str] = None) -> Dict[str, Any]:
        """
        提交球童评价

        Raises:
            ValidationError: 缺少参数、评分越界、评论过长、预订未安排该球童
            DuplicateError: 同一球员对同一预订已评价
            NotFoundError: 预订不存在
            ForbiddenError: 预订不属于该球员
            InvalidStateError: 预订尚未完成
        """
        if not caddie_id:
            raise ValidationError("缺少球童 ID")
        if not booking_id:
            raise ValidationError("缺少预订 ID")
        numeric_scores = validate_scores(scores)
        if comment is not None and not isinstance(comment, str):
            raise ValidationError("评论格式不正确")
        if comment and len(comment) > MAX_COMMENT_LENGTH:
            raise ValidationError(f"评论不超过 {MAX_COMMENT_LENGTH} 字")

        key_values = {"playerId": player_id, "bookingId": booking_id}
        self.guard.check(key_values, DUPLICATE_MESSAGE)

        booking = self.store.get(Collection.BOOKINGS, booking_id)
        if not booking:
            raise NotFoundError("预订不存在")
        if booking.get("playerId") != player_id:
            raise ForbiddenError("无权评价该预订")
        if booking.get("status") != BookingStatus.COMPLETED.value:
            raise InvalidStateError("该预订尚未完成，暂不能评价")
        if not booking.get("caddieId"):
            raise ValidationError("该预订未安排球童")
        if booking["caddieId"] != caddie_id:
            raise ValidationError("球童与预订不符")

        rating = {
            "playerId": player_id,
            "clubId": club_id or booking.get("clubId"),
            "caddieId": caddie_id,
            "bookingId": booking_id,
            "scores": numeric_scores,
            "avgScore": mean_rounded(numeric_scores.values()),
            "tags": [str(t) for t in list(tags or [])[:MAX_TAGS]],
            "comment": (comment or "").strip()[:MAX_COMMENT_LENGTH],
            "anonymous": bool(anonymous),
            "createdAt": self._now(),
        }

        try:
            saved = self.store.insert(
                Collection.CADDIE_RATINGS, rating,
                unique_key=self.guard.natural_key(key_values)
            )
        except DuplicateKey:
            logger.info(f"Concurrent duplicate rating rejected by store: {player_id}/{booking_id}")
            raise DuplicateError(DUPLICATE_MESSAGE)

        self._schedule_recompute(saved)
        return saved

    def _schedule_recompute(self, rating: Dict[str, Any]) -> None:
        """调度球童聚合重算；调度失败也不影响已落库的评价"""
        event = Event(
            event_type=EventType.RATING_SUBMITTED,
            timestamp=datetime.now(),
            data=RatingSubmittedData(
                rating_id=rating["_id"],
                caddie_id=rating["caddieId"],
                booking_id=rating["bookingId"],
                player_id=rating["playerId"],
                avg_score=rating["avgScore"],
            ).to_dict(),
            source="rating_service"
        )
        try:
            self._schedule(event)
        except Exception as e:
            logger.error(
                f"Failed to schedule aggregate recompute for caddie {rating['caddieId']}: {e}",
                exc_info=True
            )

    def get_pending_ratings(self, player_id: str, today: Optional[date] = None) -> List[Dict[str, Any]]:
        """近期已完成、安排了球童且尚未评价的预订"""
        cutoff = ((today or date.today()) - timedelta(days=settings.RATING_LOOKBACK_DAYS)).isoformat()
        bookings = self.store.query(Collection.BOOKINGS, {
            "playerId": player_id,
            "status": BookingStatus.COMPLETED,
            "date": command.gte(cutoff),
        }, order_by="date", descending=True, limit=PENDING_BOOKING_LIMIT)

        caddie_bookings = [b for b in bookings if b.get("caddieId")]
        if not caddie_bookings:
            return []

        rated = self.store.query(Collection.CADDIE_RATINGS, {
            "playerId": player_id,
            "bookingId": command.in_(b["_id"] for b in caddie_bookings),
        })
        rated_ids = {r["bookingId"] for r in rated}

        return [
            {
                "bookingId": b["_id"],
                "caddieId": b["caddieId"],
                "caddieName": b.get("caddieName", ""),
                "date": b.get("date"),
                "courseName": b.get("courseName", ""),
            }
            for b in caddie_bookings
            if b["_id"] not in rated_ids
        ]
