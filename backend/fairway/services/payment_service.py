"""
球员端支付服务
充值订单 / 支付结果查询 / Folio 结账快照

Folio 结账读取账单当前全部消费明细、求和并生成不可变的待支付订单。
读取与下单之间没有锁：读取之后才入账的消费不计入本次订单，
由员工端结算流程负责核对。订单创建后金额不再变化，
只有外部支付回调会修改 status / paidAt。
"""
from typing import Any, Callable, Dict, Optional
from datetime import datetime
import logging
import secrets

from fairway.config import settings
from fairway.models.ontology import Collection, FolioStatus, PayOrderType, PayOrderStatus
from fairway.models.events import EventType, PayOrderCreatedData
from fairway.services.document_store import DocumentStore
from fairway.services.errors import ValidationError, NotFoundError, ForbiddenError, InvalidStateError
from fairway.services.event_bus import event_bus, Event
from fairway.services.numeric_utils import sum_amounts, to_decimal, to_fen, has_at_most_two_decimals

logger = logging.getLogger(__name__)

ORDER_PREFIX = {
    PayOrderType.RECHARGE: ("RC", 4),
    PayOrderType.FOLIO_PAYMENT: ("FP", 5),
}


def generate_order_no(order_type: PayOrderType, now: datetime) -> str:
    """订单号：前缀 + 时间戳（到秒） + 随机数字后缀，可按时间排序"""
    prefix, digits = ORDER_PREFIX[order_type]
    suffix = str(secrets.randbelow(10 ** digits)).zfill(digits)
    return f"{prefix}{now.strftime('%Y%m%d%H%M%S')}{suffix}"


class PaymentService:
    """支付订单服务"""

    def __init__(self, store: DocumentStore,
                 event_publisher: Callable[[Event], None] = None,
                 now_func: Callable[[], datetime] = None):
        self.store = store
        self._publish_event = event_publisher or event_bus.publish
        self._now = now_func or datetime.now

    def _create_order(self, player_id: str, club_id: Optional[str], order_type: PayOrderType,
                      amount: Any, folio_id: Optional[str] = None,
                      charge_ids: Optional[list] = None) -> Dict[str, Any]:
        now = self._now()
        order = {
            "orderNo": generate_order_no(order_type, now),
            "playerId": player_id,
            "clubId": club_id,
            "type": order_type,
            "amount": float(amount),
            "amountFen": to_fen(amount),
            "status": PayOrderStatus.PENDING,
            "createdAt": now,
            "updatedAt": now,
        }
        if folio_id:
            order["folioId"] = folio_id
        saved = self.store.insert(Collection.PAY_ORDERS, order)

        self._publish_event(Event(
            event_type=EventType.PAY_ORDER_CREATED,
            timestamp=datetime.now(),
            data=PayOrderCreatedData(
                order_id=saved["_id"],
                order_no=saved["orderNo"],
                order_type=saved["type"],
                player_id=player_id,
                amount=saved["amount"],
                folio_id=folio_id,
                charge_ids=charge_ids or [],
            ).to_dict(),
            source="payment_service"
        ))
        return saved

    def create_recharge(self, player_id: str, amount: Any, club_id: Optional[str] = None) -> Dict[str, Any]:
        """
        创建充值订单

        实际支付参数由外部支付服务下发，这里只生成待支付订单
        """
        if isinstance(amount, bool):
            raise ValidationError("充值金额无效")
        try:
            value = to_decimal(amount)
        except (ArithmeticError, TypeError, ValueError):
            raise ValidationError("充值金额无效")
        if not value.is_finite():
            raise ValidationError("充值金额无效")
        low, high = settings.RECHARGE_MIN, settings.RECHARGE_MAX
        if not to_decimal(low) <= value <= to_decimal(high):
            raise ValidationError(f"充值金额无效（{low:g}-{high:g}）")
        if not has_at_most_two_decimals(value):
            raise ValidationError("金额精度最多两位小数")

        return self._create_order(player_id, club_id, PayOrderType.RECHARGE, value)

    def get_pay_result(self, player_id: str, order_id: str) -> Dict[str, Any]:
        """查询支付结果，非本人订单按不存在处理"""
        order = self.store.get(Collection.PAY_ORDERS, order_id)
        if not order or order.get("playerId") != player_id:
            raise NotFoundError("订单不存在")
        return {
            "orderId": order["_id"],
            "orderNo": order["orderNo"],
            "amount": order["amount"],
            "status": order["status"],
            "paidAt": order.get("paidAt"),
        }

    def build_folio_checkout(self, player_id: str, folio_id: str,
                             club_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Folio 结账：按读取时刻的消费明细生成待支付订单

        Raises:
            NotFoundError: 账单不存在
            ForbiddenError: 账单不属于该球员
            InvalidStateError: 账单不是 open 状态
        """
        folio = self.store.get(Collection.FOLIOS, folio_id)
        if not folio:
            raise NotFoundError("账单不存在")
        if folio.get("playerId") != player_id:
            raise ForbiddenError("无权操作该账单")
        if folio.get("status") != FolioStatus.OPEN.value:
            raise InvalidStateError("账单状态不允许结账")

        # 同一账单允许存在多笔待支付订单（用于重试），这里只记录告警
        existing = self.store.count(Collection.PAY_ORDERS, {
            "folioId": folio_id,
            "type": PayOrderType.FOLIO_PAYMENT,
            "status": PayOrderStatus.PENDING,
        })
        if existing:
            logger.warning(f"Folio {folio_id} already has {existing} pending payment order(s)")

        charges = self.store.query(Collection.FOLIO_CHARGES, {"folioId": folio_id})
        total = sum_amounts(c.get("amount") or 0 for c in charges)

        return self._create_order(
            player_id, club_id or folio.get("clubId"), PayOrderType.FOLIO_PAYMENT, total,
            folio_id=folio_id, charge_ids=[c["_id"] for c in charges]
        )
