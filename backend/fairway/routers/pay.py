"""
球员端支付路由
充值 / 支付结果查询 / Folio 结账
"""
from fastapi import APIRouter, Depends

from fairway.models.schemas import RechargeRequest
from fairway.security.auth import PlayerIdentity, get_current_player
from fairway.services.document_store import DocumentStore, get_store
from fairway.services.payment_service import PaymentService

router = APIRouter(prefix="/api/miniapp/pay", tags=["支付"])


def _order_view(order: dict, message: str) -> dict:
    return {
        "orderId": order["_id"],
        "orderNo": order["orderNo"],
        "amount": order["amount"],
        "amountFen": order["amountFen"],
        "status": order["status"],
        "message": message,
    }


@router.post("/recharge")
def recharge(
    data: RechargeRequest,
    player: PlayerIdentity = Depends(get_current_player),
    store: DocumentStore = Depends(get_store)
):
    """创建充值订单"""
    order = PaymentService(store).create_recharge(player.player_id, data.amount, player.club_id)
    return {"success": True, "data": _order_view(order, "充值订单已创建，请完成支付")}


@router.get("/result/{order_id}")
def pay_result(
    order_id: str,
    player: PlayerIdentity = Depends(get_current_player),
    store: DocumentStore = Depends(get_store)
):
    """查询支付结果"""
    return {"success": True, "data": PaymentService(store).get_pay_result(player.player_id, order_id)}


@router.post("/folio/{folio_id}")
def folio_checkout(
    folio_id: str,
    player: PlayerIdentity = Depends(get_current_player),
    store: DocumentStore = Depends(get_store)
):
    """Folio 账单结账"""
    order = PaymentService(store).build_folio_checkout(player.player_id, folio_id, player.club_id)
    return {"success": True, "data": _order_view(order, "支付订单已创建")}
