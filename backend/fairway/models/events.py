"""
领域事件定义 (Domain Events)
遵循事件驱动架构，定义跨实体工作流中的核心业务事件
"""
from enum import Enum
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional, Dict, Any, List


class EventType(str, Enum):
    """事件类型枚举"""
    # 清洁任务
    TASK_CREATED = "task.created"
    TASK_STARTED = "task.started"
    TASK_COMPLETED = "task.completed"
    TASK_INSPECTED = "task.inspected"

    # 球童评价
    RATING_SUBMITTED = "rating.submitted"

    # 支付
    PAY_ORDER_CREATED = "pay_order.created"


@dataclass
class BaseEventData:
    """事件数据基类"""
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        result = asdict(self)
        # 处理 datetime 序列化
        for key, value in result.items():
            if isinstance(value, datetime):
                result[key] = value.isoformat()
        return result


@dataclass
class TaskCreatedData(BaseEventData):
    """清洁任务创建事件数据"""
    task_id: str = ""
    room_id: Optional[str] = None
    room_no: str = ""
    task_type: str = ""
    priority: str = ""


@dataclass
class TaskTransitionData(BaseEventData):
    """清洁任务状态推进事件数据（start/complete/inspect 共用）"""
    task_id: str = ""
    room_id: Optional[str] = None
    old_status: str = ""
    new_status: str = ""
    operator: Optional[str] = None
    room_status: Optional[str] = None


@dataclass
class RatingSubmittedData(BaseEventData):
    """球童评价提交事件数据"""
    rating_id: str = ""
    caddie_id: str = ""
    booking_id: str = ""
    player_id: str = ""
    avg_score: float = 0.0


@dataclass
class PayOrderCreatedData(BaseEventData):
    """支付订单创建事件数据"""
    order_id: str = ""
    order_no: str = ""
    order_type: str = ""
    player_id: str = ""
    amount: float = 0.0
    folio_id: Optional[str] = None
    charge_ids: List[str] = field(default_factory=list)
