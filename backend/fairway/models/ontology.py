"""
领域本体定义
集合名称与各实体的状态枚举
"""
from enum import Enum


class Collection(str, Enum):
    """文档集合"""
    HOUSEKEEPING_TASKS = "housekeeping_tasks"
    ROOMS = "rooms"
    BOOKINGS = "bookings"
    CADDIES = "caddies"
    CADDIE_RATINGS = "caddie_ratings"
    FOLIOS = "folios"
    FOLIO_CHARGES = "folio_charges"
    PAY_ORDERS = "pay_orders"


class TaskStatus(str, Enum):
    """清洁任务状态（只能按声明顺序前进）"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    INSPECTED = "inspected"


class RoomStatus(str, Enum):
    """本服务会写入的客房状态"""
    INSPECTED = "inspected"          # 已清洁，待查房
    VACANT_CLEAN = "vacant_clean"    # 空净房，可售


class BookingStatus(str, Enum):
    COMPLETED = "completed"


class FolioStatus(str, Enum):
    OPEN = "open"
    SETTLED = "settled"
    VOID = "void"


class PayOrderType(str, Enum):
    RECHARGE = "recharge"
    FOLIO_PAYMENT = "folio_payment"


class PayOrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


# 球童评价的五个维度
RATING_DIMENSIONS = ("attitude", "skill", "knowledge", "pace", "overall")
