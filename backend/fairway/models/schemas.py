"""
Pydantic 模式定义
用于 API 请求验证；评分等业务范围校验由服务层完成，以便返回统一的错误类型
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


# ============== 清洁任务 Schemas ==============

class TaskCreate(BaseModel):
    clubId: str = "default"
    roomId: Optional[str] = None
    roomNo: Optional[str] = ""
    floor: Optional[str] = ""
    taskType: str = "checkout_clean"
    priority: str = "normal"
    assignedTo: Optional[str] = None
    assignedName: Optional[str] = ""
    notes: Optional[str] = ""


class TaskStart(BaseModel):
    assignedTo: Optional[str] = None
    assignedName: Optional[str] = None


class TaskInspect(BaseModel):
    inspectedBy: Optional[str] = None


# ============== 球童评价 Schemas ==============

class RatingSubmit(BaseModel):
    bookingId: Optional[str] = None
    scores: Optional[Dict[str, Any]] = None
    tags: Optional[List[str]] = None
    comment: Optional[str] = None
    anonymous: bool = False


# ============== 支付 Schemas ==============

class RechargeRequest(BaseModel):
    amount: Any = Field(None, description="充值金额（元），最多两位小数")
