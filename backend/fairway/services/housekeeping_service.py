"""
客房清洁任务服务 - 任务生命周期状态机

任务状态严格向前推进：pending → in_progress → completed → inspected。
客房状态是任务状态的投影：完成清洁后客房变为 inspected（待查房），
查房通过后变为 vacant_clean 并记录 lastCleaned。

存储没有跨集合事务，每次状态推进先写任务、再写客房：
- 任务写入失败：整个操作失败，不产生任何副作用
- 任务已写入、客房写入失败：记录 PARTIAL FAILURE 日志并返回 partial_failure，
  任务状态已推进而客房状态滞后，需要人工核对
"""
from typing import Any, Callable, Dict, List, Optional
from datetime import datetime
import logging

from sqlalchemy.exc import SQLAlchemyError

from fairway.models.ontology import Collection, TaskStatus, RoomStatus
from fairway.models.events import EventType, TaskCreatedData, TaskTransitionData
from fairway.services.document_store import DocumentStore, DocumentNotFound, StaleDocument
from fairway.services.errors import (
    ValidationError, NotFoundError, InvalidStateError, PartialFailureError, InternalError
)
from fairway.services.event_bus import event_bus, Event

logger = logging.getLogger(__name__)

# 动作 -> (要求的当前状态, 目标状态, 中文名)
TRANSITIONS = {
    "start": (TaskStatus.PENDING, TaskStatus.IN_PROGRESS, "开始"),
    "complete": (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, "完成"),
    "inspect": (TaskStatus.COMPLETED, TaskStatus.INSPECTED, "查房"),
}

TASK_LIST_LIMIT = 200


class HousekeepingService:
    """清洁任务服务"""

    def __init__(self, store: DocumentStore,
                 event_publisher: Callable[[Event], None] = None,
                 now_func: Callable[[], datetime] = None):
        self.store = store
        # 支持依赖注入事件发布器和时钟，便于测试
        self._publish_event = event_publisher or event_bus.publish
        self._now = now_func or datetime.now

    # ---------- 查询 ----------

    def list_tasks(self, club_id: str = "default", status: Optional[str] = None,
                   floor: Optional[str] = None, priority: Optional[str] = None) -> List[Dict[str, Any]]:
        """任务列表（最新的在前）"""
        where = {"clubId": club_id}
        if status:
            where["status"] = status
        if floor:
            where["floor"] = floor
        if priority:
            where["priority"] = priority
        return self.store.query(
            Collection.HOUSEKEEPING_TASKS, where,
            order_by="createdAt", descending=True, limit=TASK_LIST_LIMIT
        )

    def get_task(self, task_id: str) -> Dict[str, Any]:
        task = self.store.get(Collection.HOUSEKEEPING_TASKS, task_id)
        if not task:
            raise NotFoundError("任务不存在")
        return task

    # ---------- 创建 ----------

    def create_task(self, room_id: Optional[str], club_id: str = "default",
                    room_no: str = "", floor: str = "",
                    task_type: str = "checkout_clean", priority: str = "normal",
                    assigned_to: Optional[str] = None, assigned_name: str = "",
                    notes: str = "") -> Dict[str, Any]:
        """创建任务，初始状态 pending"""
        if not room_id:
            raise ValidationError("请选择客房")

        task = self.store.insert(Collection.HOUSEKEEPING_TASKS, {
            "clubId": club_id,
            "roomId": room_id,
            "roomNo": room_no or "",
            "floor": floor or "",
            "taskType": task_type,
            "priority": priority,
            "status": TaskStatus.PENDING,
            "assignedTo": assigned_to or None,
            "assignedName": assigned_name or "",
            "startedAt": None,
            "completedAt": None,
            "inspectedBy": None,
            "inspectedAt": None,
            "notes": notes or "",
            "createdAt": self._now(),
        })

        self._publish_event(Event(
            event_type=EventType.TASK_CREATED,
            timestamp=datetime.now(),
            data=TaskCreatedData(
                task_id=task["_id"],
                room_id=room_id,
                room_no=task["roomNo"],
                task_type=task_type,
                priority=priority,
            ).to_dict(),
            source="housekeeping_service"
        ))
        return task

    # ---------- 状态推进 ----------

    def start_task(self, task_id: str, assigned_to: Optional[str] = None,
                   assigned_name: Optional[str] = None) -> Dict[str, Any]:
        """开始清洁：pending → in_progress，不影响客房"""
        task = self.get_task(task_id)
        updated = self._advance(task, "start", {
            "assignedTo": assigned_to or None,
            "assignedName": assigned_name or "",
            "startedAt": self._now(),
        })
        self._publish_transition(task, updated, operator=assigned_to)
        return updated

    def complete_task(self, task_id: str) -> Dict[str, Any]:
        """
        完成清洁：in_progress → completed
        业务联动：任务关联了客房时，客房状态变为 inspected（待查房）
        """
        task = self.get_task(task_id)
        updated = self._advance(task, "complete", {"completedAt": self._now()})

        room_status = None
        if updated.get("roomId"):
            self._write_room(updated, {"status": RoomStatus.INSPECTED})
            room_status = RoomStatus.INSPECTED.value

        self._publish_transition(task, updated, operator=updated.get("assignedTo"),
                                 room_status=room_status)
        return updated

    def inspect_task(self, task_id: str, inspected_by: Optional[str] = None) -> Dict[str, Any]:
        """
        查房通过：completed → inspected
        业务联动：任务关联了客房时，客房变为 vacant_clean 并写入 lastCleaned
        """
        task = self.get_task(task_id)
        now = self._now()
        updated = self._advance(task, "inspect", {
            "inspectedBy": inspected_by or None,
            "inspectedAt": now,
        })

        room_status = None
        if updated.get("roomId"):
            self._write_room(updated, {
                "status": RoomStatus.VACANT_CLEAN,
                "lastCleaned": {
                    "cleanedBy": updated.get("assignedTo"),
                    "cleanedAt": updated.get("completedAt") or now,
                    "inspectedBy": inspected_by or None,
                    "inspectedAt": updated["inspectedAt"],
                },
            })
            room_status = RoomStatus.VACANT_CLEAN.value

        self._publish_transition(task, updated, operator=inspected_by, room_status=room_status)
        return updated

    def _advance(self, task: Dict[str, Any], action: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        第一步写入：按状态机推进任务

        以当前状态为条件做单文档比较并设置，并发调用中只有一个能推进成功。
        """
        required, target, label = TRANSITIONS[action]
        task_id = task["_id"]
        if task.get("status") != required.value:
            raise InvalidStateError(f"状态为 {task.get('status')} 的任务无法{label}")

        try:
            return self.store.update(
                Collection.HOUSEKEEPING_TASKS, task_id,
                {"status": target, **fields},
                expect={"status": required}
            )
        except StaleDocument as e:
            raise InvalidStateError(f"状态为 {e.current.get('status')} 的任务无法{label}")
        except DocumentNotFound:
            raise NotFoundError("任务不存在")
        except SQLAlchemyError as e:
            logger.error(
                f"TRANSITION FAILED: task {task_id} {action} "
                f"({required.value} → {target.value}) not applied: {e}",
                exc_info=True
            )
            raise InternalError(f"任务{label}失败")

    def _write_room(self, task: Dict[str, Any], fields: Dict[str, Any]) -> None:
        """第二步写入：客房状态投影，失败不重试"""
        room_id = task["roomId"]
        try:
            self.store.update(Collection.ROOMS, room_id, fields)
        except (DocumentNotFound, SQLAlchemyError) as e:
            logger.error(
                f"PARTIAL FAILURE: task {task['_id']} advanced to {task['status']} "
                f"but room {room_id} was not updated: {e}",
                exc_info=True
            )
            raise PartialFailureError(
                f"任务已更新为 {task['status']}，但客房 {task.get('roomNo') or room_id} 状态同步失败",
                applied={"taskId": task["_id"], "taskStatus": task["status"], "roomId": room_id}
            )

    def _publish_transition(self, before: Dict[str, Any], after: Dict[str, Any],
                            operator: Optional[str] = None,
                            room_status: Optional[str] = None) -> None:
        event_type = {
            TaskStatus.IN_PROGRESS.value: EventType.TASK_STARTED,
            TaskStatus.COMPLETED.value: EventType.TASK_COMPLETED,
            TaskStatus.INSPECTED.value: EventType.TASK_INSPECTED,
        }[after["status"]]
        self._publish_event(Event(
            event_type=event_type,
            timestamp=datetime.now(),
            data=TaskTransitionData(
                task_id=after["_id"],
                room_id=after.get("roomId"),
                old_status=before["status"],
                new_status=after["status"],
                operator=operator,
                room_status=room_status,
            ).to_dict(),
            source="housekeeping_service"
        ))
