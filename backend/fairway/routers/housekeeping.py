"""
客房清洁任务路由
集合：housekeeping_tasks
"""
from typing import Optional
from fastapi import APIRouter, Depends

from fairway.models.schemas import TaskCreate, TaskStart, TaskInspect
from fairway.services.document_store import DocumentStore, get_store
from fairway.services.housekeeping_service import HousekeepingService

router = APIRouter(prefix="/api/housekeeping", tags=["客房清洁"])


@router.get("/tasks")
def list_tasks(
    clubId: str = "default",
    status: Optional[str] = None,
    floor: Optional[str] = None,
    priority: Optional[str] = None,
    store: DocumentStore = Depends(get_store)
):
    """任务列表"""
    tasks = HousekeepingService(store).list_tasks(clubId, status, floor, priority)
    return {"success": True, "data": tasks}


@router.post("/tasks")
def create_task(data: TaskCreate, store: DocumentStore = Depends(get_store)):
    """创建任务"""
    task = HousekeepingService(store).create_task(
        room_id=data.roomId,
        club_id=data.clubId,
        room_no=data.roomNo,
        floor=data.floor,
        task_type=data.taskType,
        priority=data.priority,
        assigned_to=data.assignedTo,
        assigned_name=data.assignedName,
        notes=data.notes,
    )
    return {"success": True, "data": task}


@router.get("/tasks/{task_id}")
def get_task(task_id: str, store: DocumentStore = Depends(get_store)):
    """任务详情"""
    return {"success": True, "data": HousekeepingService(store).get_task(task_id)}


@router.put("/tasks/{task_id}/start")
def start_task(task_id: str, data: Optional[TaskStart] = None, store: DocumentStore = Depends(get_store)):
    """开始清洁"""
    data = data or TaskStart()
    task = HousekeepingService(store).start_task(task_id, data.assignedTo, data.assignedName)
    return {"success": True, "message": "已开始清洁", "data": task}


@router.put("/tasks/{task_id}/complete")
def complete_task(task_id: str, store: DocumentStore = Depends(get_store)):
    """完成清洁，客房进入待查房"""
    task = HousekeepingService(store).complete_task(task_id)
    return {"success": True, "message": "清洁完成，待查房", "data": task}


@router.put("/tasks/{task_id}/inspect")
def inspect_task(task_id: str, data: Optional[TaskInspect] = None, store: DocumentStore = Depends(get_store)):
    """查房通过，客房就绪"""
    data = data or TaskInspect()
    task = HousekeepingService(store).inspect_task(task_id, data.inspectedBy)
    return {"success": True, "message": "查房通过，客房已就绪", "data": task}
