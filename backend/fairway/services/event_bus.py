"""
事件总线 - 内存级发布/订阅模式
实现轻量级事件驱动架构，解耦业务模块

publish 同步执行处理器；publish_async 把事件交给后台线程池，
调用方不等待结果，处理器异常只记录日志，不会回传给调用方。
"""
from typing import Callable, Dict, List, Any, Optional, Set
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime
from collections import deque
import logging
import threading
import uuid

logger = logging.getLogger(__name__)


def _generate_event_id() -> str:
    """生成唯一事件ID"""
    return f"{datetime.now().strftime('%Y%m%d%H%M%S')}_{uuid.uuid4().hex[:8]}"


@dataclass
class Event:
    """事件基类"""
    event_type: str
    timestamp: datetime
    data: Dict[str, Any]
    source: str  # 触发来源（服务名）
    event_id: str = field(default_factory=_generate_event_id)


class EventBus:
    """
    内存级事件总线（线程安全单例模式）

    使用方式：
    1. 订阅事件：event_bus.subscribe("rating.submitted", handler_func)
    2. 同步发布：event_bus.publish(Event(...))
    3. 后台发布：event_bus.publish_async(Event(...))
    4. 取消订阅：event_bus.unsubscribe("rating.submitted", handler_func)
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls, max_workers: int = 4):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self, max_workers: int = 4):
        if self._initialized:
            return
        self._subscribers: Dict[str, List[Callable]] = {}
        self._event_history: deque = deque(maxlen=100)  # 保留最近100条用于调试
        self._subscriber_lock = threading.Lock()
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()
        self._pending: Set[Future] = set()
        self._pending_lock = threading.Lock()
        self._initialized = True
        logger.info("EventBus initialized")

    def configure(self, max_workers: int) -> None:
        """设置后台线程池大小（下次创建线程池时生效）"""
        self._max_workers = max_workers

    def subscribe(self, event_type: str, handler: Callable) -> None:
        """
        订阅事件

        Args:
            event_type: 事件类型（如 "rating.submitted"）
            handler: 处理函数，接收 Event 对象作为参数
        """
        with self._subscriber_lock:
            if event_type not in self._subscribers:
                self._subscribers[event_type] = []
            if handler not in self._subscribers[event_type]:
                self._subscribers[event_type].append(handler)
                logger.info(f"Handler {handler.__name__} subscribed to {event_type}")

    def unsubscribe(self, event_type: str, handler: Callable) -> None:
        """取消订阅"""
        with self._subscriber_lock:
            if event_type in self._subscribers and handler in self._subscribers[event_type]:
                self._subscribers[event_type].remove(handler)
                logger.info(f"Handler {handler.__name__} unsubscribed from {event_type}")

    def _dispatch(self, event: Event) -> int:
        """执行所有处理器，返回失败的处理器数量"""
        with self._subscriber_lock:
            handlers = self._subscribers.get(event.event_type, []).copy()

        if handlers:
            logger.info(f"Publishing {event.event_type} to {len(handlers)} handlers")

        failures = 0
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                failures += 1
                logger.error(
                    f"Event handler {handler.__name__} error for {event.event_type}: {e}",
                    exc_info=True
                )
        return failures

    def publish(self, event: Event) -> None:
        """
        发布事件（同步执行所有处理器）

        处理器异常不会影响其他处理器的执行
        """
        self._event_history.append(event)
        self._dispatch(event)

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix="event-bus"
                )
            return self._executor

    def publish_async(self, event: Event) -> Future:
        """
        发布事件（后台线程池执行，不阻塞调用方）

        Returns:
            Future，结果为失败的处理器数量；调用方无需等待
        """
        self._event_history.append(event)
        future = self._get_executor().submit(self._dispatch, event)
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._discard_pending)
        return future

    def _discard_pending(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def wait_for_pending(self, timeout: Optional[float] = None) -> bool:
        """
        等待已提交的后台事件处理完成（用于测试和优雅停机）

        Returns:
            是否全部完成
        """
        with self._pending_lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_tasks: bool = True) -> None:
        """关闭后台线程池"""
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait_for_tasks)
            logger.info("EventBus executor shut down")

    def get_history(self, event_type: Optional[str] = None, limit: int = 50) -> List[Event]:
        """
        获取事件历史（用于调试）

        Returns:
            事件列表（最新的在前）
        """
        history = list(self._event_history)
        if event_type:
            history = [e for e in history if e.event_type == event_type]
        return list(reversed(history))[:limit]

    def get_subscribers(self, event_type: Optional[str] = None) -> Dict[str, List[str]]:
        """获取订阅者信息（用于调试）"""
        with self._subscriber_lock:
            if event_type:
                handlers = self._subscribers.get(event_type, [])
                return {event_type: [h.__name__ for h in handlers]}
            return {
                et: [h.__name__ for h in handlers]
                for et, handlers in self._subscribers.items()
            }

    def clear_subscribers(self) -> None:
        """清空所有订阅（用于测试）"""
        with self._subscriber_lock:
            self._subscribers.clear()
        logger.info("All subscribers cleared")

    def clear_history(self) -> None:
        """清空事件历史"""
        self._event_history.clear()


# 全局事件总线实例
event_bus = EventBus()
