"""
事件处理器 - 事件驱动架构的核心
订阅领域事件并执行相应的派生状态更新
"""
from typing import Callable
import logging

from fairway.services.event_bus import event_bus, Event
from fairway.models.events import EventType
from fairway.services.document_store import DocumentStore, get_store
from fairway.services.aggregate_service import CaddieAggregateRecomputer

logger = logging.getLogger(__name__)


class EventHandlers:
    """
    事件处理器集合

    支持依赖注入以便于测试：
    - store_factory: 文档存储工厂
    """

    def __init__(self, store_factory: Callable[[], DocumentStore] = None):
        self._store_factory = store_factory or get_store
        self._registered = False

    def handle_rating_submitted(self, event: Event) -> None:
        """
        处理评价提交事件：重算球童平均评分

        在后台线程执行，失败只记录日志，不影响已落库的评价
        """
        caddie_id = event.data.get("caddie_id")
        if not caddie_id:
            logger.warning("Invalid rating submitted event: missing caddie_id")
            return

        try:
            CaddieAggregateRecomputer(self._store_factory()).recompute(caddie_id)
        except Exception as e:
            logger.error(
                f"Failed to recompute rating aggregate for caddie {caddie_id} "
                f"(rating {event.data.get('rating_id')}): {e}",
                exc_info=True
            )

    def register_handlers(self, event_bus_instance=None) -> None:
        """注册所有事件处理器"""
        if self._registered:
            return

        bus = event_bus_instance or event_bus
        bus.subscribe(EventType.RATING_SUBMITTED, self.handle_rating_submitted)

        self._registered = True
        logger.info("Event handlers registered successfully")

    def unregister_handlers(self, event_bus_instance=None) -> None:
        """取消注册所有事件处理器（用于测试）"""
        bus = event_bus_instance or event_bus
        bus.unsubscribe(EventType.RATING_SUBMITTED, self.handle_rating_submitted)

        self._registered = False
        logger.info("Event handlers unregistered")


# 全局事件处理器实例
event_handlers = EventHandlers()


def register_event_handlers():
    """注册全局事件处理器（应用启动时调用）"""
    event_handlers.register_handlers()
