"""
Pytest 配置和共享 fixtures
"""
import os
import threading

# 应用级引擎使用内存库，测试数据走每个用例独立的文件库
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENV", "development")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from fastapi.testclient import TestClient

from fairway.database import Base
from fairway.models import documents  # noqa
from fairway.models.ontology import Collection
from fairway.services.document_store import DocumentStore, get_store
from fairway.services.event_bus import event_bus
from fairway.services.event_handlers import EventHandlers, event_handlers
from fairway.security.auth import create_player_token
from fairway.main import app


@pytest.fixture(scope="function")
def db_engine(tmp_path):
    """创建文件型 SQLite 引擎（后台线程与测试线程各自使用独立连接）"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def store(db_engine):
    """文档存储"""
    return DocumentStore(sessionmaker(autocommit=False, autoflush=False, bind=db_engine))


@pytest.fixture
def racing_store(db_engine):
    """
    两个线程共用的文档存储：每个线程执行到第 wait_on_select 次查询时
    在屏障处互相等待，保证两者都读完再各自写入
    """
    def factory(wait_on_select: int = 1) -> DocumentStore:
        barrier = threading.Barrier(2)
        seen = threading.local()

        class RacingSession(Session):
            def execute(self, statement, *args, **kwargs):
                if getattr(statement, "is_select", False):
                    seen.count = getattr(seen, "count", 0) + 1
                    if seen.count == wait_on_select:
                        barrier.wait(timeout=10)
                return super().execute(statement, *args, **kwargs)

        return DocumentStore(sessionmaker(class_=RacingSession, autoflush=False, bind=db_engine))
    return factory


@pytest.fixture
def clean_event_bus():
    """清空订阅与历史，结束时等待后台事件处理完成"""
    event_bus.clear_subscribers()
    event_bus.clear_history()
    yield event_bus
    event_bus.wait_for_pending(timeout=10)
    event_bus.clear_subscribers()
    event_bus.clear_history()


@pytest.fixture(scope="function")
def client(store):
    """创建测试客户端，事件处理器使用测试存储"""
    app.dependency_overrides[get_store] = lambda: store
    handlers = EventHandlers(store_factory=lambda: store)
    with TestClient(app) as test_client:
        event_handlers.unregister_handlers()
        handlers.register_handlers()
        yield test_client
        event_bus.wait_for_pending(timeout=10)
        handlers.unregister_handlers()
    app.dependency_overrides.clear()


# ============== 认证相关 Fixtures ==============

@pytest.fixture
def player_headers():
    """球员 player1 的认证请求头"""
    token = create_player_token("player1", club_id="club1")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_player_headers():
    token = create_player_token("player2", club_id="club1")
    return {"Authorization": f"Bearer {token}"}


# ============== 实体相关 Fixtures ==============

@pytest.fixture
def sample_room(store):
    """创建测试客房 R101（脏房）"""
    return store.insert(Collection.ROOMS, {"roomNo": "R101", "floor": "1", "status": "vacant_dirty"})


@pytest.fixture
def sample_task(store, sample_room):
    """创建关联 R101 的待处理清洁任务"""
    return store.insert(Collection.HOUSEKEEPING_TASKS, {
        "clubId": "club1", "roomId": sample_room["_id"], "roomNo": "R101",
        "taskType": "checkout_clean", "priority": "normal", "status": "pending",
        "assignedTo": None, "assignedName": "", "startedAt": None, "completedAt": None,
        "inspectedBy": None, "inspectedAt": None, "notes": "", "createdAt": "2026-10-01T08:00:00",
    })


@pytest.fixture
def sample_caddie(store):
    return store.insert(Collection.CADDIES, {"name": "球童小张", "avgRating": 0, "ratingCount": 0})


@pytest.fixture
def completed_booking(store, sample_caddie):
    """player1 已完成、安排了 sample_caddie 的预订"""
    return store.insert(Collection.BOOKINGS, {
        "playerId": "player1", "clubId": "club1", "status": "completed",
        "caddieId": sample_caddie["_id"], "caddieName": "球童小张",
        "date": "2026-10-15", "courseName": "东场",
    })


@pytest.fixture
def open_folio(store):
    """player1 的 open 账单，含 12.50 与 7.25 两笔消费"""
    folio = store.insert(Collection.FOLIOS, {
        "playerId": "player1", "clubId": "club1", "status": "open", "createdAt": "2026-10-18T09:00:00",
    })
    store.insert(Collection.FOLIO_CHARGES, {"folioId": folio["_id"], "amount": 12.50, "item": "果岭费", "createdAt": "2026-10-18T09:10:00"})
    store.insert(Collection.FOLIO_CHARGES, {"folioId": folio["_id"], "amount": 7.25, "item": "饮料", "createdAt": "2026-10-18T10:30:00"})
    return folio
