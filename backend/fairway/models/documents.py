"""
文档表 - 文档存储适配器的物理存储
所有集合共用一张表，业务字段以 JSON 形式保存
"""
import uuid
from datetime import datetime

from sqlalchemy import Column, String, DateTime, JSON, UniqueConstraint, Index

from fairway.database import Base


def _new_document_id() -> str:
    return uuid.uuid4().hex


class Document(Base):
    """单个文档（集合 + JSON 数据）"""
    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint("collection", "unique_key", name="uq_documents_collection_key"),
        Index("ix_documents_collection_created", "collection", "created_at"),
    )

    id = Column(String(32), primary_key=True, default=_new_document_id)
    collection = Column(String(64), nullable=False, index=True)
    data = Column(JSON, nullable=False, default=dict)
    # 自然键：非空时在同一集合内唯一
    unique_key = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
