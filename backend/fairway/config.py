"""
应用配置
从环境变量读取配置，支持 .env 文件
"""
from typing import Optional
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用设置"""

    # 应用基础配置
    APP_NAME: str = "fairway-ops"
    ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # 数据库配置
    DATABASE_URL: str = "sqlite:///./fairway.db"

    # JWT 配置（球员端小程序）
    JWT_SECRET: Optional[str] = None
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 24 * 7
    DEFAULT_CLUB_ID: str = "default"

    # 后台事件执行器线程数
    EVENT_WORKERS: int = 4

    # 业务参数
    RATING_LOOKBACK_DAYS: int = 30
    RECHARGE_MIN: float = 1
    RECHARGE_MAX: float = 500000

    model_config = ConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"

    def get_jwt_secret(self) -> Optional[str]:
        """生产环境必须显式配置 JWT_SECRET，开发环境使用默认值"""
        if self.is_production:
            return self.JWT_SECRET or None
        return self.JWT_SECRET or "fairway-dev-secret"


# 全局设置实例
settings = Settings()
