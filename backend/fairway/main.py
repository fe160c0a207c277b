"""
fairway-ops 主应用入口
球会度假村后台：清洁任务联动客房状态 / 球童评价聚合 / 账单结账快照
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from fairway import __version__
from fairway.config import settings
from fairway.database import init_db
from fairway.routers import housekeeping, caddie_rating, pay, folios
from fairway.services.errors import ServiceError
from fairway.services.event_bus import event_bus

logger = logging.getLogger("fairway")

HTTP_ERROR_KINDS = {
    400: "validation",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    409: "duplicate",
}


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    configure_logging()
    init_db()

    # 后台事件执行器与事件处理器
    event_bus.configure(settings.EVENT_WORKERS)
    from fairway.services.event_handlers import register_event_handlers
    register_event_handlers()
    logger.info(f"{settings.APP_NAME} started (env={settings.ENV})")

    yield

    # 等待进行中的后台重算完成后再关闭
    event_bus.wait_for_pending(timeout=10)
    event_bus.shutdown()


# 创建应用
app = FastAPI(
    title="fairway-ops - 球会度假村后台",
    description="跨实体工作流与派生状态同步",
    version=__version__,
    lifespan=lifespan
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 生产环境应限制具体域名
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(kind: str, message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        {"success": False, "error": kind, "message": message},
        status_code=status_code
    )


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error(f"{exc.kind} on {request.method} {request.url.path}: {exc.message}")
    return _error(exc.kind, exc.message, exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"参数错误: {field} {first.get('msg', '')}".strip()
    return _error("validation", message, 400)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    kind = HTTP_ERROR_KINDS.get(exc.status_code, "internal")
    return _error(kind, str(exc.detail), exc.status_code)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    message = "服务器内部错误" if settings.is_production else (str(exc) or "未知错误")
    return _error("internal", message, 500)


# 注册路由
app.include_router(housekeeping.router)
app.include_router(caddie_rating.router)
app.include_router(pay.router)
app.include_router(folios.router)


@app.get("/")
def root():
    """根路径"""
    return {
        "name": settings.APP_NAME,
        "version": __version__,
        "description": "球会度假村后台跨实体工作流服务"
    }


@app.get("/health")
def health_check():
    """健康检查"""
    return {"status": "healthy"}
