"""
业务错误分类
每种错误携带稳定的 kind 和对应的 HTTP 状态码，由应用层统一渲染
"""


class ServiceError(ValueError):
    """业务错误基类"""
    kind = "internal"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "error": self.kind, "message": self.message}


class ValidationError(ServiceError):
    """输入格式或取值范围错误，任何写操作之前拒绝"""
    kind = "validation"
    status_code = 400


class NotFoundError(ServiceError):
    kind = "not_found"
    status_code = 404


class ForbiddenError(ServiceError):
    """归属不匹配"""
    kind = "forbidden"
    status_code = 403


class DuplicateError(ServiceError):
    """幂等守卫触发"""
    kind = "duplicate"
    status_code = 409


class InvalidStateError(ServiceError):
    """实体当前状态不允许该操作"""
    kind = "invalid_state"
    status_code = 409


class PartialFailureError(ServiceError):
    """
    成对写入中第一步已成功、第二步失败

    调用方看到的是所请求操作的失败，但第一步（如任务状态）已经推进。
    """
    kind = "partial_failure"
    status_code = 500

    def __init__(self, message: str, applied: dict = None):
        super().__init__(message)
        self.applied = applied or {}


class InternalError(ServiceError):
    """存储故障或未预期异常"""
    kind = "internal"
    status_code = 500
