"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在服务层统一捕获并转换为面向 surface 的错误响应。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_WRITE_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 session_id、model 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ValidationError(BusinessError):
    """参数或请求校验失败。"""


class InvalidSession(BusinessError):
    """写入历史的会话为空或缺少 id，被拒绝且不修改任何状态。"""


class NoModelSelected(BusinessError):
    """提交对话时没有可用的模型绑定。"""


class SessionNotFound(BusinessError):
    """加载/删除时引用了不存在的会话 id。"""


class BackendUnavailable(BusinessError):
    """生成后端不可达，例如连接失败、超时等。"""


class BackendError(BusinessError):
    """生成后端返回错误状态或在流中返回 error 对象。"""


class StorageError(BusinessError):
    """底层键值存储读写失败。"""
