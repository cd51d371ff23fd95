"""外部服务集成异常体系"""


class IntegrationError(Exception):
    """集成包基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过重试恢复（发送流程本身从不重试）
        """
        super().__init__(message)
        self.recoverable = recoverable


class StorageUploadError(IntegrationError):
    """附件上传到对象存储失败

    任一附件上传失败都会使整次提交失败。
    """

    def __init__(self, backend: str, original_error: Exception | str) -> None:
        """
        Args:
            backend: 存储后端名称（cloudinary / s3 / local）
            original_error: 原始异常或错误描述
        """
        super().__init__(f"upload to {backend} failed -- {original_error}")
        self.backend = backend
        self.original_error = original_error


class BroadcastError(IntegrationError):
    """实时广播发布失败

    发送流程吸收此异常：消息已落盘，仅实时送达降级。
    """


class NotificationError(IntegrationError):
    """推送通知发布失败

    发送流程吸收此异常，只记录日志。
    """
