"""枚举定义 -- 消息发送流程的阶段状态机

包含 SendStage 阶段枚举、VALID_STAGE_TRANSITIONS 合法流转映射和
TERMINAL_STAGES 终态集合。
"""

from enum import StrEnum


class SendStage(StrEnum):
    """单次消息提交的处理阶段"""

    VALIDATING = "VALIDATING"
    UPLOADING = "UPLOADING"
    PERSISTING_ATTACHMENT = "PERSISTING_ATTACHMENT"
    PERSISTING_MESSAGE = "PERSISTING_MESSAGE"
    BROADCASTING = "BROADCASTING"
    NOTIFYING = "NOTIFYING"

    # 终态
    DONE = "DONE"
    FAILED = "FAILED"


# 合法阶段流转
# 无附件时 VALIDATING 直接进入 PERSISTING_MESSAGE；
# BROADCASTING / NOTIFYING 的失败被吸收，不会流转到 FAILED
VALID_STAGE_TRANSITIONS: dict[SendStage, set[SendStage]] = {
    SendStage.VALIDATING: {
        SendStage.UPLOADING,
        SendStage.PERSISTING_MESSAGE,
        SendStage.FAILED,
    },
    SendStage.UPLOADING: {SendStage.PERSISTING_ATTACHMENT, SendStage.FAILED},
    SendStage.PERSISTING_ATTACHMENT: {SendStage.PERSISTING_MESSAGE, SendStage.FAILED},
    SendStage.PERSISTING_MESSAGE: {SendStage.BROADCASTING, SendStage.FAILED},
    SendStage.BROADCASTING: {SendStage.NOTIFYING},
    SendStage.NOTIFYING: {SendStage.DONE},
    # 终态不可再流转
    SendStage.DONE: set(),
    SendStage.FAILED: set(),
}

TERMINAL_STAGES: set[SendStage] = {SendStage.DONE, SendStage.FAILED}


def validate_stage_transition(from_stage: SendStage, to_stage: SendStage) -> bool:
    """验证阶段流转是否合法

    Args:
        from_stage: 当前阶段
        to_stage: 目标阶段

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_STAGE_TRANSITIONS.get(from_stage, set())
    return to_stage in allowed
