"""协议核心异常模块
定义会话驱动中的各类异常，提供明确的错误类型和信息

异常分两类上报:
- ProtocolViolationError / CardNotFoundError: 由出站操作同步抛给调用方
- MalformedMessageError / UnexpectedMessageError: 来自网络，仅记录日志
- TransportError: 经 on_error 回调通知上层，不改变阶段
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from .enums import Phase


class GameError(Exception):
    """异常基类

    所有会话相关的异常都应该继承此类，
    提供统一的异常处理接口。
    """

    def __init__(self, message: str, details: dict | None = None):
        """初始化异常

        Args:
            message: 错误消息
            details: 额外的错误详情（可选）
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# ==================== 入站消息异常 ====================


class ProtocolError(GameError):
    """入站协议异常基类"""


class MalformedMessageError(ProtocolError):
    """畸形消息异常

    帧无法解析、缺少消息类型或消息类型无法识别时抛出
    """

    def __init__(
        self,
        message: str | None = None,
        raw: str | bytes | None = None,
        reason: str | None = None,
    ):
        if message is None:
            message = "Malformed message"
        details = {}
        if reason:
            details["reason"] = reason
        if raw is not None:
            preview = raw if isinstance(raw, str) else raw.decode("utf-8", "replace")
            details["raw"] = preview[:200]
        super().__init__(message, details)
        self.raw = raw
        self.reason = reason


class UnexpectedMessageError(ProtocolError):
    """意外消息异常

    消息类型合法，但当前阶段没有对应的处理函数时抛出
    """

    def __init__(
        self,
        message: str | None = None,
        message_type: str | None = None,
        phase: Phase | None = None,
    ):
        if message is None:
            message = "Unexpected message"
        details = {}
        if message_type:
            details["message_type"] = message_type
        if phase is not None:
            details["phase"] = phase.value
        super().__init__(message, details)
        self.message_type = message_type
        self.phase = phase


# ==================== 会话状态异常 ====================


class GameStateError(GameError):
    """会话状态异常

    当会话处于不允许某操作的状态时抛出
    """

    def __init__(
        self,
        message: str | None = None,
        current_state: str | None = None,
        expected_state: str | None = None,
    ):
        if message is None:
            message = "Operation not allowed in the current state"
        details = {}
        if current_state:
            details["current_state"] = current_state
        if expected_state:
            details["expected_state"] = expected_state
        super().__init__(message, details)
        self.current_state = current_state
        self.expected_state = expected_state


class ProtocolViolationError(GameStateError):
    """协议违规异常

    调用方在当前阶段执行了不合法的出站操作时抛出，
    抛出前不做任何状态修改，也不发送任何消息。
    """

    def __init__(
        self,
        message: str | None = None,
        operation: str | None = None,
        current_phase: Phase | None = None,
        allowed_phases: Iterable[Phase] = (),
    ):
        allowed = tuple(allowed_phases)
        current = current_phase.value if current_phase is not None else None
        if message is None:
            message = f"'{operation}' is not allowed in phase {current}"
        super().__init__(
            message,
            current_state=current,
            expected_state=", ".join(p.value for p in allowed) or None,
        )
        if operation:
            self.details["operation"] = operation
        self.operation = operation
        self.current_phase = current_phase
        self.allowed_phases = allowed


class CardNotFoundError(GameError):
    """卡牌未找到异常

    出牌/截牌引用的卡牌不在手牌中时抛出
    """

    def __init__(self, message: str | None = None, card_id: str | None = None):
        if message is None:
            message = f"Card {card_id!r} is not in the inventory"
        details = {}
        if card_id:
            details["card_id"] = card_id
        super().__init__(message, details)
        self.card_id = card_id


# ==================== 传输层异常 ====================


class TransportError(GameError):
    """传输层异常

    底层连接失败时构造，经 on_error 回调通知上层，不改变阶段
    """

    def __init__(self, message: str | None = None, reason: str | None = None):
        if message is None:
            message = "Transport error"
        details = {}
        if reason:
            details["reason"] = reason
        super().__init__(message, details)
        self.reason = reason
