"""阶段有限状态机 (Phase FSM)

提供会话阶段的合法转换验证，并把入站转换表表达为纯函数
``resolve_transition(phase, message, own_player_id)``，
通过 match 语句逐行列出 (阶段, 消息) → 效果，便于静态审查。
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import NamedTuple

from .enums import Phase
from .exceptions import ProtocolViolationError
from .messages import (
    ConnectionRejectedMsg,
    GameFinishedMsg,
    GameStartMsg,
    MessageType,
    PlayerIdMsg,
    ReceivedCardsMsg,
    ServerMessage,
    TimerFinishedMsg,
)

logger = logging.getLogger(__name__)

# 合法的阶段转换表
# key: 当前阶段, value: 允许转换到的目标阶段集合
VALID_TRANSITIONS: dict[Phase, frozenset[Phase]] = {
    Phase.MENU: frozenset(),
    Phase.CONNECTING: frozenset({Phase.MENU, Phase.LOBBY}),
    Phase.LOBBY: frozenset({Phase.JOB_CREATION}),
    Phase.JOB_CREATION: frozenset({Phase.JOB_CREATION_DONE}),  # 出站: submit_job
    Phase.JOB_CREATION_DONE: frozenset({Phase.JOB_PICKING}),
    Phase.JOB_PICKING: frozenset({Phase.JOB_PICKING_DONE}),  # 出站: play_card
    Phase.JOB_PICKING_DONE: frozenset({Phase.INTERVIEWEE, Phase.INTERVIEWER}),
    Phase.INTERVIEWEE: frozenset({Phase.VOTING_DONE}),
    Phase.INTERVIEWER: frozenset({Phase.VOTING}),
    Phase.VOTING: frozenset({Phase.VOTING_DONE}),  # 出站: submit_score
    Phase.VOTING_DONE: frozenset({
        Phase.INTERVIEWEE, Phase.INTERVIEWER, Phase.GAME_FINISHED,
    }),
    Phase.GAME_FINISHED: frozenset(),
}

# 每个阶段的入站处理函数能识别的消息类型；不在表中的阶段没有处理函数
HANDLED_TAGS: dict[Phase, frozenset[MessageType]] = {
    Phase.CONNECTING: frozenset({
        MessageType.CONNECTION_REJECTED, MessageType.PLAYER_ID,
    }),
    Phase.LOBBY: frozenset({MessageType.GAME_START}),
    Phase.JOB_CREATION_DONE: frozenset({MessageType.RECEIVED_CARDS}),
    Phase.JOB_PICKING_DONE: frozenset({MessageType.PLAYER_ID}),
    Phase.INTERVIEWER: frozenset({MessageType.TIMER_FINISHED}),
    Phase.INTERVIEWEE: frozenset({MessageType.TIMER_FINISHED}),
    Phase.VOTING_DONE: frozenset({
        MessageType.PLAYER_ID, MessageType.GAME_FINISHED,
    }),
}


class Effect(Enum):
    """一次入站转换附带的状态修改"""

    REJECT_JOIN = "reject_join"  # 关闭连接，通知加入失败
    RECORD_PLAYER_ID = "record_player_id"  # 记录服务端分配的玩家 ID
    START_GAME = "start_game"  # 设置待编写职位数
    DEAL_CARDS = "deal_cards"  # 替换手牌，记录职位卡
    ASSIGN_ROLE = "assign_role"  # 面试者 / 面试官
    END_INTERVIEW = "end_interview"  # 计时结束
    FINISH_GAME = "finish_game"  # 游戏结束


class Transition(NamedTuple):
    target: Phase
    effect: Effect


def resolve_transition(
    phase: Phase, message: ServerMessage, own_player_id: str
) -> Transition | None:
    """查找 (当前阶段, 消息) 对应的转换

    纯函数: 不读写任何会话状态。

    Returns:
        命中的转换；无对应行时返回 None (消息被忽略)
    """
    match phase, message:
        case Phase.CONNECTING, ConnectionRejectedMsg():
            return Transition(Phase.MENU, Effect.REJECT_JOIN)
        case Phase.CONNECTING, PlayerIdMsg():
            return Transition(Phase.LOBBY, Effect.RECORD_PLAYER_ID)
        case Phase.LOBBY, GameStartMsg():
            return Transition(Phase.JOB_CREATION, Effect.START_GAME)
        case Phase.JOB_CREATION_DONE, ReceivedCardsMsg():
            return Transition(Phase.JOB_PICKING, Effect.DEAL_CARDS)
        case (Phase.JOB_PICKING_DONE | Phase.VOTING_DONE), PlayerIdMsg(player_id=pid):
            target = Phase.INTERVIEWEE if pid == own_player_id else Phase.INTERVIEWER
            return Transition(target, Effect.ASSIGN_ROLE)
        case Phase.INTERVIEWER, TimerFinishedMsg():
            return Transition(Phase.VOTING, Effect.END_INTERVIEW)
        case Phase.INTERVIEWEE, TimerFinishedMsg():
            return Transition(Phase.VOTING_DONE, Effect.END_INTERVIEW)
        case Phase.VOTING_DONE, GameFinishedMsg():
            return Transition(Phase.GAME_FINISHED, Effect.FINISH_GAME)
        case _:
            return None


class InvalidPhaseTransition(ProtocolViolationError):
    """非法阶段转换异常

    当尝试进行转换表之外的阶段转换时抛出，
    例如从 LOBBY 直接跳到 VOTING。
    """

    def __init__(
        self,
        current_phase: Phase,
        target_phase: Phase,
    ):
        message = f"Invalid phase transition: {current_phase.name} → {target_phase.name}"
        super().__init__(
            message=message,
            current_phase=current_phase,
            allowed_phases=sorted(
                VALID_TRANSITIONS.get(current_phase, ()), key=lambda p: p.value
            ),
        )
        self.from_phase = current_phase
        self.to_phase = target_phase


class PhaseFSM:
    """会话阶段有限状态机

    管理当前阶段，转换时校验合法性并恰好通知一次。

    使用方式::

        fsm = PhaseFSM(on_change=print)
        fsm.transition_to(Phase.LOBBY)     # OK: CONNECTING → LOBBY
        fsm.transition_to(Phase.VOTING)    # 抛出 InvalidPhaseTransition
    """

    def __init__(
        self,
        on_change: Callable[[Phase], None] | None = None,
        initial: Phase = Phase.CONNECTING,
    ) -> None:
        self._phase: Phase = initial
        self._on_change = on_change

    @property
    def current(self) -> Phase:
        """当前阶段"""
        return self._phase

    def transition_to(self, target: Phase) -> None:
        """转换到目标阶段并通知监听者 (commit + notify)

        Args:
            target: 目标阶段

        Raises:
            InvalidPhaseTransition: 如果转换不合法
        """
        self.commit(target)
        self.notify()

    def commit(self, target: Phase) -> None:
        """只切换阶段，不通知

        调用方需要在通知前完成其余状态修改时使用，之后必须调用 notify()。

        Raises:
            InvalidPhaseTransition: 如果转换不合法
        """
        if not self.can_transition(target):
            raise InvalidPhaseTransition(self._phase, target)
        logger.debug("Phase transition: %s → %s", self._phase.name, target.name)
        self._phase = target

    def notify(self) -> None:
        """把当前阶段通知给监听者"""
        if self._on_change is not None:
            self._on_change(self._phase)

    def can_transition(self, target: Phase) -> bool:
        """检查是否可以转换到目标阶段"""
        return target in VALID_TRANSITIONS.get(self._phase, frozenset())

    def has_handler(self) -> bool:
        """当前阶段是否注册了入站处理函数"""
        return self._phase in HANDLED_TAGS

    def is_terminal(self) -> bool:
        """当前阶段是否没有任何出边 (MENU / GAME_FINISHED)"""
        return not VALID_TRANSITIONS.get(self._phase)
