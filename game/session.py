"""游戏会话: 客户端协议核心

职责:
1. 持有当前阶段、手牌、待编写职位数与玩家身份
2. 校验出站操作在当前阶段是否合法，合法则修改状态并发送消息
3. 按当前阶段分发入站消息 (见 phase_fsm.resolve_transition)
4. 通过回调把阶段/数据变化通知展示层

单线程事件驱动: 一次只处理一条入站消息或一次出站调用，
回调在处理过程中同步执行，处理完成后才会处理下一事件。

每次处理先提交全部状态 (含阶段)，再依次触发数据回调和 on_phase_changed，
回调抛出异常时会话状态已经一致。
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import partial
from typing import Protocol

from .card import Card, find_card
from .enums import Phase
from .exceptions import (
    CardNotFoundError,
    GameError,
    MalformedMessageError,
    ProtocolViolationError,
    UnexpectedMessageError,
)
from .messages import (
    ClientMessage,
    CardDataMsg,
    CardModel,
    GameStartMsg,
    InterceptCardDataMsg,
    JobSubmittedMsg,
    LobbyJoinAttemptMsg,
    PlayerIdMsg,
    ReceivedCardsMsg,
    ScoreSubmissionMsg,
    ServerMessage,
    decode_server_message,
    encode_message,
)
from .phase_fsm import Effect, PhaseFSM, resolve_transition

logger = logging.getLogger(__name__)

JOIN_REJECTED_REASON = "No game found with that code"


class FrameSink(Protocol):
    """出站帧接收方 (通常是传输层)，send/close 均为即发即忘"""

    def send(self, frame: str) -> None: ...
    def close(self) -> None: ...


class NullTransport:
    """未接入传输层时使用，丢弃所有出站帧"""

    def send(self, frame: str) -> None:
        logger.debug("No transport attached, dropping frame: %s", frame)

    def close(self) -> None:
        logger.debug("No transport attached, nothing to close")


def _noop(*args, **kwargs) -> None:
    pass


class GameSession:
    """客户端会话驱动

    回调 (均可选，默认空操作，可直接赋值替换)::

        session.on_game_join_attempt_failed = lambda reason: ...
        session.on_game_started = lambda jobs_to_create: ...
        session.on_phase_changed = lambda phase: ...
        session.on_cards_changed = lambda cards: ...
        session.on_job_card_changed = lambda card: ...
        session.on_game_ended = lambda: ...
        session.on_error = lambda: ...

    Args:
        player_name: 显示名称 (仅在加入握手中使用)
        room_code: 房间码 (仅在加入握手中使用)
        transport: 出站帧接收方
    """

    def __init__(
        self,
        player_name: str,
        room_code: str,
        transport: FrameSink | None = None,
    ) -> None:
        self.player_name = player_name
        self.room_code = room_code
        self.transport: FrameSink = transport or NullTransport()

        self._player_id: str = ""
        self._cards: list[Card] = []
        self._job_card: Card | None = None
        self._jobs_remaining: int = 0
        self._fsm = PhaseFSM(on_change=self._notify_phase_changed)

        # 生命周期回调
        self.on_game_join_attempt_failed: Callable[[str], None] = _noop
        self.on_game_started: Callable[[int], None] = _noop
        self.on_phase_changed: Callable[[Phase], None] = _noop
        self.on_cards_changed: Callable[[list[Card]], None] = _noop
        self.on_job_card_changed: Callable[[Card], None] = _noop
        self.on_game_ended: Callable[[], None] = _noop
        self.on_error: Callable[[], None] = _noop

    # ==================== 只读状态 ====================

    @property
    def phase(self) -> Phase:
        return self._fsm.current

    @property
    def player_id(self) -> str:
        """服务端分配的玩家 ID，收到之前为空串"""
        return self._player_id

    @property
    def cards(self) -> tuple[Card, ...]:
        return tuple(self._cards)

    @property
    def job_card(self) -> Card | None:
        return self._job_card

    @property
    def jobs_remaining(self) -> int:
        return self._jobs_remaining

    # ==================== 出站操作 ====================

    def join_lobby(self, name: str | None = None, room_code: str | None = None) -> None:
        """发送加入房间请求 (仅 CONNECTING)，阶段等待服务端回复后再变化"""
        self._require_phase("join_lobby", Phase.CONNECTING)
        msg = LobbyJoinAttemptMsg(
            name=self.player_name if name is None else name,
            lobby_code=self.room_code if room_code is None else room_code,
        )
        logger.info("Joining room %s as %s", msg.lobby_code, msg.name)
        self._send(msg)

    def submit_job(self, text: str) -> None:
        """提交一条职位描述 (仅 JOB_CREATION 且仍有剩余名额)

        剩余数归零时转换到 JOB_CREATION_DONE。
        """
        self._require_phase("submit_job", Phase.JOB_CREATION)
        if self._jobs_remaining <= 0:
            raise ProtocolViolationError(
                "Cannot create more jobs than specified in game start message",
                operation="submit_job",
                current_phase=self.phase,
            )
        msg = JobSubmittedMsg(job_input=text)
        self._jobs_remaining -= 1
        self._send(msg)
        logger.debug("Job submitted, %d remaining", self._jobs_remaining)
        if self._jobs_remaining == 0:
            self._fsm.transition_to(Phase.JOB_CREATION_DONE)

    def play_card(self, card_id: str) -> Card:
        """打出一张手牌 (仅 JOB_PICKING)，之后转换到 JOB_PICKING_DONE

        Returns:
            被打出的卡牌

        Raises:
            ProtocolViolationError: 阶段不合法
            CardNotFoundError: 手牌中没有该卡牌
        """
        card = self._find_card(card_id)
        self._require_phase("play_card", Phase.JOB_PICKING)
        self._cards.remove(card)
        self._send(CardDataMsg(card=CardModel.from_card(card)))
        self._fsm.commit(Phase.JOB_PICKING_DONE)
        self._emit(partial(self.on_cards_changed, list(self._cards)), self._fsm.notify)
        return card

    def intercept_card(self, card_id: str) -> Card:
        """面试官截下一张手牌 (仅 INTERVIEWER)，不改变阶段，可多次调用"""
        card = self._find_card(card_id)
        self._require_phase("intercept_card", Phase.INTERVIEWER)
        self._cards.remove(card)
        self._send(InterceptCardDataMsg(card=CardModel.from_card(card)))
        self._emit(partial(self.on_cards_changed, list(self._cards)))
        return card

    def submit_score(self, amount_in_cents: int) -> None:
        """提交打分 (仅 VOTING)，之后转换到 VOTING_DONE"""
        self._require_phase("submit_score", Phase.VOTING)
        self._send(ScoreSubmissionMsg(score_in_cents=amount_in_cents))
        self._fsm.transition_to(Phase.VOTING_DONE)

    # ==================== 入站分发 ====================

    def handle_frame(self, raw: str | bytes) -> bool:
        """传输层入口: 解析一帧并分发

        畸形/意外消息只记录日志，不影响会话。

        Returns:
            是否命中转换表中的一行
        """
        try:
            message = decode_server_message(raw)
            return self.dispatch(message)
        except MalformedMessageError as e:
            logger.warning("Dropping malformed message: %s", e)
        except UnexpectedMessageError as e:
            logger.warning("Dropping unexpected message: %s", e)
        return False

    def dispatch(self, message: ServerMessage) -> bool:
        """按当前阶段处理一条已解析的消息

        Returns:
            命中转换返回 True；处理函数不识别该标签返回 False

        Raises:
            UnexpectedMessageError: 当前阶段没有处理函数
        """
        phase = self.phase
        if not self._fsm.has_handler():
            raise UnexpectedMessageError(
                f"No handler for {message.message_type} in phase {phase.name}",
                message_type=message.message_type,
                phase=phase,
            )

        transition = resolve_transition(phase, message, self._player_id)
        if transition is None:
            logger.debug("Ignoring %s in phase %s", message.message_type, phase.name)
            return False

        callbacks = self._apply(transition.effect, message)
        self._fsm.commit(transition.target)
        self._emit(*callbacks, self._fsm.notify)
        return True

    def report_transport_error(self, error: GameError | Exception) -> None:
        """传输层错误: 记录并触发 on_error，阶段不变"""
        logger.warning("Transport error in phase %s: %s", self.phase.name, error)
        self.on_error()

    # ==================== 内部 ====================

    def _apply(self, effect: Effect, message: ServerMessage) -> tuple[Callable[[], None], ...]:
        """执行转换附带的状态修改，返回待触发的数据回调 (在阶段通知之前触发)"""
        match effect, message:
            case Effect.REJECT_JOIN, _:
                self.transport.close()
                return (partial(self.on_game_join_attempt_failed, JOIN_REJECTED_REASON),)
            case Effect.RECORD_PLAYER_ID, PlayerIdMsg(player_id=player_id):
                self._player_id = player_id
                logger.info("Assigned player id %s", player_id)
            case Effect.START_GAME, GameStartMsg(number_of_jobs=jobs):
                self._jobs_remaining = jobs
                return (partial(self.on_game_started, jobs),)
            case Effect.DEAL_CARDS, ReceivedCardsMsg(drawn_cards=drawn, job_card=job_card):
                self._cards = [m.to_card() for m in drawn]
                self._job_card = job_card.to_card()
                return (
                    partial(self.on_cards_changed, list(self._cards)),
                    partial(self.on_job_card_changed, self._job_card),
                )
            case Effect.FINISH_GAME, _:
                return (self.on_game_ended,)
        # ASSIGN_ROLE / END_INTERVIEW 只改变阶段
        return ()

    def _emit(self, *callbacks: Callable[[], None]) -> None:
        """按顺序触发回调

        某个回调抛出时其余回调照常触发，结束后重新抛出第一个异常。
        """
        first_error: Exception | None = None
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                if first_error is None:
                    first_error = e
                else:
                    logger.exception("Callback failed")
        if first_error is not None:
            raise first_error

    def _require_phase(self, operation: str, *allowed: Phase) -> None:
        if self.phase not in allowed:
            raise ProtocolViolationError(
                operation=operation,
                current_phase=self.phase,
                allowed_phases=allowed,
            )

    def _find_card(self, card_id: str) -> Card:
        # 先查手牌再查阶段: 已打出的卡牌总是报 CardNotFoundError
        card = find_card(self._cards, str(card_id))
        if card is None:
            raise CardNotFoundError(card_id=str(card_id))
        return card

    def _send(self, message: ClientMessage) -> None:
        self.transport.send(encode_message(message))

    def _notify_phase_changed(self, phase: Phase) -> None:
        logger.info("Phase changed → %s", phase.name)
        self.on_phase_changed(phase)
