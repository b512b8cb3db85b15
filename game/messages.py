"""协议消息定义
基于 WebSocket 的 JSON 消息格式

协议设计:
- 每条消息都是带 message_type 标签的 JSON 对象
- 客户端 → 服务端: lobby_join_attempt / job_submitted / card_data /
  intercept_card_data / score_submission
- 服务端 → 客户端: connection_rejected / game_start / player_id /
  received_cards / timer_finished / game_finished
- 每种标签一个 Pydantic 模型，按 message_type 组成可辨识联合，
  只有先确认标签才能访问该消息的字段
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from .card import Card
from .exceptions import MalformedMessageError, UnexpectedMessageError

# ==================== 消息类型枚举 ====================


class MessageType(str, Enum):
    """消息类型标签 (取值须与服务端实现完全一致)"""

    LOBBY_JOIN_ATTEMPT = "lobby_join_attempt"      # C → S 加入房间
    CONNECTION_REJECTED = "connection_rejected"    # S → C 房间码无效
    GAME_START = "game_start"                      # S → C 游戏开始
    JOB_SUBMITTED = "job_submitted"                # C → S 提交职位
    PLAYER_ID = "player_id"                        # S → C 玩家 ID
    RECEIVED_CARDS = "received_cards"              # S → C 发牌
    CARD_DATA = "card_data"                        # C → S 出牌
    INTERCEPT_CARD_DATA = "intercept_card_data"    # C → S 截牌
    TIMER_FINISHED = "timer_finished"              # S → C 计时结束
    SCORE_SUBMISSION = "score_submission"          # C → S 打分
    GAME_FINISHED = "game_finished"                # S → C 游戏结束


CLIENT_TO_SERVER: frozenset[MessageType] = frozenset({
    MessageType.LOBBY_JOIN_ATTEMPT,
    MessageType.JOB_SUBMITTED,
    MessageType.CARD_DATA,
    MessageType.INTERCEPT_CARD_DATA,
    MessageType.SCORE_SUBMISSION,
})

SERVER_TO_CLIENT: frozenset[MessageType] = frozenset(MessageType) - CLIENT_TO_SERVER


# ==================== 卡牌线上格式 ====================


class CardModel(BaseModel):
    """卡牌校验模型 {card_id, job_text}

    旧版服务端使用数字 ID，这里统一转换为字符串。
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    card_id: str = Field(min_length=1)
    job_text: str

    @field_validator("card_id", mode="before")
    @classmethod
    def coerce_numeric_id(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError("card_id must be a string or an integer")
        if isinstance(v, int):
            return str(v)
        return v

    def to_card(self) -> Card:
        return Card(card_id=self.card_id, job_text=self.job_text)

    @classmethod
    def from_card(cls, card: Card) -> CardModel:
        return cls(card_id=card.card_id, job_text=card.job_text)


# ==================== 消息模型 ====================


class _Message(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    @property
    def type(self) -> MessageType:
        return MessageType(self.message_type)


# ---- 客户端 → 服务端 ----


class LobbyJoinAttemptMsg(_Message):
    message_type: Literal["lobby_join_attempt"] = "lobby_join_attempt"
    name: str
    lobby_code: str


class JobSubmittedMsg(_Message):
    message_type: Literal["job_submitted"] = "job_submitted"
    job_input: str


class CardDataMsg(_Message):
    message_type: Literal["card_data"] = "card_data"
    card: CardModel


class InterceptCardDataMsg(_Message):
    message_type: Literal["intercept_card_data"] = "intercept_card_data"
    card: CardModel


class ScoreSubmissionMsg(_Message):
    message_type: Literal["score_submission"] = "score_submission"
    score_in_cents: int = Field(ge=0)


# ---- 服务端 → 客户端 ----


class ConnectionRejectedMsg(_Message):
    message_type: Literal["connection_rejected"] = "connection_rejected"


class GameStartMsg(_Message):
    message_type: Literal["game_start"] = "game_start"
    number_of_jobs: int = Field(ge=0)


class PlayerIdMsg(_Message):
    message_type: Literal["player_id"] = "player_id"
    player_id: str


class ReceivedCardsMsg(_Message):
    message_type: Literal["received_cards"] = "received_cards"
    drawn_cards: list[CardModel]
    job_card: CardModel


class TimerFinishedMsg(_Message):
    message_type: Literal["timer_finished"] = "timer_finished"


class GameFinishedMsg(_Message):
    message_type: Literal["game_finished"] = "game_finished"


ClientMessage = Annotated[
    Union[
        LobbyJoinAttemptMsg,
        JobSubmittedMsg,
        CardDataMsg,
        InterceptCardDataMsg,
        ScoreSubmissionMsg,
    ],
    Field(discriminator="message_type"),
]

ServerMessage = Annotated[
    Union[
        ConnectionRejectedMsg,
        GameStartMsg,
        PlayerIdMsg,
        ReceivedCardsMsg,
        TimerFinishedMsg,
        GameFinishedMsg,
    ],
    Field(discriminator="message_type"),
]

SERVER_MESSAGE_ADAPTER: TypeAdapter[ServerMessage] = TypeAdapter(ServerMessage)


# ==================== 编解码 ====================


def encode_message(message: _Message) -> str:
    """序列化为 JSON 字符串"""
    return message.model_dump_json()


def decode_server_message(raw: str | bytes) -> ServerMessage:
    """从线上帧反序列化一条服务端消息

    Raises:
        MalformedMessageError: JSON 无效 / 缺少或无法识别 message_type / 字段校验失败
        UnexpectedMessageError: 标签合法但只用于客户端 → 服务端方向
    """
    try:
        obj = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedMessageError(
            "Frame is not valid JSON", raw=raw, reason=str(e)
        ) from e

    if not isinstance(obj, dict):
        raise MalformedMessageError("Frame is not a JSON object", raw=raw)

    type_str = obj.get("message_type")
    if type_str is None:
        raise MalformedMessageError("Message type is missing", raw=raw)
    if not validate_msg_type(type_str):
        raise MalformedMessageError(
            "Unknown message type", raw=raw, reason=repr(type_str)
        )
    if MessageType(type_str) not in SERVER_TO_CLIENT:
        raise UnexpectedMessageError(
            "Client-only message received from server", message_type=type_str
        )

    try:
        return SERVER_MESSAGE_ADAPTER.validate_python(obj)
    except ValidationError as e:
        raise MalformedMessageError(
            f"Invalid {type_str} payload", raw=raw, reason=str(e)
        ) from e


# ==================== 工具函数 ====================


def validate_msg_type(type_str: Any) -> bool:
    """检查消息类型是否合法"""
    if not isinstance(type_str, str):
        return False
    try:
        MessageType(type_str)
        return True
    except ValueError:
        return False
