# -*- coding: utf-8 -*-
"""
Jobbers 客户端协议核心
包含会话阶段、职位卡牌、协议消息、阶段状态机与会话驱动
"""

from .card import Card
from .enums import Phase
from .exceptions import (
    CardNotFoundError, GameError, MalformedMessageError, ProtocolViolationError,
    TransportError, UnexpectedMessageError,
)
from .messages import MessageType, decode_server_message, encode_message
from .phase_fsm import PhaseFSM, resolve_transition
from .session import GameSession

__all__ = [
    # 卡牌
    'Card',
    # 阶段
    'Phase', 'PhaseFSM', 'resolve_transition',
    # 消息
    'MessageType', 'decode_server_message', 'encode_message',
    # 会话
    'GameSession',
    # 异常
    'GameError', 'ProtocolViolationError', 'CardNotFoundError',
    'MalformedMessageError', 'UnexpectedMessageError', 'TransportError',
]

__version__ = '1.0.0'
