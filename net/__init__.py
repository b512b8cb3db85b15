"""网络传输模块
基于 WebSocket 的客户端连接，驱动 game.session.GameSession
"""

from .client import GameClient

__all__ = ["GameClient"]
