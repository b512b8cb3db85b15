"""WebSocket 游戏客户端 (传输层)

功能:
- 连接服务端，连接成功后自动发送加入房间请求
- 把收到的原始帧交给 GameSession 分发
- 把 GameSession 产生的出站帧按顺序写入连接 (即发即忘)
- 传输层错误经 on_error 通知上层，不改变阶段
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import sys
import threading
from collections.abc import Callable
from dataclasses import replace
from typing import TYPE_CHECKING

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, InvalidHandshake, InvalidURI

from game.config import ClientConfig, get_config
from game.enums import Phase
from game.exceptions import GameError, TransportError
from game.session import GameSession

if TYPE_CHECKING:
    from websockets.asyncio.client import ClientConnection

    from game.card import Card

logger = logging.getLogger(__name__)

# 写队列中的关闭请求标记
_CLOSE = None


class GameClient:
    """Jobbers WebSocket 客户端

    职责:
    1. 维护与服务端的 WebSocket 连接
    2. 作为 GameSession 的 FrameSink 收发消息
    3. 连接/断开事件通过可选回调通知上层
    """

    def __init__(
        self,
        server_url: str | None = None,
        player_name: str = "",
        room_code: str = "",
        config: ClientConfig | None = None,
    ):
        self.config = config or get_config()
        self.server_url = server_url or self.config.server_url
        self.session = GameSession(player_name, room_code, transport=self)

        # WebSocket 连接
        self._ws: ClientConnection | None = None
        self._connected: bool = False
        self._outbox: asyncio.Queue[str | None] = asyncio.Queue()
        self._close_reported: bool = False

        # 事件回调
        self._on_connect: Callable | None = None
        self._on_disconnect: Callable | None = None

    # ==================== 事件回调注册 ====================

    def on_connect(self, handler: Callable) -> None:
        """注册连接成功回调"""
        self._on_connect = handler

    def on_disconnect(self, handler: Callable) -> None:
        """注册断连回调 (连接关闭不触发任何协议动作)"""
        self._on_disconnect = handler

    # ==================== 连接管理 ====================

    async def connect(self) -> bool:
        """连接到服务端，成功后自动发送加入房间请求"""
        try:
            self._ws = await connect(
                self.server_url,
                open_timeout=self.config.open_timeout,
                max_size=self.config.max_message_size,
            )
        except (OSError, TimeoutError, asyncio.TimeoutError, InvalidURI, InvalidHandshake) as e:
            logger.error("Failed to connect to %s: %s", self.server_url, e)
            self._connected = False
            self.session.report_transport_error(TransportError(reason=str(e)))
            return False

        # 每个连接一个新的写队列，上一个连接残留的关闭标记不会影响新连接
        self._outbox = asyncio.Queue()
        self._close_reported = False
        self._connected = True
        logger.info("WebSocket opened: %s", self.server_url)
        await self._fire(self._on_connect)
        self.session.join_lobby()
        return True

    async def disconnect(self) -> None:
        """主动断开连接"""
        self._connected = False
        if self._ws:
            await self._ws.close()
            self._ws = None
        logger.info("Disconnected")

    @property
    def is_connected(self) -> bool:
        return self._connected and self._ws is not None

    # ==================== FrameSink ====================

    def send(self, frame: str) -> None:
        """排队发送一帧，不等待写入完成"""
        if not self.is_connected:
            logger.warning("Not connected, dropping frame: %s", frame)
            return
        self._outbox.put_nowait(frame)

    def close(self) -> None:
        """请求关闭连接，在此前排队的帧写完之后执行"""
        self._outbox.put_nowait(_CLOSE)

    # ==================== 收发循环 ====================

    async def _send_loop(self) -> None:
        """写循环: 按入队顺序写出帧"""
        while True:
            frame = await self._outbox.get()
            if frame is _CLOSE:
                if self._ws is not None:
                    await self._ws.close()
                return
            try:
                await self._ws.send(frame)
            except ConnectionClosedError as e:
                self._report_abnormal_close(e)
                return
            except ConnectionClosed as e:
                logger.warning("Send failed, connection closed: %s", e)
                return

    async def _receive_loop(self) -> None:
        """消息接收循环"""
        try:
            async for raw in self._ws:
                self._dispatch(raw)
        except ConnectionClosedError as e:
            self._report_abnormal_close(e)
        finally:
            self._connected = False
            self._outbox.put_nowait(_CLOSE)

    def _report_abnormal_close(self, error: ConnectionClosedError) -> None:
        """异常断开经 on_error 上报，收发两侧都观察到时只报一次"""
        if self._close_reported:
            return
        self._close_reported = True
        logger.warning("WebSocket closed abnormally: %s", error)
        self.session.report_transport_error(TransportError(reason=str(error)))

    def _dispatch(self, raw: str | bytes) -> None:
        """交给会话分发；展示层回调抛出的异常只记录，不中断接收循环"""
        try:
            self.session.handle_frame(raw)
        except Exception:
            logger.exception("Error while handling inbound message")

    # ==================== 主循环 ====================

    async def run(self) -> None:
        """客户端主循环: 连接 → 收发直到连接关闭 (不自动重连)"""
        if not await self.connect():
            return

        try:
            await asyncio.gather(
                self._receive_loop(),
                self._send_loop(),
            )
        finally:
            self._connected = False
            self._ws = None
            logger.info("WebSocket closed")
            await self._fire(self._on_disconnect)

    @staticmethod
    async def _fire(handler: Callable | None) -> None:
        if handler is None:
            return
        result = handler()
        if inspect.isawaitable(result):
            await result


# ==================== CLI 客户端 ====================

cli_log = logging.getLogger("jobbers.cli")


def parse_command(line: str) -> tuple[str, str]:
    """把一行输入拆成 (命令, 参数)"""
    verb, _, arg = line.strip().partition(" ")
    return verb.lower(), arg.strip()


def run_command(session: GameSession, verb: str, arg: str) -> bool:
    """执行一条命令，返回 False 表示退出

    Raises:
        GameError: 操作在当前阶段不合法或卡牌不存在
        ValueError: 参数格式错误
    """
    match verb:
        case "job":
            session.submit_job(arg)
        case "play":
            session.play_card(arg)
        case "intercept":
            session.intercept_card(arg)
        case "score":
            session.submit_score(int(arg))
        case "cards":
            for card in session.cards:
                cli_log.info("  %s", card)
        case "quit":
            return False
        case _:
            cli_log.warning("Unknown command: %s", verb)
    return True


def _execute(client: GameClient, line: str) -> None:
    verb, arg = parse_command(line)
    if not verb:
        return
    try:
        if not run_command(client.session, verb, arg):
            client.close()
    except (GameError, ValueError) as e:
        cli_log.error("❌ %s", e)


def _stdin_reader(loop: asyncio.AbstractEventLoop, client: GameClient) -> None:
    """后台线程读取标准输入，命令回到事件循环线程执行"""
    for line in sys.stdin:
        loop.call_soon_threadsafe(_execute, client, line)


async def cli_client_main(
    server_url: str | None,
    player_name: str,
    room_code: str,
    config: ClientConfig | None = None,
):
    """简化的命令行客户端"""
    client = GameClient(server_url, player_name, room_code, config=config)
    session = client.session

    def on_join_failed(reason: str):
        cli_log.error("❌ %s", reason)

    def on_game_started(jobs: int):
        cli_log.info("Game started, write %d jobs with: job <text>", jobs)

    def on_phase_changed(phase: Phase):
        cli_log.info("Phase: %s", phase.name)
        if phase is Phase.VOTING:
            cli_log.info("Submit your score with: score <cents>")

    def on_cards_changed(cards: list[Card]):
        cli_log.info("Hand: %s", ", ".join(str(c) for c in cards) or "(empty)")

    def on_job_card_changed(card: Card):
        cli_log.info("Job card: %s", card.job_text)

    session.on_game_join_attempt_failed = on_join_failed
    session.on_game_started = on_game_started
    session.on_phase_changed = on_phase_changed
    session.on_cards_changed = on_cards_changed
    session.on_job_card_changed = on_job_card_changed
    session.on_game_ended = lambda: cli_log.info("Game finished!")
    session.on_error = lambda: cli_log.error("❌ Connection error")

    reader = threading.Thread(
        target=_stdin_reader,
        args=(asyncio.get_running_loop(), client),
        daemon=True,
    )
    reader.start()
    await client.run()


def main():
    """命令行客户端入口"""
    import argparse

    from logging_config import setup_logging

    parser = argparse.ArgumentParser(description="Jobbers client")
    parser.add_argument("--server", default=None, help="服务端地址 (ws://host:port/path)")
    parser.add_argument("--name", default="Player", help="玩家名称")
    parser.add_argument("--room", required=True, help="房间码")

    args = parser.parse_args()
    config = get_config()
    if args.server:
        config = replace(config, server_url=args.server)
    for error in config.validate():
        parser.error(error)

    level = "DEBUG" if config.debug_mode else config.log_level
    setup_logging(
        level=level,
        enable_console=True,
        console_level="DEBUG" if config.debug_mode else "INFO",
    )
    asyncio.run(cli_client_main(config.server_url, args.name, args.room, config))


if __name__ == "__main__":
    main()
