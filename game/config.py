"""客户端配置中心 (SSOT - 单一事实来源)

所有可配置的客户端参数应在此定义，支持从环境变量覆盖。
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field


def _get_env_float(key: str, default: float) -> float:
    """从环境变量获取浮点数配置"""
    value = os.environ.get(key)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            pass
    return default


def _get_env_int(key: str, default: int) -> int:
    """从环境变量获取整数配置"""
    value = os.environ.get(key)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            pass
    return default


def _get_env_bool(key: str, default: bool) -> bool:
    """从环境变量获取布尔配置"""
    value = os.environ.get(key, "").lower()
    if value in ("true", "1", "yes", "on"):
        return True
    elif value in ("false", "0", "no", "off"):
        return False
    return default


@dataclass(frozen=True)
class ClientConfig:
    """客户端配置类 (不可变)

    所有配置项支持通过环境变量覆盖：
    - JOBBERS_SERVER_URL: 服务端 WebSocket 地址
    - JOBBERS_OPEN_TIMEOUT: 建立连接超时秒数
    - JOBBERS_WS_MAX_MSG_SIZE: 单帧最大字节数
    - JOBBERS_LOG_LEVEL / JOBBERS_DEBUG: 日志与调试
    """
    # ==================== 网络配置 ====================
    server_url: str = field(
        default_factory=lambda: os.environ.get(
            "JOBBERS_SERVER_URL", "ws://localhost:8000/ws"
        )
    )
    open_timeout: float = field(
        default_factory=lambda: _get_env_float("JOBBERS_OPEN_TIMEOUT", 10.0)
    )
    max_message_size: int = field(
        default_factory=lambda: _get_env_int("JOBBERS_WS_MAX_MSG_SIZE", 65_536)
    )

    # ==================== 日志与调试 ====================
    log_level: str = field(
        default_factory=lambda: os.environ.get("JOBBERS_LOG_LEVEL", "INFO")
    )
    debug_mode: bool = field(
        default_factory=lambda: _get_env_bool("JOBBERS_DEBUG", False)
    )

    @classmethod
    def from_env(cls) -> ClientConfig:
        """从环境变量创建配置实例"""
        return cls()

    def validate(self) -> list[str]:
        """校验配置取值，返回错误描述列表 (空列表表示合法)"""
        errors: list[str] = []
        if not self.server_url.startswith(("ws://", "wss://")):
            errors.append(
                f"server_url must start with ws:// or wss://, got {self.server_url!r}"
            )
        if self.open_timeout <= 0:
            errors.append(f"open_timeout must be > 0, got {self.open_timeout}")
        if self.max_message_size <= 0:
            errors.append(f"max_message_size must be > 0, got {self.max_message_size}")
        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"log_level is not a logging level name: {self.log_level!r}")
        return errors


# 全局配置单例
_config: ClientConfig | None = None


def get_config() -> ClientConfig:
    """获取全局配置实例（懒加载）"""
    global _config
    if _config is None:
        _config = ClientConfig.from_env()
    return _config


def reset_config() -> None:
    """重置配置（用于测试）"""
    global _config
    _config = None
