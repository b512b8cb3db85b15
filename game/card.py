"""卡牌模块
定义职位卡牌 (一张卡 = 一条职位描述)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class Card:
    """职位卡牌 (不可变)

    Attributes:
        card_id: 卡牌 ID，本轮内唯一
        job_text: 职位描述文本
    """

    card_id: str
    job_text: str

    def __str__(self) -> str:
        return f"[{self.card_id}] {self.job_text}"

    def to_dict(self) -> dict[str, Any]:
        """转换为线上格式字典"""
        return {"card_id": self.card_id, "job_text": self.job_text}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Card:
        """从字典创建卡牌"""
        return cls(card_id=str(data["card_id"]), job_text=data["job_text"])


def find_card(cards: list[Card], card_id: str) -> Card | None:
    """在手牌中按 ID 查找卡牌，找不到返回 None"""
    for card in cards:
        if card.card_id == card_id:
            return card
    return None
