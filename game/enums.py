"""会话阶段枚举: 独立成模块以避免 session / phase_fsm / messages 之间的循环导入"""

from enum import Enum


class Phase(str, Enum):
    """玩家会话在共享游戏流程中所处的阶段

    顺序即协议的典型推进顺序，但转换并非严格线性，
    合法转换见 phase_fsm.VALID_TRANSITIONS。
    """

    MENU = "menu"  # 主菜单 (被拒绝后停留于此)
    CONNECTING = "connecting"  # 连接中 (唯一初始阶段)
    LOBBY = "lobby"  # 大厅等待
    JOB_CREATION = "job_creation"  # 编写职位
    JOB_CREATION_DONE = "job_creation_done"  # 职位已提交完
    JOB_PICKING = "job_picking"  # 选牌
    JOB_PICKING_DONE = "job_picking_done"  # 已出牌，等待角色分配
    INTERVIEWEE = "interviewee"  # 面试者
    INTERVIEWER = "interviewer"  # 面试官
    VOTING = "voting"  # 打分
    VOTING_DONE = "voting_done"  # 已打分
    GAME_FINISHED = "game_finished"  # 游戏结束
