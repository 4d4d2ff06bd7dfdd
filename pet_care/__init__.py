"""宠物照护：提醒重复规则、今日日程与本地通知调度。"""

__version__ = "0.1.0"
