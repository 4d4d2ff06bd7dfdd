"""全局配置与路径。"""
import os
from pathlib import Path

# 项目根目录（pet_care 包所在目录的上一级）
ROOT_DIR = Path(__file__).resolve().parent.parent
# 数据目录：宠物档案、提醒、就诊记录、通知偏好等；可用环境变量覆盖
DATA_DIR = Path(os.getenv("PET_CARE_DATA_DIR", str(ROOT_DIR / "data")))
PETS_DIR = DATA_DIR / "pets"
HEALTH_DATA_DIR = DATA_DIR / "health"  # 提醒与就诊
SETTINGS_DIR = DATA_DIR / "settings"  # 通知偏好（按用户）
LOG_DIR = DATA_DIR / "logs"

# 日志
LOG_LEVEL = os.getenv("PET_CARE_LOG_LEVEL", "INFO")

# 通知偏好默认：各类型提前分钟数（0 = 准点）
DEFAULT_ADVANCE_MINUTES = {
    "MEDICATION": 5,
    "VET_APPOINTMENT": 60,
    "VACCINE": 0,
    "ANTIPARASITIC": 0,
    "HYGIENE": 15,
    "GROOMING": 60,
    "FOOD": 0,
    "WALK": 10,
    "TRAINING": 5,
    "OTHER": 0,
}
# 免打扰默认关闭，22:00 - 08:00
DEFAULT_QUIET_START = (22, 0)
DEFAULT_QUIET_END = (8, 0)
DEFAULT_VACCINE_ADVANCE_DAYS = 7

# 通知渠道
CHANNEL_DEFAULT = "default"
CHANNEL_MEDICATION = "medication"
CHANNEL_VET = "vet"
CHANNEL_VACCINE = "vaccine"

# 日历最多跨多少天
CALENDAR_MAX_DAYS = 62
# 向后查找下一次发生的最大天数
NEXT_OCCURRENCE_HORIZON_DAYS = 400


def ensure_dirs() -> None:
    """确保数据目录存在。"""
    for d in (DATA_DIR, PETS_DIR, HEALTH_DATA_DIR, SETTINGS_DIR, LOG_DIR):
        d.mkdir(parents=True, exist_ok=True)
