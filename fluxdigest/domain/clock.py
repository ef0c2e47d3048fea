"""用户时区相关的时间换算"""

from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from loguru import logger


def to_user_time(moment: datetime, tz_name: Optional[str]) -> datetime:
    """换算到用户时区；时区为空或无效时使用服务器本地时区"""
    if tz_name:
        try:
            return moment.astimezone(ZoneInfo(tz_name))
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"无效的时区 {tz_name!r}，使用服务器本地时间")
    return moment.astimezone()


def hhmm(moment: datetime, tz_name: Optional[str] = None) -> str:
    """用户时区下的 "HH:MM" """
    return to_user_time(moment, tz_name).strftime("%H:%M")


def compact_stamp(moment: datetime, tz_name: Optional[str] = None) -> str:
    """标题中使用的 "MM-DD-HH:mm" """
    return to_user_time(moment, tz_name).strftime("%m-%d-%H:%M")
