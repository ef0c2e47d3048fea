"""简报中使用的本地化文案（中文 / 英文）"""

from typing import Dict

_LABELS: Dict[str, Dict[str, str]] = {
    "en": {
        "all": "All Subscriptions",
        "feed": "Feed",
        "group": "Group",
        "digest": "Digest",
        "feed_sources": "Feed Sources",
    },
    "zh": {
        "all": "全部订阅",
        "feed": "订阅源",
        "group": "分组",
        "digest": "简报",
        "feed_sources": "订阅源清单",
    },
}


def is_english(target_lang: str) -> bool:
    """目标语言是否按英文输出标签"""
    lang = (target_lang or "").strip().lower()
    return "english" in lang or lang.startswith("en")


def label(key: str, english: bool) -> str:
    return _LABELS["en" if english else "zh"][key]


def no_articles_message(hours: int, unread_only: bool, english: bool) -> str:
    """时间窗口内没有候选文章时的占位正文"""
    if english:
        time_desc = f"in the past {hours} hours" if hours > 0 else "in scope"
        return f"No {'unread ' if unread_only else ''}articles {time_desc}."
    time_desc = f"在过去 {hours} 小时内" if hours > 0 else "范围内"
    return f"{time_desc}没有{'未读' if unread_only else ''}文章。"
