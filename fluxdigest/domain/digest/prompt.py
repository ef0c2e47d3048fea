"""
简报提示词构建

prepare_articles 把 Miniflux entry 整理成纯文本摘要，build_digest_prompt
把整理后的文章列表渲染进提示词模板。两者都不做 I/O。
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from bs4 import BeautifulSoup

from .tokens import estimate_truncate

SUMMARY_MAX_TOKENS = 1000
# 解析 HTML 前先截断，避免超长正文拖慢解析
SAFE_CONTENT_LENGTH = 50000

CONTENT_PLACEHOLDER = "{{content}}"
TARGET_LANG_PLACEHOLDER = "{{targetLang}}"
_LEGACY_CONTENT = "{content}"
_LEGACY_TARGET_LANG = "{targetLang}"

_WHITESPACE_RE = re.compile(r"\s+")

DEFAULT_TEMPLATE = """You are a professional news editor. Generate a concise digest based ONLY on the following list of recent {scope} articles.

## CRITICAL CONSTRAINT:
- Use ONLY information from the article list below. Do not add any facts, events, or details from your training data or external knowledge.
- Every claim in your digest must be traceable to one of the listed articles. If something is not in the list, do not include it.

## Output Requirements:
1. Output in {target_lang}
2. Start with a 2-3 sentence overview of the key content from these articles only
3. Categorize by topic or importance, listing key information in concise bullet points
4. If multiple articles relate to the same topic, combine them
5. Keep the format concise and compact, using Markdown
6. Output the content directly, no opening remarks like "Here is the digest"

{article_header}"""


@dataclass
class PreparedArticle:
    """进入提示词的一篇文章"""

    index: int
    title: str
    feed_title: str
    feed_id: Optional[int]
    category_name: str
    published_at: str
    summary: str
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "title": self.title,
            "feedTitle": self.feed_title,
            "feedId": self.feed_id,
            "categoryName": self.category_name,
            "publishedAt": self.published_at,
            "summary": self.summary,
            "url": self.url,
        }


def html_to_text(content: str) -> str:
    """去除 HTML 标签并压缩空白"""
    if not content:
        return ""
    content = content[:SAFE_CONTENT_LENGTH]
    text = BeautifulSoup(content, "html.parser").get_text(" ")
    return _WHITESPACE_RE.sub(" ", text).strip()


def prepare_articles(entries: Iterable[Dict[str, Any]]) -> List[PreparedArticle]:
    """
    把 Miniflux entry 转为 PreparedArticle 列表

    Args:
        entries: Miniflux /entries 返回的 entry 字典

    Returns:
        按输入顺序编号（从 1 开始）的文章列表，摘要截断到约 1000 token
    """
    prepared: List[PreparedArticle] = []
    for index, entry in enumerate(entries, start=1):
        feed = entry.get("feed") or {}
        category = feed.get("category") or {}
        feed_id = entry.get("feed_id")
        if feed_id is None:
            feed_id = feed.get("id")
        prepared.append(
            PreparedArticle(
                index=index,
                title=entry.get("title") or "",
                feed_title=feed.get("title") or "",
                feed_id=feed_id,
                category_name=category.get("title") or "",
                published_at=entry.get("published_at") or "",
                summary=estimate_truncate(html_to_text(entry.get("content") or ""), SUMMARY_MAX_TOKENS),
                url=entry.get("url") or "",
            )
        )
    return prepared


def render_article(article: PreparedArticle) -> str:
    lines = [
        f"### {article.index}. {article.title}\n",
        f"- Source: {article.feed_title}\n",
    ]
    if article.category_name:
        lines.append(f"- Category: {article.category_name}\n")
    lines.append(f"- Date: {article.published_at}\n")
    if article.url:
        lines.append(f"- Link: {article.url}\n")
    lines.append(f"- Summary: {article.summary}\n")
    return "".join(lines)


def render_article_list(articles: List[PreparedArticle]) -> str:
    return "\n".join(render_article(a) for a in articles)


def _article_header(articles: List[PreparedArticle]) -> str:
    return f"## Article List (Total {len(articles)} articles):\n\n{render_article_list(articles)}"


def normalize_template(template: str) -> str:
    """
    兼容旧的单花括号占位符，并保证模板中一定有 {{content}}

    没有内容占位符的模板会在末尾追加 "\\n\\n{{content}}"，文章列表不会被丢弃。
    """
    if _LEGACY_CONTENT in template and CONTENT_PLACEHOLDER not in template:
        template = template.replace(_LEGACY_CONTENT, CONTENT_PLACEHOLDER)
    if _LEGACY_TARGET_LANG in template and TARGET_LANG_PLACEHOLDER not in template:
        template = template.replace(_LEGACY_TARGET_LANG, TARGET_LANG_PLACEHOLDER)
    if CONTENT_PLACEHOLDER not in template:
        template = template.strip() + "\n\n" + CONTENT_PLACEHOLDER
    return template


def build_digest_prompt(
    articles: List[PreparedArticle],
    target_lang: str = "Simplified Chinese",
    scope_label: str = "subscription",
    custom_template: Optional[str] = None,
) -> str:
    """
    构建发送给模型的完整提示词

    Args:
        articles: prepare_articles 的结果
        target_lang: 输出语言
        scope_label: 范围名称，用于默认模板
        custom_template: 用户自定义模板，支持 {{targetLang}} / {{content}}

    Returns:
        提示词文本
    """
    if custom_template and custom_template.strip():
        content_block = (
            "## CRITICAL: Use ONLY the information from the article list below. "
            "Do not add any facts or details from outside these articles.\n\n"
            + _article_header(articles)
        )
        template = normalize_template(custom_template)
        return (
            template
            .replace(TARGET_LANG_PLACEHOLDER, target_lang)
            .replace(CONTENT_PLACEHOLDER, content_block)
        )

    return DEFAULT_TEMPLATE.format(
        scope=scope_label,
        target_lang=target_lang,
        article_header=_article_header(articles),
    )
