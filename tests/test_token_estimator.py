"""Token 估算与截断测试"""
import pytest

from fluxdigest.domain.digest.tokens import ELLIPSIS, estimate_tokens, estimate_truncate


def _strip_ellipsis(text: str) -> str:
    return text[: -len(ELLIPSIS)] if text.endswith(ELLIPSIS) else text


class TestEstimateTruncate:
    """estimate_truncate 测试类"""

    @pytest.mark.parametrize("value", ["", None])
    def test_empty_input_returns_empty_string(self, value):
        assert estimate_truncate(value, 10) == ""

    def test_text_under_budget_is_unchanged(self):
        text = "hello world"
        assert estimate_tokens(text) < 100
        assert estimate_truncate(text, 100) == text

    def test_cjk_characters_cost_more(self):
        assert estimate_truncate("中中中中", 3) == "中..."
        # 同样长度的拉丁字符远低于预算
        assert estimate_truncate("abcd", 3) == "abcd"

    def test_latin_text_is_cut_with_ellipsis(self):
        text = "a" * 100
        result = estimate_truncate(text, 10.5)
        assert result.endswith(ELLIPSIS)
        # 0.3 * 35 = 10.5，第 35 个字符触达预算，之前的 34 个字符保留
        assert len(_strip_ellipsis(result)) in (34, 35)

    @pytest.mark.parametrize(
        "text",
        [
            "Hello, 世界! " * 50,
            "纯中文内容" * 100,
            "plain latin text " * 200,
        ],
    )
    def test_result_is_prefix_of_input(self, text):
        result = estimate_truncate(text, 50)
        assert text.startswith(_strip_ellipsis(result))

    @pytest.mark.parametrize("suffix", ["", "x", "更多内容" * 20, " tail" * 300])
    def test_appending_suffix_never_changes_an_existing_cut(self, suffix):
        base = "新闻摘要 news summary " * 30
        cut = estimate_truncate(base, 40)
        assert cut.endswith(ELLIPSIS)
        assert estimate_truncate(base + suffix, 40) == cut

    def test_appending_suffix_to_short_text_keeps_it_as_prefix(self):
        short = "short"
        longer = short + " and a much longer suffix" * 50
        result = estimate_truncate(longer, 20)
        assert _strip_ellipsis(result).startswith(short)
        assert len(_strip_ellipsis(result)) <= len(longer)
