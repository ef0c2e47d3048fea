"""简报领域模型"""
from .models import Digest, DigestScope, ScopeKind
from .prompt import PreparedArticle, build_digest_prompt, prepare_articles
from .tokens import estimate_truncate

__all__ = [
    "Digest",
    "DigestScope",
    "ScopeKind",
    "PreparedArticle",
    "build_digest_prompt",
    "prepare_articles",
    "estimate_truncate",
]
