from .semantic_matcher import DEFAULT_DEDUP_THRESHOLD, SemanticMatcher

__all__ = ["DEFAULT_DEDUP_THRESHOLD", "SemanticMatcher"]
