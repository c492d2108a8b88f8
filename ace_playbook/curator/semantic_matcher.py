# ace_playbook/curator/semantic_matcher.py

from ace_playbook.core.schema import Bullet
from ace_playbook.embeddings.client import cosine_similarity
from ace_playbook.utils import normalize_for_dedupe

DEFAULT_DEDUP_THRESHOLD = 0.92


class SemanticMatcher:
    """
    Finds the bullet in a section that a candidate would duplicate.

    Two tiers: an exact match on normalized text (whitespace collapsed, case
    folded), then, for candidates with an embedding, the existing bullet with
    the highest cosine similarity provided it reaches ``threshold``. Bullets
    stored without an embedding only take part in the exact tier.
    """

    def __init__(self, threshold: float = DEFAULT_DEDUP_THRESHOLD):
        self.threshold = threshold

    def find_exact(self, candidate_content: str, existing_bullets: list[Bullet]) -> Bullet | None:
        norm = normalize_for_dedupe(candidate_content)
        for bullet in existing_bullets:
            if normalize_for_dedupe(bullet.content) == norm:
                return bullet
        return None

    def find_near_duplicate(
        self, candidate_embedding: list[float] | None, existing_bullets: list[Bullet]
    ) -> tuple[Bullet | None, float]:
        """
        Find the closest embedded bullet to the candidate.

        Args:
            candidate_embedding: Vector of the candidate content, or None
            existing_bullets: Bullets of the target section

        Returns:
            (bullet, score) when the best score reaches the threshold,
            otherwise (None, best score seen; -1.0 if nothing was comparable)
        """
        if not candidate_embedding:
            return None, -1.0

        best: Bullet | None = None
        best_score = -1.0
        for bullet in existing_bullets:
            if not bullet.embedding:
                continue
            score = cosine_similarity(candidate_embedding, bullet.embedding)
            if score > best_score:
                best, best_score = bullet, score

        if best is not None and best_score >= self.threshold:
            return best, best_score
        return None, best_score
