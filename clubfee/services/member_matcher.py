"""
Match recognized player names to club members.

Tiers, first tier with any candidate decides:
1. exact match after normalization
2. containment ("홍길동" vs "홍길동A"), scored by length ratio
3. rapidfuzz similarity at or above the threshold

A tie at the top of the deciding tier returns None: two equally good members
means a person has to pick, not the matcher.
"""
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from rapidfuzz import fuzz

from clubfee.models.member import Member
from clubfee.schemas.ocr import PlayerScore

logger = logging.getLogger(__name__)

MIN_CONTAINED_LENGTH = 2


def normalize_name(name: str) -> str:
    return "".join(name.strip().lower().split())


def _best(candidates: List[Tuple[float, int]]) -> Optional[int]:
    """Member id with the highest score, None when the top score is shared."""
    if not candidates:
        return None
    top = max(score for score, _ in candidates)
    winners = {member_id for score, member_id in candidates if score == top}
    if len(winners) > 1:
        return None
    return winners.pop()


class MemberNameMatcher:
    def __init__(self, similarity_threshold: float = 80):
        self.similarity_threshold = similarity_threshold

    def match(self, name: str, members: Sequence[Member]) -> Optional[int]:
        target = normalize_name(name or "")
        if not target:
            return None

        known = [(normalize_name(m.name), m.id) for m in members]
        known = [(member_name, member_id) for member_name, member_id in known if member_name]

        for tier in (self._exact, self._containment, self._similarity):
            candidates = tier(target, known)
            if candidates:
                member_id = _best(candidates)
                if member_id is None:
                    logger.info("Ambiguous member match for %r among %d candidates", name, len(candidates))
                return member_id
        return None

    @staticmethod
    def _exact(target: str, known: List[Tuple[str, int]]) -> List[Tuple[float, int]]:
        return [(1.0, member_id) for member_name, member_id in known if member_name == target]

    @staticmethod
    def _containment(target: str, known: List[Tuple[str, int]]) -> List[Tuple[float, int]]:
        candidates = []
        for member_name, member_id in known:
            shorter, longer = sorted((target, member_name), key=len)
            if len(shorter) >= MIN_CONTAINED_LENGTH and shorter in longer:
                candidates.append((len(shorter) / len(longer), member_id))
        return candidates

    def _similarity(self, target: str, known: List[Tuple[str, int]]) -> List[Tuple[float, int]]:
        candidates = []
        for member_name, member_id in known:
            score = fuzz.ratio(target, member_name)
            if score >= self.similarity_threshold:
                candidates.append((score, member_id))
        return candidates

    def match_scores(self, scores: Sequence[PlayerScore], members: Sequence[Member]) -> List[PlayerScore]:
        """Attach member ids to recognized players, using each member at most once."""
        available: Dict[int, Member] = {m.id: m for m in members}
        matched: List[PlayerScore] = []
        for score in scores:
            member_id = self.match(score.name, list(available.values()))
            if member_id is not None:
                del available[member_id]
            matched.append(score.with_matched_member(member_id))

        logger.debug(
            "Matched %d of %d recognized players",
            sum(1 for s in matched if s.matched_member_id is not None), len(matched)
        )
        return matched
