"""Fuzzy category matching.

Scores a product title (plus optional description) against every leaf
of a category tree. A leaf scores well when the query explains its own
name; agreement with ancestor names counts for less:

    score = 0.6 * name coverage      share of leaf-name terms the query matches
          + 0.1 * query in name      share of query keywords found in the name
          + 0.2 * ancestor coverage  share of ancestor terms the query matches
          + 0.1 * query in path      share of query keywords found anywhere
          - short-name penalty
          - wrong-gender penalty

A title that equals a leaf name scores 1.0 outright. Terms are compared
with rapidfuzz so Turkish suffixes, embedded words and small typos still
count. Gender words ("bayan", "erkek", "women"...) reach their synonyms,
and a leaf under a different gender than the title names is pushed down.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from rapidfuzz import fuzz

from marketcat.catalog.text import normalize_query, tokenize
from marketcat.catalog.tree import TreeSnapshot
from marketcat.domain.exceptions import EmptyTitleError
from marketcat.domain.models import CategoryId, CategoryNode, Confidence, MatchResult

NAME_COVERAGE_WEIGHT = 0.6
QUERY_IN_NAME_WEIGHT = 0.1
ANCESTOR_COVERAGE_WEIGHT = 0.2
QUERY_IN_PATH_WEIGHT = 0.1

# Single-term leaf names shorter than this are penalized
SHORT_NAME_LENGTH = 5
SHORT_NAME_PENALTY = 0.25

EXACT_TERM = 1.0
STEM_TERM = 0.9
CONTAINED_TERM = 0.6
MIN_STEM_LENGTH = 4

# fuzz.ratio (0-100) from which two terms count as one word misspelt
FUZZY_TERM_RATIO = 85

# Strength multiplier for a match found through a keyword expansion
EXPANSION_FACTOR = 0.8

# Gender groups a title or category path can name. Terms are folded.
GENDER_TERMS: dict[str, tuple[str, ...]] = {
    "kadin": ("kadin", "kadinlar", "bayan", "bayanlar", "women", "woman", "ladies", "female"),
    "erkek": ("erkek", "erkekler", "bay", "men", "man", "male"),
    "cocuk": ("cocuk", "cocuklar", "kids", "children", "child"),
    "kiz": ("kiz", "girl", "girls"),
    "bebek": ("bebek", "bebekler", "baby", "infant", "newborn"),
}
WRONG_GENDER_PENALTY = 0.3

_GENDER_OF = {term: group for group, terms in GENDER_TERMS.items() for term in terms}

HIGH_CONFIDENCE = 0.7
MEDIUM_CONFIDENCE = 0.4

DEFAULT_MIN_SCORE = 0.05
DEFAULT_TOP_N = 5


def term_similarity(a: str, b: str) -> float:
    """Similarity of two folded terms.

    Equal terms score 1.0. When the shorter term has at least four
    characters:

    - a shared stem (one is a prefix of the other, as with Turkish
      suffixes: "kilif" / "kilifi") scores 0.9,
    - containment ("sarj" in "powersarj") scores 0.6,
    - a near spelling ("telefn" / "telefon") scores 0.9 scaled by its
      fuzz.ratio, when that ratio reaches 85.
    """
    if a == b:
        return EXACT_TERM
    shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
    if len(shorter) < MIN_STEM_LENGTH:
        return 0.0
    if longer.startswith(shorter):
        return STEM_TERM
    if fuzz.partial_ratio(shorter, longer) == 100:
        return CONTAINED_TERM
    ratio = fuzz.ratio(a, b)
    if ratio >= FUZZY_TERM_RATIO:
        return STEM_TERM * ratio / 100
    return 0.0


def confidence_for(score: float) -> Confidence:
    """Bucket a score into a confidence level."""
    if score >= HIGH_CONFIDENCE:
        return Confidence.HIGH
    if score >= MEDIUM_CONFIDENCE:
        return Confidence.MEDIUM
    return Confidence.LOW


def _id_sort_key(category_id: CategoryId) -> tuple[bool, int | str]:
    return (isinstance(category_id, str), category_id)


@dataclass(frozen=True)
class _Keyword:
    """A query keyword and the alternative terms it may match through."""

    term: str
    alternatives: tuple[str, ...] = ()

    def strength(self, target: str) -> float:
        best = term_similarity(self.term, target)
        if best == EXACT_TERM:
            return best
        for alternative in self.alternatives:
            best = max(best, term_similarity(alternative, target) * EXPANSION_FACTOR)
        return best


@dataclass(frozen=True)
class _LeafProfile:
    node: CategoryNode
    name: str
    name_terms: tuple[str, ...]
    ancestor_terms: tuple[str, ...]
    genders: frozenset[str]


class CategoryMatcher:
    """Ranks leaf categories for a product title.

    Example usage:
        matcher = CategoryMatcher(keyword_expansions=client.keyword_expansions)
        results = matcher.match(snapshot, "Siyah Deri Telefon Kılıfı")
    """

    def __init__(
        self,
        keyword_expansions: Mapping[str, Sequence[str]] | None = None,
        min_score: float = DEFAULT_MIN_SCORE,
    ) -> None:
        """Initialize matcher.

        Args:
            keyword_expansions: Query keyword -> extra terms, e.g.
                Turkish to English translations for an English tree.
            min_score: Results scoring below this are dropped.
        """
        self.min_score = min_score
        self._expansions: dict[str, tuple[str, ...]] = {
            term: tuple(t for t in terms if t != term)
            for terms in GENDER_TERMS.values()
            for term in terms
        }
        for keyword, phrases in (keyword_expansions or {}).items():
            key = normalize_query(keyword)
            terms = [t for phrase in phrases for t in tokenize(phrase) if t != key]
            self._expansions[key] = tuple(dict.fromkeys([*self._expansions.get(key, ()), *terms]))

        self._version: int | None = None
        self._profiles: list[_LeafProfile] = []

    def match(
        self,
        snapshot: TreeSnapshot,
        title: str,
        description: str = "",
        top_n: int = DEFAULT_TOP_N,
    ) -> list[MatchResult]:
        """Score every leaf and return the best matches.

        Args:
            snapshot: Tree whose leaves are candidates.
            title: Product title.
            description: Optional product description.
            top_n: Maximum number of results.

        Returns:
            Results ordered by score, then shallower depth, then id.

        Raises:
            EmptyTitleError: Title is blank.
        """
        if not title or not title.strip():
            raise EmptyTitleError()
        if top_n <= 0:
            return []

        self._ensure_profiles(snapshot)

        normalized_title = normalize_query(title)
        keywords = [
            _Keyword(term, self._expansions.get(term, ()))
            for term in tokenize(f"{title} {description}")
        ]
        genders = frozenset(_GENDER_OF[k.term] for k in keywords if k.term in _GENDER_OF)

        scored: list[tuple[float, CategoryNode, tuple[str, ...]]] = []
        for profile in self._profiles:
            if profile.name == normalized_title:
                score, matched = 1.0, tuple(k.term for k in keywords)
            else:
                score, matched = self._score(profile, keywords, genders)
            if score >= self.min_score and score > 0:
                scored.append((score, profile.node, matched))

        scored.sort(key=lambda s: (-s[0], s[1].depth, _id_sort_key(s[1].id)))

        return [
            MatchResult(
                category_id=node.id,
                display_path=node.display_path(),
                score=round(score, 4),
                confidence=confidence_for(score),
                matched_keywords=matched,
            )
            for score, node, matched in scored[:top_n]
        ]

    def _score(
        self,
        profile: _LeafProfile,
        keywords: list[_Keyword],
        genders: frozenset[str] = frozenset(),
    ) -> tuple[float, tuple[str, ...]]:
        """Weighted score of one leaf and the keywords that contributed.

        Args:
            profile: Leaf being scored.
            keywords: Query keywords.
            genders: Gender groups the query names.
        """
        if not keywords:
            return 0.0, ()

        name_hits = [[k.strength(t) for t in profile.name_terms] for k in keywords]
        ancestor_hits = [[k.strength(t) for t in profile.ancestor_terms] for k in keywords]

        name_coverage = _coverage(name_hits, len(profile.name_terms))
        ancestor_coverage = _coverage(ancestor_hits, len(profile.ancestor_terms))

        best_in_name = [max(hits, default=0.0) for hits in name_hits]
        best_in_path = [
            max(n, max(a, default=0.0)) for n, a in zip(best_in_name, ancestor_hits)
        ]
        query_in_name = sum(best_in_name) / len(keywords)
        query_in_path = sum(best_in_path) / len(keywords)

        score = (
            NAME_COVERAGE_WEIGHT * name_coverage
            + QUERY_IN_NAME_WEIGHT * query_in_name
            + ANCESTOR_COVERAGE_WEIGHT * ancestor_coverage
            + QUERY_IN_PATH_WEIGHT * query_in_path
        )

        if len(profile.name_terms) == 1 and len(profile.name_terms[0]) < SHORT_NAME_LENGTH:
            shortfall = (SHORT_NAME_LENGTH - len(profile.name_terms[0])) / SHORT_NAME_LENGTH
            score -= SHORT_NAME_PENALTY * shortfall

        if genders and profile.genders and not genders & profile.genders:
            score -= WRONG_GENDER_PENALTY

        matched = tuple(k.term for k, best in zip(keywords, best_in_path) if best > 0)
        return min(max(score, 0.0), 1.0), matched

    def _ensure_profiles(self, snapshot: TreeSnapshot) -> None:
        if self._version == snapshot.version:
            return
        profiles = []
        for leaf in snapshot.leaves:
            name_terms = tuple(tokenize(leaf.name) or tokenize(leaf.name, min_length=1))
            ancestor_terms = tuple(
                t
                for t in dict.fromkeys(t for p in leaf.path[:-1] for t in tokenize(p))
                if t not in name_terms
            )
            profiles.append(
                _LeafProfile(
                    node=leaf,
                    name=normalize_query(leaf.name),
                    name_terms=name_terms,
                    ancestor_terms=ancestor_terms,
                    genders=frozenset(
                        _GENDER_OF[t] for t in (*name_terms, *ancestor_terms) if t in _GENDER_OF
                    ),
                )
            )
        self._profiles = profiles
        self._version = snapshot.version


def _coverage(hits: list[list[float]], term_count: int) -> float:
    """Mean over target terms of the best strength any keyword reached."""
    if term_count == 0 or not hits:
        return 0.0
    return sum(max(column) for column in zip(*hits)) / term_count
