"""Cluster source records into company entities and score their agreement.

Resolution runs in five passes over an explicit disjoint-set forest keyed by the
record's position in the input:

1. records sharing a normalised BRNO or CRNO are joined;
2. records carrying both identifiers bridge their BRNO and CRNO clusters;
3. clusters whose member names are similar enough merge, unless the merge would put
   two different BRNOs (or CRNOs) in one cluster; repeated until stable;
4. records without identifiers attach to the most similar cluster of pass 3;
5. every cluster becomes an :class:`Entity`, everything else stays unmatched.
"""

from __future__ import annotations

import html
from itertools import combinations
from typing import TYPE_CHECKING, Final

from firmlink.domain.model import Entity, EntityIdentifiers, ResolutionResult
from firmlink.domain.normalize import (
    MATCH_THRESHOLD,
    calculate_name_similarity,
    match_level_for,
    normalize_brno,
    normalize_company_name,
    normalize_crno,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from firmlink.domain.model import SourceRecord

FIELD_WEIGHTS: Final[dict[str, float]] = {
    "brno": 0.35,
    "crno": 0.35,
    "company_name": 0.15,
    "address": 0.08,
    "representative": 0.05,
    "industry_code": 0.02,
}

# "회사명/고용형태/프로젝트명" style names are cut at the first separator
_NAME_SEPARATOR: Final[str] = "/"
_MIN_SEPARATED_PREFIX_LENGTH: Final[int] = 2


class _Clusters:
    """Disjoint-set forest that also tracks members and identifiers per root.

    The root of a cluster is always its smallest record index, so iterating roots in
    ascending order yields clusters ordered by their earliest member.
    """

    def __init__(self, size: int) -> None:
        self._parent = list(range(size))
        self._members: dict[int, list[int]] = {}
        self._brnos: dict[int, set[str]] = {}
        self._crnos: dict[int, set[str]] = {}

    def add(self, index: int, *, brno: str | None = None, crno: str | None = None) -> None:
        self._members[index] = [index]
        self._brnos[index] = {brno} if brno else set()
        self._crnos[index] = {crno} if crno else set()

    def contains(self, index: int) -> bool:
        return self.find(index) in self._members

    def find(self, index: int) -> int:
        root = index
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[index] != root:
            self._parent[index], index = root, self._parent[index]
        return root

    def union(self, a: int, b: int) -> int:
        root_a, root_b = self.find(a), self.find(b)
        if root_a == root_b:
            return root_a
        keep, drop = sorted((root_a, root_b))
        self._parent[drop] = keep
        self._members[keep] = sorted(self._members[keep] + self._members.pop(drop))
        self._brnos[keep] |= self._brnos.pop(drop)
        self._crnos[keep] |= self._crnos.pop(drop)
        return keep

    def attach(self, index: int, root: int) -> None:
        self._parent[index] = root
        self._members[root] = sorted([*self._members[root], index])

    def roots(self) -> list[int]:
        return sorted(self._members)

    def members(self, root: int) -> list[int]:
        return self._members[root]

    def can_merge(self, a: int, b: int) -> bool:
        root_a, root_b = self.find(a), self.find(b)
        return not (
            _conflicting(self._brnos[root_a], self._brnos[root_b])
            or _conflicting(self._crnos[root_a], self._crnos[root_b])
        )


def _conflicting(left: set[str], right: set[str]) -> bool:
    return bool(left) and bool(right) and left.isdisjoint(right)


def resolve(records: Sequence[SourceRecord]) -> ResolutionResult:
    """Group ``records`` into entities; pure and free of I/O."""

    if not records:
        return ResolutionResult()

    clusters = _Clusters(len(records))
    _cluster_by_identifier(records, clusters)
    _merge_by_name(records, clusters)
    _attach_identifierless(records, clusters)

    entities = tuple(
        _build_entity(position, [records[i] for i in clusters.members(root)])
        for position, root in enumerate(clusters.roots())
    )
    unmatched = tuple(
        record for index, record in enumerate(records) if not clusters.contains(index)
    )
    return ResolutionResult(entities=entities, unmatched=unmatched)


def _cluster_by_identifier(records: Sequence[SourceRecord], clusters: _Clusters) -> None:
    brno_owner: dict[str, int] = {}
    crno_owner: dict[str, int] = {}
    bridging: list[tuple[str, str]] = []

    for index, record in enumerate(records):
        brno = normalize_brno(record.brno)
        crno = normalize_crno(record.crno)
        if brno is None and crno is None:
            continue
        clusters.add(index, brno=brno, crno=crno)
        if brno is not None:
            clusters.union(brno_owner.setdefault(brno, index), index)
        if crno is not None:
            clusters.union(crno_owner.setdefault(crno, index), index)
        if brno is not None and crno is not None:
            bridging.append((brno, crno))

    for brno, crno in bridging:
        clusters.union(brno_owner[brno], crno_owner[crno])


def _merge_by_name(records: Sequence[SourceRecord], clusters: _Clusters) -> None:
    merged = True
    while merged:
        merged = False
        roots = clusters.roots()
        for root_a, root_b in combinations(roots, 2):
            if clusters.find(root_a) == clusters.find(root_b):
                continue
            if not clusters.can_merge(root_a, root_b):
                continue
            names_a = _member_names(records, clusters.members(clusters.find(root_a)))
            names_b = _member_names(records, clusters.members(clusters.find(root_b)))
            if _best_similarity(names_a, names_b) >= MATCH_THRESHOLD:
                clusters.union(root_a, root_b)
                merged = True


def _attach_identifierless(records: Sequence[SourceRecord], clusters: _Clusters) -> None:
    # scored against the clusters as they stood after the name merge so that the
    # order of identifier-less records cannot change where they land
    snapshot = [
        (root, _member_names(records, clusters.members(root))) for root in clusters.roots()
    ]
    for index, record in enumerate(records):
        if clusters.contains(index) or not record.company_name:
            continue
        best_root: int | None = None
        best_score = 0.0
        for root, names in snapshot:
            score = _best_similarity([record.company_name], names)
            if score > best_score:
                best_root, best_score = root, score
        if best_root is not None and best_score >= MATCH_THRESHOLD:
            clusters.attach(index, best_root)


def _member_names(records: Sequence[SourceRecord], indices: Iterable[int]) -> list[str]:
    return [name for i in indices if (name := records[i].company_name)]


def _best_similarity(names_a: Sequence[str], names_b: Sequence[str]) -> float:
    best = 0.0
    for name_a in names_a:
        for name_b in names_b:
            best = max(best, calculate_name_similarity(name_a, name_b))
            if best >= 1.0:
                return best
    return best


def _build_entity(position: int, members: Sequence[SourceRecord]) -> Entity:
    brno = next((b for m in members if (b := normalize_brno(m.brno))), None)
    crno = next((c for m in members if (c := normalize_crno(m.crno))), None)
    names = [m.company_name for m in members if m.company_name]
    confidence = calculate_group_consistency(members)
    return Entity(
        entity_id=f"ent_{brno or crno or position}",
        confidence=confidence,
        match_level=match_level_for(confidence),
        identifiers=EntityIdentifiers(brno=brno, crno=crno),
        canonical_name=select_canonical_name(names),
        name_variants=tuple(dict.fromkeys(names)),
        sources=tuple(dict.fromkeys(m.source for m in members)),
        members=tuple(members),
    )


def calculate_pair_confidence(a: SourceRecord, b: SourceRecord) -> float:
    """Weighted agreement of two records over the fields both of them carry."""

    total_weight = 0.0
    score = 0.0

    brno_a, brno_b = normalize_brno(a.brno), normalize_brno(b.brno)
    if brno_a and brno_b:
        total_weight += FIELD_WEIGHTS["brno"]
        score += FIELD_WEIGHTS["brno"] if brno_a == brno_b else 0.0

    crno_a, crno_b = normalize_crno(a.crno), normalize_crno(b.crno)
    if crno_a and crno_b:
        total_weight += FIELD_WEIGHTS["crno"]
        score += FIELD_WEIGHTS["crno"] if crno_a == crno_b else 0.0

    if a.company_name and b.company_name:
        total_weight += FIELD_WEIGHTS["company_name"]
        score += FIELD_WEIGHTS["company_name"] * calculate_name_similarity(
            a.company_name, b.company_name
        )

    if a.address and b.address:
        total_weight += FIELD_WEIGHTS["address"]
        score += FIELD_WEIGHTS["address"] * calculate_name_similarity(a.address, b.address)

    if a.representative and b.representative:
        total_weight += FIELD_WEIGHTS["representative"]
        if a.representative.strip() == b.representative.strip():
            score += FIELD_WEIGHTS["representative"]

    if a.industry_code and b.industry_code:
        total_weight += FIELD_WEIGHTS["industry_code"]
        if a.industry_code == b.industry_code:
            score += FIELD_WEIGHTS["industry_code"]

    return score / total_weight if total_weight > 0 else 0.0


def calculate_group_consistency(members: Sequence[SourceRecord]) -> float:
    """Mean pairwise confidence; a group of zero or one member is fully consistent."""

    if len(members) <= 1:
        return 1.0
    pairs = list(combinations(members, 2))
    return sum(calculate_pair_confidence(a, b) for a, b in pairs) / len(pairs)


def sanitize_company_name(name: str | None) -> str | None:
    if not name:
        return None
    clean = html.unescape(name)
    if _NAME_SEPARATOR in clean:
        head = clean.split(_NAME_SEPARATOR, 1)[0].strip()
        if len(head) >= _MIN_SEPARATED_PREFIX_LENGTH:
            clean = head
    return clean.strip() or None


def select_canonical_name(names: Sequence[str]) -> str | None:
    """Pick the most frequent normalised name; ties go to the shortest, then the first."""

    if not names:
        return None
    sanitized = [clean for name in names if (clean := sanitize_company_name(name))]
    if not sanitized:
        return names[0]

    counts: dict[str, int] = {}
    for name in sanitized:
        normalized = normalize_company_name(name)
        if normalized:
            counts[normalized] = counts.get(normalized, 0) + 1
    if not counts:
        return sanitized[0]
    return min(counts, key=lambda key: (-counts[key], len(key)))
