"""
Transitive grouping of duplicate-marked pairs.

If A~B and B~C then A, B and C end up in one group, even when A and C
were never compared directly.
"""

from collections import defaultdict
from collections.abc import Sequence

from .models import DuplicateGroup, DuplicatePair, DuplicateRecord, GroupMember


class UnionFind:
    """Union-Find with path compression and union by rank."""

    def __init__(self):
        self.parent = {}
        self.rank = {}

    def find(self, x):
        if x not in self.parent:
            self.parent[x] = x
            self.rank[x] = 0
        if self.parent[x] != x:
            self.parent[x] = self.find(self.parent[x])
        return self.parent[x]

    def union(self, x, y) -> bool:
        px, py = self.find(x), self.find(y)
        if px == py:
            return False
        if self.rank[px] < self.rank[py]:
            px, py = py, px
        self.parent[py] = px
        if self.rank[px] == self.rank[py]:
            self.rank[px] += 1
        return True

    def get_clusters(self) -> dict:
        clusters = defaultdict(set)
        for x in self.parent:
            clusters[self.find(x)].add(x)
        return clusters


def build_duplicate_groups(
    records: Sequence[DuplicateRecord],
    pairs: Sequence[DuplicatePair],
) -> list[DuplicateGroup]:
    """
    Union duplicate pairs into groups.

    The canonical member is the one seen first in the input. Each other
    member keeps the method and score of the strongest edge touching it.
    Groups are returned by descending average score.
    """
    order = {record.id: i for i, record in enumerate(records)}
    by_id = {record.id: record for record in records}

    uf = UnionFind()
    best_edge: dict[str, DuplicatePair] = {}
    for pair in pairs:
        if not pair.is_duplicate:
            continue
        a, b = pair.record_a.id, pair.record_b.id
        uf.union(a, b)
        for member_id in (a, b):
            current = best_edge.get(member_id)
            if current is None or pair.similarity_score > current.similarity_score:
                best_edge[member_id] = pair

    groups = []
    for member_ids in uf.get_clusters().values():
        if len(member_ids) < 2:
            continue

        ordered = sorted(member_ids, key=lambda rid: order[rid])
        canonical = by_id[ordered[0]]
        members = tuple(
            GroupMember(
                id=rid,
                name=by_id[rid].name,
                judgement_method=best_edge[rid].judgement_method,
                score=best_edge[rid].similarity_score,
            )
            for rid in ordered
        )
        groups.append(DuplicateGroup(
            group_id=f"group-{canonical.id}",
            canonical_id=canonical.id,
            canonical_name=canonical.name,
            members=members,
            average_score=round(sum(m.score for m in members) / len(members), 2),
        ))

    groups.sort(key=lambda g: (-g.average_score, order[g.canonical_id]))
    return groups
