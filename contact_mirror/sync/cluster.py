"""
Duplicate clustering for records fetched from several accounts.

Both strategies share the same skeleton:
- Records are bucketed by normalized full name ("given||family"). Records
  with no name at all never join a bucket and go straight to the safe set.
- Inside a bucket, the strategy decides which cross-account pairs describe
  the same person and links them in a union-find structure.
- Every connected component with at least two members from at least two
  distinct accounts becomes a duplicate cluster. Everything else is safe.

Strategies:
- EmailGraphClusterer (default): link two same-named records from different
  accounts when they share an email address.
- NameMatchClusterer: link same-named records from different accounts when
  a resolver (usually a person answering a prompt) says they are the same
  person. Verdicts are memoized per name in a DecisionCache.

The output is a total, disjoint partition of the input: every input record
appears exactly once, either in one cluster or in the safe set. Identity is
positional, so records sharing an id across accounts are still distinct.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Optional

from contact_mirror.sync.contact import ContactRecord, normalized_name
from contact_mirror.sync.decisions import DecisionCache
from contact_mirror.utils.normalization import normalize_email

logger = logging.getLogger(__name__)

# Called with two same-named records from different accounts, returns
# True when they are the same person
PairResolver = Callable[[ContactRecord, ContactRecord], bool]


class UnionFind:
    """Disjoint-set forest over the indices 0..count-1."""

    def __init__(self, count: int):
        self.parent = list(range(count))
        self.rank = [0] * count

    def find(self, x: int) -> int:
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        # Path compression
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union(self, x: int, y: int) -> None:
        rx, ry = self.find(x), self.find(y)
        if rx == ry:
            return
        if self.rank[rx] < self.rank[ry]:
            rx, ry = ry, rx
        self.parent[ry] = rx
        if self.rank[rx] == self.rank[ry]:
            self.rank[rx] += 1

    def components(self) -> list[list[int]]:
        """
        Return connected components.

        Members are ascending and components are ordered by their lowest
        member, so the result does not depend on union order.
        """
        groups: dict[int, list[int]] = {}
        for i in range(len(self.parent)):
            groups.setdefault(self.find(i), []).append(i)
        return sorted(groups.values(), key=lambda members: members[0])


@dataclass
class ClusterResult:
    """
    Result of clustering one set of records.

    Attributes:
        clusters: Duplicate clusters, each with >= 2 records from >= 2 accounts
        safe: Records not claimed by any cluster, in input order
    """

    clusters: list[list[ContactRecord]] = field(default_factory=list)
    safe: list[ContactRecord] = field(default_factory=list)

    @property
    def duplicate_count(self) -> int:
        """Number of records that belong to a cluster."""
        return sum(len(c) for c in self.clusters)

    def __iter__(self):
        # Allows `clusters, safe = clusterer.cluster(records)`
        return iter((self.clusters, self.safe))


class ClusteringStrategy:
    """
    Base class for clustering strategies.

    Subclasses implement _link_bucket(); cluster() handles bucketing,
    components and the partition.
    """

    name = "base"

    def reset(self) -> None:
        """Forget per-run state. Called when a new sync run starts."""

    def cluster(self, records: Sequence[ContactRecord]) -> ClusterResult:
        """
        Split records into duplicate clusters and a safe set.

        Args:
            records: Records from all selected accounts, tagged with their
                     account ids

        Returns:
            ClusterResult covering every input record exactly once
        """
        buckets: dict[str, list[int]] = {}
        for index, record in enumerate(records):
            key = normalized_name(record)
            if key:
                buckets.setdefault(key, []).append(index)

        clustered: set[int] = set()
        clusters_with_start: list[tuple[int, list[ContactRecord]]] = []

        for key, indices in buckets.items():
            if len(indices) < 2:
                continue

            members = [records[i] for i in indices]
            uf = UnionFind(len(members))
            self._link_bucket(key, members, uf)

            for component in uf.components():
                if len(component) < 2:
                    continue
                accounts = {members[i].account_id for i in component}
                if len(accounts) < 2:
                    continue
                clusters_with_start.append(
                    (indices[component[0]], [members[i] for i in component])
                )
                clustered.update(indices[i] for i in component)
                logger.debug(
                    f"Cluster '{key}': {len(component)} records "
                    f"across {len(accounts)} accounts"
                )

        clusters_with_start.sort(key=lambda item: item[0])
        result = ClusterResult(
            clusters=[cluster for _, cluster in clusters_with_start],
            safe=[r for i, r in enumerate(records) if i not in clustered],
        )
        logger.info(
            f"Clustering ({self.name}): {len(records)} records -> "
            f"{len(result.clusters)} duplicate clusters, {len(result.safe)} safe"
        )
        return result

    def _link_bucket(
        self, key: str, members: list[ContactRecord], uf: UnionFind
    ) -> None:
        raise NotImplementedError


class EmailGraphClusterer(ClusteringStrategy):
    """Links same-named records from different accounts that share an email."""

    name = "email_graph"

    def _link_bucket(
        self, key: str, members: list[ContactRecord], uf: UnionFind
    ) -> None:
        email_map: dict[str, list[int]] = {}
        for i, record in enumerate(members):
            emails = {normalize_email(e.value) for e in record.email_addresses}
            emails.discard("")
            for email in emails:
                email_map.setdefault(email, []).append(i)

        for email, idxs in email_map.items():
            for a_pos, a in enumerate(idxs):
                for b in idxs[a_pos + 1 :]:
                    if members[a].account_id != members[b].account_id:
                        uf.union(a, b)


class NameMatchClusterer(ClusteringStrategy):
    """
    Links same-named records from different accounts on a resolver's verdict.

    The verdict is cached per name, so one answer covers every pair in the
    bucket for the rest of the run.
    """

    name = "name_match"

    def __init__(
        self,
        resolver: PairResolver,
        decision_cache: Optional[DecisionCache] = None,
    ):
        self.resolver = resolver
        self.decision_cache = decision_cache or DecisionCache()

    def reset(self) -> None:
        self.decision_cache.clear()

    def _link_bucket(
        self, key: str, members: list[ContactRecord], uf: UnionFind
    ) -> None:
        for a in range(len(members)):
            for b in range(a + 1, len(members)):
                if members[a].account_id == members[b].account_id:
                    continue
                if self._is_same_person(key, members[a], members[b]):
                    uf.union(a, b)

    def _is_same_person(
        self, key: str, first: ContactRecord, second: ContactRecord
    ) -> bool:
        verdict = self.decision_cache.get(key)
        if verdict is None:
            verdict = bool(self.resolver(first, second))
            self.decision_cache.set(key, verdict)
        return verdict


def always_same(first: ContactRecord, second: ContactRecord) -> bool:
    """Resolver that treats every same-named pair as the same person."""
    return True


def never_same(first: ContactRecord, second: ContactRecord) -> bool:
    """Resolver that treats every same-named pair as different people."""
    return False


CLUSTERING_STRATEGIES = (EmailGraphClusterer.name, NameMatchClusterer.name)


def create_clusterer(
    name: str = EmailGraphClusterer.name,
    resolver: Optional[PairResolver] = None,
    decision_cache: Optional[DecisionCache] = None,
) -> ClusteringStrategy:
    """
    Build a clustering strategy by name.

    Args:
        name: "email_graph" or "name_match"
        resolver: Pair resolver for name_match (default: never_same)
        decision_cache: Cache for name_match verdicts

    Raises:
        ValueError: If name is not a known strategy
    """
    if name == EmailGraphClusterer.name:
        return EmailGraphClusterer()
    if name == NameMatchClusterer.name:
        return NameMatchClusterer(resolver or never_same, decision_cache)
    raise ValueError(
        f"Unknown clustering strategy '{name}'. "
        f"Must be one of: {', '.join(CLUSTERING_STRATEGIES)}"
    )
