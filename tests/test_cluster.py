"""
Unit tests for duplicate clustering.

Tests the union-find structure, both clustering strategies and the
partition properties every strategy must satisfy.
"""

from unittest.mock import MagicMock

import pytest

from contact_mirror.sync.cluster import (
    ClusterResult,
    EmailGraphClusterer,
    NameMatchClusterer,
    UnionFind,
    always_same,
    create_clusterer,
    never_same,
)
from contact_mirror.sync.contact import ContactRecord, LabeledValue
from contact_mirror.sync.decisions import DecisionCache


def make_record(record_id, account_id, given="", family="", emails=()):
    """Build a record with the given name and home emails."""
    return ContactRecord(
        id=record_id,
        account_id=account_id,
        given_name=given,
        family_name=family,
        email_addresses=[LabeledValue("home", e) for e in emails],
    )


def flatten(result: ClusterResult):
    return [r for cluster in result.clusters for r in cluster] + list(result.safe)


@pytest.fixture
def jo_lee_records():
    """Three Jo Lee records, two of which share an email."""
    return [
        make_record("1", "acct1", "Jo", "Lee", ["jo@x.com"]),
        make_record("1", "acct2", "Jo", "Lee", ["jo@x.com"]),
        make_record("1", "acct3", "Jo", "Lee", ["other@y.com"]),
    ]


@pytest.fixture
def mixed_records():
    """A varied record set across three accounts."""
    return [
        make_record("a1", "work", "Jo", "Lee", ["jo@x.com"]),
        make_record("a2", "work", "Sam", "Park", ["sam@x.com"]),
        make_record("a3", "work", "", "", ["nobody@x.com"]),
        make_record("b1", "home", "jo", "LEE", ["JO@x.com", "jo@home.com"]),
        make_record("b2", "home", "Sam", "Park", ["sam@other.com"]),
        make_record("b3", "home", "", "", ["nobody@x.com"]),
        make_record("c1", "cloud", "Jo", "Lee", ["jo@home.com"]),
        make_record("c2", "cloud", "Ana", "Ruiz", []),
        make_record("c3", "cloud", "Ana", "Ruiz", []),
    ]


class TestUnionFind:
    """Tests for UnionFind."""

    def test_initially_disjoint(self):
        uf = UnionFind(3)
        assert uf.components() == [[0], [1], [2]]

    def test_union_merges_sets(self):
        uf = UnionFind(5)
        uf.union(0, 3)
        uf.union(3, 4)
        assert uf.find(0) == uf.find(4)
        assert uf.find(1) != uf.find(0)
        assert uf.components() == [[0, 3, 4], [1], [2]]

    def test_components_independent_of_union_order(self):
        """Test that components are sorted regardless of union order."""
        first = UnionFind(4)
        first.union(3, 2)
        first.union(1, 0)
        second = UnionFind(4)
        second.union(0, 1)
        second.union(2, 3)
        assert first.components() == second.components() == [[0, 1], [2, 3]]

    def test_repeated_union_is_noop(self):
        uf = UnionFind(2)
        uf.union(0, 1)
        uf.union(1, 0)
        assert uf.components() == [[0, 1]]


class TestEmailGraphClusterer:
    """Tests for the shared-email strategy."""

    def test_determinism_example(self, jo_lee_records):
        """Test one cluster for the shared email and one safe record."""
        result = EmailGraphClusterer().cluster(jo_lee_records)

        assert len(result.clusters) == 1
        cluster = result.clusters[0]
        assert len(cluster) == 2
        assert [r.account_id for r in cluster] == ["acct1", "acct2"]
        assert len(result.safe) == 1
        assert result.safe[0].account_id == "acct3"

    def test_same_ids_across_accounts_are_distinct(self, jo_lee_records):
        """Test that identical ids in different accounts are not collapsed."""
        result = EmailGraphClusterer().cluster(jo_lee_records)
        assert len(flatten(result)) == 3

    def test_transitive_email_links(self, mixed_records):
        """Test that a chain of shared emails forms one cluster."""
        result = EmailGraphClusterer().cluster(mixed_records)
        jo_cluster = result.clusters[0]
        assert {r.id for r in jo_cluster} == {"a1", "b1", "c1"}

    def test_same_account_only_is_not_a_cluster(self):
        """Test that duplicates inside one account stay safe."""
        records = [
            make_record("1", "work", "Jo", "Lee", ["jo@x.com"]),
            make_record("2", "work", "Jo", "Lee", ["jo@x.com"]),
        ]
        result = EmailGraphClusterer().cluster(records)
        assert result.clusters == []
        assert result.safe == records

    def test_nameless_records_never_cluster(self, mixed_records):
        """Test that records without a name go to the safe set."""
        result = EmailGraphClusterer().cluster(mixed_records)
        safe_ids = {r.id for r in result.safe}
        assert {"a3", "b3"} <= safe_ids

    def test_same_name_without_shared_email_stays_safe(self, mixed_records):
        """Test that a shared name alone is not enough."""
        result = EmailGraphClusterer().cluster(mixed_records)
        safe_ids = {r.id for r in result.safe}
        assert {"a2", "b2", "c2", "c3"} <= safe_ids

    def test_safe_keeps_input_order(self, mixed_records):
        result = EmailGraphClusterer().cluster(mixed_records)
        positions = [mixed_records.index(r) for r in result.safe]
        assert positions == sorted(positions)

    def test_empty_input(self):
        result = EmailGraphClusterer().cluster([])
        assert result.clusters == []
        assert result.safe == []

    def test_blank_emails_never_link(self):
        """Test that empty and whitespace-only addresses are not a shared email."""
        records = [
            make_record("1", "work", "Jo", "Lee", [""]),
            make_record("2", "home", "Jo", "Lee", ["  "]),
        ]
        result = EmailGraphClusterer().cluster(records)
        assert result.clusters == []
        assert result.safe == records

    def test_result_unpacks(self, jo_lee_records):
        """Test that a result unpacks into (clusters, safe)."""
        clusters, safe = EmailGraphClusterer().cluster(jo_lee_records)
        assert len(clusters) == 1
        assert len(safe) == 1


class TestPartitionProperties:
    """Properties that hold for every strategy."""

    @pytest.fixture(
        params=[
            lambda: EmailGraphClusterer(),
            lambda: NameMatchClusterer(always_same),
            lambda: NameMatchClusterer(never_same),
        ],
        ids=["email_graph", "name_match_same", "name_match_different"],
    )
    def clusterer(self, request):
        return request.param()

    def test_every_record_appears_exactly_once(self, clusterer, mixed_records):
        """Test that clusters plus safe is the input, each record once."""
        result = clusterer.cluster(mixed_records)
        output = flatten(result)

        assert len(output) == len(mixed_records)
        for record in mixed_records:
            assert sum(1 for r in output if r is record) == 1

    def test_clusters_span_several_accounts(self, clusterer, mixed_records):
        """Test that no cluster holds records from a single account."""
        result = clusterer.cluster(mixed_records)
        for cluster in result.clusters:
            assert len(cluster) >= 2
            assert len({r.account_id for r in cluster}) >= 2

    def test_deterministic(self, clusterer, mixed_records):
        """Test that the same input gives the same output."""
        first = clusterer.cluster(mixed_records)
        clusterer.reset()
        second = clusterer.cluster(mixed_records)
        assert first.clusters == second.clusters
        assert first.safe == second.safe


class TestNameMatchClusterer:
    """Tests for the name-match strategy."""

    def test_same_verdict_clusters_by_name(self, jo_lee_records):
        """Test that a positive verdict joins every same-named record."""
        result = NameMatchClusterer(always_same).cluster(jo_lee_records)
        assert len(result.clusters) == 1
        assert len(result.clusters[0]) == 3
        assert result.safe == []

    def test_different_verdict_keeps_records_safe(self, jo_lee_records):
        result = NameMatchClusterer(never_same).cluster(jo_lee_records)
        assert result.clusters == []
        assert len(result.safe) == 3

    def test_resolver_asked_once_per_name(self, jo_lee_records):
        """Test that the verdict is cached per name."""
        resolver = MagicMock(return_value=True)
        NameMatchClusterer(resolver).cluster(jo_lee_records)
        assert resolver.call_count == 1

    def test_resolver_not_asked_for_same_account_pairs(self):
        resolver = MagicMock(return_value=True)
        records = [
            make_record("1", "work", "Jo", "Lee"),
            make_record("2", "work", "Jo", "Lee"),
        ]
        result = NameMatchClusterer(resolver).cluster(records)
        resolver.assert_not_called()
        assert result.clusters == []

    def test_cached_verdict_is_reused(self, jo_lee_records):
        """Test that a pre-seeded cache answers without the resolver."""
        cache = DecisionCache()
        cache.set("jo||lee", False)
        resolver = MagicMock(return_value=True)

        result = NameMatchClusterer(resolver, cache).cluster(jo_lee_records)

        resolver.assert_not_called()
        assert result.clusters == []

    def test_reset_clears_cache(self, jo_lee_records):
        """Test that a new run asks again."""
        resolver = MagicMock(return_value=True)
        clusterer = NameMatchClusterer(resolver)
        clusterer.cluster(jo_lee_records)
        clusterer.reset()
        clusterer.cluster(jo_lee_records)
        assert resolver.call_count == 2


class TestCreateClusterer:
    """Tests for create_clusterer."""

    def test_default_is_email_graph(self):
        assert isinstance(create_clusterer(), EmailGraphClusterer)

    def test_name_match_with_resolver(self):
        clusterer = create_clusterer("name_match", resolver=always_same)
        assert isinstance(clusterer, NameMatchClusterer)
        assert clusterer.resolver is always_same

    def test_name_match_defaults_to_never_same(self):
        clusterer = create_clusterer("name_match")
        assert clusterer.resolver is never_same

    def test_unknown_strategy_raises(self):
        with pytest.raises(ValueError, match="Unknown clustering strategy"):
            create_clusterer("fuzzy")
