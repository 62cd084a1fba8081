import pytest
from influence import (
    CentralityEntry,
    ExpansionPick,
    compute_downstream_sets,
    flow_centrality,
    forest_flow_centrality,
    top_k_by_flow_centrality,
    top_k_by_reach,
    unique_reach_expansion,
)
from referral_network import ReferralError, ReferralNetwork


def build(edges, isolated=()):
    network = ReferralNetwork()
    for referrer, candidate in edges:
        assert network.add_referral(referrer, candidate)
    for user in isolated:
        network.add_user(user)
    return network


@pytest.fixture
def brokers():
    """
        A       Z
       / \\
      B   C
      |   |
      D   E
    """
    return build([("A", "B"), ("B", "D"), ("A", "C"), ("C", "E")], isolated=["Z"])


class TestDownstreamSets:
    """Tests for compute_downstream_sets."""

    def test_brokers(self, brokers):
        downstream = compute_downstream_sets(brokers)
        assert downstream == {
            "A": {"B", "C", "D", "E"},
            "B": {"D"},
            "C": {"E"},
            "D": set(),
            "E": set(),
            "Z": set(),
        }

    def test_empty_network(self):
        assert compute_downstream_sets(ReferralNetwork()) == {}

    def test_matches_total_reach(self, brokers):
        downstream = compute_downstream_sets(brokers)
        for user in brokers.users():
            assert len(downstream[user]) == brokers.total_reach(user)

    def test_does_not_mutate_network(self, brokers):
        before = {u: set(brokers.direct_referrals(u)) for u in brokers.users()}
        compute_downstream_sets(brokers)
        assert {u: set(brokers.direct_referrals(u)) for u in brokers.users()} == before

    def test_long_chain_beyond_recursion_limit(self):
        network = ReferralNetwork()
        chain = [f"u{i:04d}" for i in range(2000)]
        for referrer, candidate in zip(chain, chain[1:]):
            network.add_referral(referrer, candidate)

        downstream = compute_downstream_sets(network)
        assert len(downstream["u0000"]) == 1999
        assert len(downstream["u1000"]) == 999
        assert downstream["u1999"] == set()

    def test_shared_descendant_is_not_a_cycle(self):
        """
          A
         / \\
        B   C
         \\ /
          D
        """
        network = build([("A", "B"), ("A", "C"), ("B", "D")])
        # bypass add_referral to give D a second referrer
        network._children["C"].add("D")

        downstream = compute_downstream_sets(network)
        assert downstream == {"A": {"B", "C", "D"}, "B": {"D"}, "C": {"D"}, "D": set()}
        assert network.total_reach("A") == 3

    def test_cycle_in_structure_raises(self):
        network = build([("A", "B"), ("B", "C")])
        # bypass add_referral to corrupt the structure
        network._children["C"].add("A")
        with pytest.raises(ReferralError, match="Cycle"):
            compute_downstream_sets(network)


class TestUniqueReachExpansion:
    """Tests for the greedy unique reach expansion."""

    def test_picks_root_first(self, brokers):
        picks = unique_reach_expansion(brokers, 2)
        assert picks[0].user == "A"
        assert picks[0].marginal_gain == 4

    def test_stops_when_nothing_left_to_cover(self, brokers):
        # after A everything downstream is covered, B and C add nothing new
        assert unique_reach_expansion(brokers, 2) == [ExpansionPick("A", 4)]

    def test_separate_trees(self):
        network = build([("A", "B"), ("B", "C"), ("B", "D"), ("E", "F")])
        picks = unique_reach_expansion(network, 5)
        assert picks == [ExpansionPick("A", 3), ExpansionPick("E", 1)]

    def test_tie_broken_by_smallest_id(self):
        network = build([("P", "Q"), ("M", "N")])
        picks = unique_reach_expansion(network, 2)
        assert [pick.user for pick in picks] == ["M", "P"]

    def test_limit_respected(self):
        network = build([("A", "B"), ("C", "D"), ("E", "F")])
        picks = unique_reach_expansion(network, 2)
        assert len(picks) == 2
        assert all(pick.marginal_gain > 0 for pick in picks)

    @pytest.mark.parametrize("limit", [0, -3])
    def test_non_positive_limit(self, brokers, limit):
        assert unique_reach_expansion(brokers, limit) == []

    def test_no_edges(self):
        network = build([], isolated=["A", "B"])
        assert unique_reach_expansion(network, 3) == []

    def test_user_never_picked_twice(self):
        network = build([("A", "B"), ("C", "D"), ("C", "E")])
        picks = unique_reach_expansion(network, 10)
        users = [pick.user for pick in picks]
        assert users == ["C", "A"]
        assert len(users) == len(set(users))

    def test_picks_unpack_as_pairs(self, brokers):
        user, gain = unique_reach_expansion(brokers, 1)[0]
        assert (user, gain) == ("A", 4)


class TestFlowCentrality:
    """Tests for flow_centrality and its forest shortcut."""

    def test_brokers(self, brokers):
        ranked = flow_centrality(brokers)
        assert ranked[:2] == [CentralityEntry("B", 1), CentralityEntry("C", 1)]
        assert sorted(entry.user for entry in ranked[:2]) == ["B", "C"]

    def test_full_ranking_ties_by_id(self, brokers):
        ranked = flow_centrality(brokers)
        assert [entry.user for entry in ranked] == ["B", "C", "A", "D", "E", "Z"]

    def test_isolated_node_scores_zero(self, brokers):
        scores = dict(flow_centrality(brokers))
        assert scores["Z"] == 0

    def test_simple_chain(self):
        """
        A → B → C → D
        B lies on A→C, A→D; C lies on A→D, B→D.
        """
        network = build([("A", "B"), ("B", "C"), ("C", "D")])
        scores = dict(flow_centrality(network))
        assert scores == {"A": 0, "B": 2, "C": 2, "D": 0}

    def test_middle_node_highest(self):
        network = build([("A", "B"), ("B", "C"), ("C", "D"), ("D", "E")])
        ranked = flow_centrality(network)
        assert ranked[0] == CentralityEntry("C", 4)

    def test_wide_tree_all_zero(self):
        network = build([("A", "B"), ("A", "C"), ("A", "D"), ("A", "E")])
        ranked = flow_centrality(network)
        assert len(ranked) == 5
        assert all(entry.score == 0 for entry in ranked)

    def test_empty_network(self):
        assert flow_centrality(ReferralNetwork()) == []

    def test_forest_shortcut_agrees(self):
        network = build(
            [("A", "B"), ("A", "C"), ("B", "D"), ("B", "E"), ("E", "F"), ("C", "G"), ("X", "Y"), ("Y", "W")],
            isolated=["Z"],
        )
        assert forest_flow_centrality(network) == flow_centrality(network)


class TestTopK:
    """Tests for the id-only rankings."""

    def test_top_k_by_reach(self, brokers):
        assert top_k_by_reach(brokers, 3) == ["A", "B", "C"]

    def test_top_k_by_flow_centrality(self, brokers):
        assert top_k_by_flow_centrality(brokers, 2) == ["B", "C"]

    def test_empty(self):
        assert top_k_by_reach(ReferralNetwork(), 5) == []
        assert top_k_by_flow_centrality(ReferralNetwork(), 5) == []
        assert top_k_by_flow_centrality(build([("A", "B")]), 0) == []
