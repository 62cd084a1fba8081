"""
Influence metrics over a referral network.

Pure functions: they read a ReferralNetwork and never mutate it.
"""
import logging
from collections import deque
from typing import NamedTuple, Optional

from referral_network import ReferralError, ReferralNetwork

logger = logging.getLogger(__name__)


class ExpansionPick(NamedTuple):
    user: str
    marginal_gain: int


class CentralityEntry(NamedTuple):
    user: str
    score: int


def compute_downstream_sets(network: ReferralNetwork) -> dict[str, set[str]]:
    """
    Map every user to the full set of their direct and indirect referrals.

    Post-order over an explicit stack so long chains don't hit the recursion
    limit. A child's set is always resolved (and memoized) before its parent
    unions it, and a memoized user is never expanded twice.
    """
    memo: dict[str, set[str]] = {}
    in_progress: set[str] = set()  # users whose descendants are still being resolved

    for root in sorted(network.users()):
        if root in memo:
            continue
        stack: list[tuple[str, bool]] = [(root, False)]
        while stack:
            user, children_done = stack.pop()
            if children_done:
                downstream: set[str] = set()
                for child in network.direct_referrals(user):
                    downstream.add(child)
                    downstream |= memo[child]
                memo[user] = downstream
                in_progress.discard(user)
                continue
            if user in memo:
                continue
            in_progress.add(user)
            stack.append((user, True))
            for child in network.direct_referrals(user):
                if child in in_progress:
                    raise ReferralError(f"Cycle through {child} in referral structure.")
                if child not in memo:
                    stack.append((child, False))
    return memo


def unique_reach_expansion(network: ReferralNetwork, limit: int) -> list[ExpansionPick]:
    """
    Greedy maximum coverage over the downstream sets.

    Each round picks the user adding the most not-yet-covered users, ties going
    to the smallest user id. Stops after `limit` picks, or earlier once nobody
    adds anything new.
    """
    candidates = compute_downstream_sets(network)
    covered: set[str] = set()
    picks: list[ExpansionPick] = []

    for _ in range(max(limit, 0)):
        best_user: Optional[str] = None
        best_gain = -1
        # sorted so equal gains always resolve to the smallest id
        for user in sorted(candidates):
            gain = len(candidates[user] - covered)
            if gain > best_gain:
                best_user, best_gain = user, gain
        if best_user is None or best_gain <= 0:
            logger.debug("expansion stopped after %d picks, no marginal gain left", len(picks))
            break
        picks.append(ExpansionPick(best_user, best_gain))
        covered |= candidates.pop(best_user)
    return picks


def _distance_matrix(network: ReferralNetwork, users: list[str]) -> list[list[Optional[int]]]:
    """Hop counts between every ordered pair of users, None when unreachable."""
    index = {user: i for i, user in enumerate(users)}
    dist: list[list[Optional[int]]] = [[None] * len(users) for _ in users]

    for s, source in enumerate(users):
        row = dist[s]
        row[s] = 0
        queue = deque([source])
        while queue:
            node = queue.popleft()
            hops = row[index[node]] + 1
            for child in network.direct_referrals(node):
                c = index[child]
                if row[c] is None:
                    row[c] = hops
                    queue.append(child)
    return dist


def _ranked(scores: dict[str, int]) -> list[CentralityEntry]:
    return sorted(
        (CentralityEntry(user, score) for user, score in scores.items()),
        key=lambda e: (-e.score, e.user),
    )


def flow_centrality(network: ReferralNetwork) -> list[CentralityEntry]:
    """
    Rank users by Flow Centrality, score descending then id ascending.

    A user's score is the number of ordered pairs (s, t) for which it lies on
    some shortest directed path from s to t, s and t distinct from it. Every
    intermediate of every equal-length shortest path gets a full point; credit
    is not split between paths.

    O(n^3) after an O(n * (n + E)) BFS phase; see forest_flow_centrality for
    networks built through add_referral.
    """
    users = sorted(network.users())
    dist = _distance_matrix(network, users)
    n = len(users)
    score = [0] * n

    for s in range(n):
        from_s = dist[s]
        for t in range(n):
            d_st = from_s[t]
            if s == t or d_st is None:
                continue
            for v in range(n):
                if v == s or v == t:
                    continue
                d_sv = from_s[v]
                d_vt = dist[v][t]
                if d_sv is not None and d_vt is not None and d_sv + d_vt == d_st:
                    score[v] += 1

    return _ranked(dict(zip(users, score)))


def forest_flow_centrality(network: ReferralNetwork) -> list[CentralityEntry]:
    """
    Same scores as flow_centrality without the all-pairs matrix.

    In a forest, u is on the (only) path s → t iff s is an ancestor of u and t
    is a descendant of u, so the score is ancestors * descendants.
    """
    flow = {
        user: len(network.all_ancestors(user)) * len(network.all_referrals(user))
        for user in network.users()
    }
    return _ranked(flow)


def top_k_by_reach(network: ReferralNetwork, k: int) -> list[str]:
    """Top k user ids by number of distinct descendants."""
    return [entry.user for entry in network.top_referrers_by_reach(k)]


def top_k_by_flow_centrality(network: ReferralNetwork, k: int) -> list[str]:
    """Top k user ids by flow centrality."""
    if k <= 0:
        return []
    return [entry.user for entry in forest_flow_centrality(network)[:k]]
