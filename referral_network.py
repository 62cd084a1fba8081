import logging
from collections import defaultdict, deque
from typing import NamedTuple, Optional

logger = logging.getLogger(__name__)


class ReferralError(ValueError):
    pass


class ReachEntry(NamedTuple):
    user: str
    reach: int


class ReferralNetwork:
    """
    A directed graph where edges represent referrer → candidate relationships.

    Invariants:
    - No self-referrals
    - Each candidate has at most one referrer
    - Acyclic (no cycles allowed)

    Users are plain string ids, the structure only grows.
    """

    def __init__(self):
        # candidate -> referrer, o(1) unique referrer check
        self._parents: dict[str, str] = {}
        # referrer -> candidates, o(children) lookup of direct referrals
        self._children: defaultdict[str, set[str]] = defaultdict(set)
        # explicitly registered users, may have no edges at all
        self._nodes: set[str] = set()

    def __len__(self) -> int:
        return len(self.users())

    def __contains__(self, user: object) -> bool:
        return user in self._nodes or user in self._parents or user in self._children

    def add_user(self, user: str) -> None:
        """Register a user. Registering twice is a no-op."""
        self._nodes.add(user)

    def _check_constraints(self, referrer: str, candidate: str) -> None:
        """
        Check if adding edge referrer to candidate satisfies invariants.
        Raises ReferralError if invalid.
        """
        if referrer == candidate:
            raise ReferralError("Self-referral is not allowed.")

        if candidate in self._parents:
            raise ReferralError(f"{candidate} already has a referrer.")

        # candidate reaching referrer means referrer → candidate closes a loop
        if self.is_reachable(candidate, referrer):
            raise ReferralError("Adding this referral would create a cycle.")

    def can_refer(self, referrer: str, candidate: str) -> bool:
        """True if add_referral(referrer, candidate) would be accepted."""
        try:
            self._check_constraints(referrer, candidate)
        except ReferralError:
            return False
        return True

    def add_referral(self, referrer: str, candidate: str, strict: bool = False) -> bool:
        """
        Add edge referrer → candidate.

        Returns False and leaves the network untouched when an invariant would
        break. With strict=True the violation is raised as ReferralError instead.
        """
        try:
            self._check_constraints(referrer, candidate)
        except ReferralError as exc:
            if strict:
                raise
            logger.debug("rejected referral %s -> %s: %s", referrer, candidate, exc)
            return False

        # all checks passed, nothing was touched before this point
        self._nodes.add(referrer)
        self._nodes.add(candidate)
        self._parents[candidate] = referrer
        self._children[referrer].add(candidate)
        return True

    def direct_referrals(self, user: str) -> list[str]:
        """Return immediate children of user, empty if the user is unknown."""
        children = self._children.get(user)
        return list(children) if children else []

    def referrer_of(self, user: str) -> Optional[str]:
        return self._parents.get(user)

    def all_referrals(self, user: str) -> list[str]:
        """DFS through graph to find all descendents either direct or indirect."""
        result = []
        seen = set()
        stack = list(self._children.get(user, ()))
        while stack:
            node = stack.pop()
            if node in seen:
                continue
            seen.add(node)
            result.append(node)
            stack.extend(self._children.get(node, ()))
        return result

    def all_ancestors(self, user: str) -> list[str]:
        """Walk up through parents, nearest referrer first."""
        result = []
        current = user
        while current in self._parents:
            current = self._parents[current]
            result.append(current)
        return result

    def is_reachable(self, src: str, target: str) -> bool:
        """BFS from src along referral edges looking for target."""
        if src == target:
            return True
        queue = deque([src])
        seen = {src}
        while queue:
            node = queue.popleft()
            for child in self._children.get(node, ()):
                if child == target:
                    return True
                if child not in seen:
                    seen.add(child)
                    queue.append(child)
        return False

    def total_reach(self, user: str) -> int:
        """Count of distinct users reachable from user, user itself excluded."""
        queue = deque(self._children.get(user, ()))
        seen: set[str] = set()
        while queue:
            node = queue.popleft()
            if node in seen:
                continue
            seen.add(node)
            queue.extend(self._children.get(node, ()))
        return len(seen)

    def top_referrers_by_reach(self, k: int) -> list[ReachEntry]:
        """All users ranked by reach descending, ties by ascending id, first k."""
        if k <= 0:
            return []
        scores = [ReachEntry(user, self.total_reach(user)) for user in self.users()]
        scores.sort(key=lambda e: (-e.reach, e.user))
        return scores[:k]

    def users(self) -> set[str]:
        """Return all users in the network."""
        result = set(self._nodes)
        result.update(self._children)
        for candidate, referrer in self._parents.items():
            result.add(candidate)
            result.add(referrer)
        return result
