"""
Wildcard event-name matching.

Supported Patterns
------------------
- Exact:    "ledger.credited"   matches only itself
- Global:   "*"                 matches any event
- Prefix:   "rank.*"            matches "rank.changed", "rank.tier_changed"
- Suffix:   "*.granted"         matches "purchase.granted", "season.reward_granted"
- Sandwich: "season.*.granted"  matches "season.reward.granted"

Matching is case-sensitive; repeated wildcards collapse into one.
"""

from __future__ import annotations


class EventRouter:
    """Stateless matcher for event names against wildcard patterns."""

    def matches(self, event_name: str, pattern: str) -> bool:
        """
        Check if `event_name` matches `pattern`.

        Examples
        --------
        >>> router = EventRouter()
        >>> router.matches("rank.tier_changed", "rank.*")
        True
        >>> router.matches("rank.tier_changed", "ledger.*")
        False
        """
        if pattern == "*":
            return True

        if "*" not in pattern:
            return event_name == pattern

        while "**" in pattern:
            pattern = pattern.replace("**", "*")

        parts = pattern.split("*")
        head, tail = parts[0], parts[-1]

        if head and not event_name.startswith(head):
            return False
        if tail and not event_name.endswith(tail):
            return False
        if len(head) + len(tail) > len(event_name):
            return False

        # Middle pieces must appear in order between head and tail
        idx = len(head)
        limit = len(event_name) - len(tail)
        for mid in parts[1:-1]:
            if not mid:
                continue
            next_idx = event_name.find(mid, idx, limit)
            if next_idx == -1:
                return False
            idx = next_idx + len(mid)

        return True
