"""Union-Find data structure for grouping explicitly linked account ids.

Each set keeps its member list on the representative, so looking up the
whole group an id belongs to costs O(group size) instead of a scan over every
element.
"""

import logging
from typing import Dict, Hashable, Set

logger = logging.getLogger(__name__)


class DisjointSet:
    """Union-Find with union by size and path compression."""

    def __init__(self) -> None:
        """Initialize an empty disjoint set."""
        self.parent: Dict[Hashable, Hashable] = {}
        self.members: Dict[Hashable, Set[Hashable]] = {}

    def make_set(self, x: Hashable) -> None:
        """Create a new singleton set containing x (no-op if x is known)."""
        if x not in self.parent:
            self.parent[x] = x
            self.members[x] = {x}

    def find(self, x: Hashable) -> Hashable:
        """Find the representative (root) of the set containing x.

        Raises:
            KeyError: if x was never added

        """
        root = self.parent[x]
        while root != self.parent[root]:
            root = self.parent[root]

        # Path compression
        while x != root:
            self.parent[x], x = root, self.parent[x]

        return root

    def union(self, x: Hashable, y: Hashable) -> bool:
        """Merge the sets containing x and y, adding either one if unknown.

        Returns:
            True if the sets were merged, False if they were already joined

        """
        self.make_set(x)
        self.make_set(y)
        root_x = self.find(x)
        root_y = self.find(y)

        if root_x == root_y:
            return False

        # Union by size
        if len(self.members[root_x]) < len(self.members[root_y]):
            root_x, root_y = root_y, root_x

        self.parent[root_y] = root_x
        self.members[root_x] |= self.members.pop(root_y)
        return True

    def get_set_members(self, x: Hashable) -> Set[Hashable]:
        """Get all members of the set containing x (empty if x is unknown)."""
        if x not in self.parent:
            return set()
        return set(self.members[self.find(x)])

    def get_set_count(self) -> int:
        """Get the total number of sets."""
        return len(self.members)

    def __len__(self) -> int:
        """Get the total number of elements."""
        return len(self.parent)

    def __contains__(self, x: Hashable) -> bool:
        return x in self.parent
