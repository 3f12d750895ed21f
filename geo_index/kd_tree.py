"""
Balanced k-d tree for nearest neighbour and radial queries.

Points are stored together with an opaque value. Insertions use plain k-d
descent and may unbalance the tree; rebuild() restores logarithmic height
by recursive median splits.
"""

import heapq
import logging
import math
from typing import Any, Iterator, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from geo_index.geo import InvalidGeometryError, squared_distance


logger = logging.getLogger(__name__)


class Neighbour(NamedTuple):
    """Single query hit."""
    point: Tuple[float, ...]
    value: Any
    squared_distance: float


class KDNode:
    __slots__ = ("point", "value", "axis", "left", "right")

    def __init__(self, point: Tuple[float, ...], value: Any, axis: int):
        self.point = point
        self.value = value
        self.axis = axis
        self.left: Optional["KDNode"] = None
        self.right: Optional["KDNode"] = None


class KDTree:
    """k-d tree over float64 points (3 dimensions by default)."""

    def __init__(self, dimensions: int = 3):
        """
        Args:
            dimensions: Number of coordinates per point
        """
        if dimensions < 1:
            raise ValueError("dimensions must be at least 1")

        self.dimensions = dimensions
        self.root: Optional[KDNode] = None
        self._count = 0

    @property
    def count(self) -> int:
        """Number of stored points."""
        return self._count

    def __len__(self) -> int:
        return self._count

    def __iter__(self) -> Iterator[Tuple[Tuple[float, ...], Any]]:
        """Yield (point, value) pairs in pre-order."""
        stack = [self.root] if self.root else []
        while stack:
            node = stack.pop()
            yield node.point, node.value
            if node.right:
                stack.append(node.right)
            if node.left:
                stack.append(node.left)

    def _as_point(self, point: Sequence[float]) -> Tuple[float, ...]:
        if len(point) != self.dimensions:
            raise ValueError(
                f"Expected a point with {self.dimensions} coordinates, "
                f"got {len(point)}"
            )
        point = tuple(float(c) for c in point)
        if not all(math.isfinite(c) for c in point):
            raise InvalidGeometryError(f"Point must be finite, got {point}")
        return point

    def insert(self, point: Sequence[float], value: Any):
        """
        Insert a point as a new leaf.

        Args:
            point: Coordinates
            value: Payload returned by queries
        """
        point = self._as_point(point)

        if self.root is None:
            self.root = KDNode(point, value, 0)
            self._count = 1
            return

        node = self.root
        while True:
            axis = node.axis
            child_axis = (axis + 1) % self.dimensions

            if point[axis] < node.point[axis]:
                if node.left is None:
                    node.left = KDNode(point, value, child_axis)
                    break
                node = node.left
            else:
                if node.right is None:
                    node.right = KDNode(point, value, child_axis)
                    break
                node = node.right

        self._count += 1

    def clear(self):
        """Remove all points."""
        self.root = None
        self._count = 0

    def height(self) -> int:
        """Number of levels in the tree (0 when empty)."""
        best = 0
        stack = [(self.root, 1)] if self.root else []
        while stack:
            node, depth = stack.pop()
            best = max(best, depth)
            if node.left:
                stack.append((node.left, depth + 1))
            if node.right:
                stack.append((node.right, depth + 1))
        return best

    def rebuild(self):
        """
        Rebuild the whole tree around axis medians.

        Entries are collected in pre-order and split with a stable
        partition, so equal coordinates keep their relative order and the
        resulting tree is deterministic.
        """
        if self._count == 0:
            return

        entries = list(self)
        points = np.array([p for p, _ in entries], dtype=np.float64)
        values = [v for _, v in entries]

        self.root = self._build(points, values, np.arange(len(entries)), 0)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Rebuilt k-d tree: %d points, height %d",
                         self._count, self.height())

    balance = rebuild

    def _build(self, points: np.ndarray, values: List[Any],
               idx: np.ndarray, depth: int) -> Optional[KDNode]:
        if idx.size == 0:
            return None

        axis = depth % self.dimensions
        coords = points[idx, axis]
        m = idx.size // 2

        # Median value in O(n), then pick the m-th element of the stable order
        median_value = np.partition(coords, m)[m]
        less = coords < median_value
        equal_pos = np.flatnonzero(coords == median_value)
        k = m - int(np.count_nonzero(less))
        median_pos = equal_pos[k]

        left_mask = less
        left_mask[equal_pos[:k]] = True
        right_mask = ~left_mask
        right_mask[median_pos] = False

        i = idx[median_pos]
        node = KDNode(tuple(points[i].tolist()), values[i], axis)
        node.left = self._build(points, values, idx[left_mask], depth + 1)
        node.right = self._build(points, values, idx[right_mask], depth + 1)
        return node

    def nearest_neighbours(self, point: Sequence[float],
                           max_count: int) -> List[Neighbour]:
        """
        Find the closest stored points.

        Args:
            point: Query coordinates
            max_count: Maximum number of results

        Returns:
            Neighbours sorted by ascending squared distance
        """
        return self._search(point, math.inf, max_count)

    def radial_search(self, point: Sequence[float], max_squared_radius: float,
                      max_count: int) -> List[Neighbour]:
        """
        Find the closest stored points within a radius.

        Args:
            point: Query coordinates
            max_squared_radius: Squared search radius (inclusive)
            max_count: Maximum number of results

        Returns:
            Neighbours sorted by ascending squared distance
        """
        return self._search(point, max_squared_radius, max_count)

    def _search(self, point: Sequence[float], max_sq: float,
                max_count: int) -> List[Neighbour]:
        query = self._as_point(point)

        # NaN compares false, so "not >= 0" also rejects it
        if self.root is None or max_count <= 0 or not max_sq >= 0:
            return []

        # Max-heap keyed on (-distance, -visit order): the root is the
        # latest visited of the farthest candidates
        heap = []
        seq = 0

        # Entries are (node, hyperplane distance); None means no pruning check
        stack = [(self.root, None)]
        while stack:
            node, plane_sq = stack.pop()

            if plane_sq is not None:
                if plane_sq > max_sq:
                    continue
                if len(heap) >= max_count and plane_sq >= -heap[0][0]:
                    continue

            p = node.point
            dist = squared_distance(query, p)

            if dist <= max_sq:
                if len(heap) < max_count:
                    heapq.heappush(heap, (-dist, -seq, node))
                elif dist < -heap[0][0]:
                    heapq.heapreplace(heap, (-dist, -seq, node))
            seq += 1

            axis = node.axis
            diff = query[axis] - p[axis]
            if diff < 0:
                near, far = node.left, node.right
            else:
                near, far = node.right, node.left

            # Far side is pushed first so the near subtree is exhausted before
            # its pruning check runs
            if far is not None:
                stack.append((far, diff * diff))
            if near is not None:
                stack.append((near, None))

        heap.sort(key=lambda e: (-e[0], -e[1]))
        return [Neighbour(n.point, n.value, -d) for d, _, n in heap]
