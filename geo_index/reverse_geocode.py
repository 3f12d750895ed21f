"""
Reverse geocoding over a k-d tree of projected coordinates.

Records only need `latitude` and `longitude` attributes (degrees). Every
record is projected onto the unit sphere, so radii passed to
radial_search() are unit-sphere chord lengths, not kilometres. Use
radial_search_km() or geo.km_to_chord() to search by ground distance.

Results are sorted by ascending distance. Equal distances keep the order
in which the tree traversal reached them.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import (
    Any, Callable, Generic, Iterable, List, Optional, Protocol, Tuple, TypeVar
)

from geo_index.geo import km_to_chord, project
from geo_index.kd_tree import KDTree, Neighbour


logger = logging.getLogger(__name__)


class LocatedRecord(Protocol):
    latitude: float
    longitude: float


T = TypeVar("T")


@dataclass(frozen=True)
class QueryPoint:
    """Bare location used as a search centre."""
    latitude: float
    longitude: float


class ReverseGeoCode(Generic[T]):
    """Answers "what is near (lat, lng)?" over a set of located records."""

    def __init__(self, records: Iterable[T] = (),
                 factory: Callable[[float, float], Any] = QueryPoint):
        """
        Build an index and balance it.

        Args:
            records: Objects with latitude/longitude attributes
            factory: Builds a search centre from (lat, lng)
        """
        self._tree = KDTree(dimensions=3)
        self._balanced = True
        self.factory = factory

        self.add_range(records)
        self.balance()

    @property
    def count(self) -> int:
        return self._tree.count

    def __len__(self) -> int:
        return self._tree.count

    @property
    def is_balanced(self) -> bool:
        """False after an add() that was not followed by balance()."""
        return self._balanced

    @property
    def tree(self) -> KDTree:
        return self._tree

    def create_from_lat_long(self, lat: float, lng: float):
        return self.factory(lat, lng)

    def add(self, record: T):
        """Add a single record. Call balance() afterwards for fast queries."""
        self._tree.insert(project(record.latitude, record.longitude), record)
        self._balanced = False

    def add_range(self, records: Iterable[T]):
        """
        Add several records without rebalancing.

        All records are projected before anything is inserted, so an
        invalid coordinate leaves the index unchanged.
        """
        batch = [(project(r.latitude, r.longitude), r) for r in records]
        if not batch:
            return

        for point, record in batch:
            self._tree.insert(point, record)
        self._balanced = False

        logger.debug("Added %d records (total %d)", len(batch), self.count)

    def balance(self):
        """Rebuild the tree so its height is logarithmic again."""
        if self._tree.count > 0:
            self._tree.rebuild()
        self._balanced = True

    # ------------------------------------------------------------------
    # Radial search
    # ------------------------------------------------------------------

    def radial_search(self, lat: float, lng: float, radius: float = math.inf,
                      max_count: Optional[int] = None) -> List[T]:
        """
        Find records within a chord radius of a coordinate.

        Args:
            lat: Latitude in degrees
            lng: Longitude in degrees
            radius: Unit-sphere chord length (inclusive)
            max_count: Maximum results (defaults to all records)

        Returns:
            Records sorted by distance
        """
        return self.radial_search_from(
            self.create_from_lat_long(lat, lng), radius, max_count
        )

    def radial_search_from(self, center, radius: float = math.inf,
                           max_count: Optional[int] = None) -> List[T]:
        """Same as radial_search() with a record as centre."""
        return [r for r, _ in self.radial_search_from_with_distance(
            center, radius, max_count)]

    def radial_search_with_distance(self, lat: float, lng: float,
                                    radius: float = math.inf,
                                    max_count: Optional[int] = None
                                    ) -> List[Tuple[T, float]]:
        return self.radial_search_from_with_distance(
            self.create_from_lat_long(lat, lng), radius, max_count
        )

    def radial_search_from_with_distance(self, center, radius: float = math.inf,
                                         max_count: Optional[int] = None
                                         ) -> List[Tuple[T, float]]:
        """
        Radial search returning (record, chord distance) pairs.

        A negative or NaN radius yields no results.
        """
        point = project(center.latitude, center.longitude)
        if not radius >= 0:
            return []

        hits = self._tree.radial_search(
            point, radius * radius, self._max_count(max_count)
        )
        return self._with_distance(hits)

    def radial_search_km(self, lat: float, lng: float, radius_km: float,
                         max_count: Optional[int] = None) -> List[T]:
        """Radial search with the radius given as great-circle kilometres."""
        return self.radial_search(lat, lng, km_to_chord(radius_km), max_count)

    # ------------------------------------------------------------------
    # Nearest neighbour search
    # ------------------------------------------------------------------

    def nearest_neighbour_search(self, lat: float, lng: float,
                                 max_count: Optional[int] = None) -> List[T]:
        """
        Find the records closest to a coordinate.

        Args:
            lat: Latitude in degrees
            lng: Longitude in degrees
            max_count: Maximum results (defaults to all records)

        Returns:
            Records sorted by distance
        """
        return self.nearest_neighbour_search_from(
            self.create_from_lat_long(lat, lng), max_count
        )

    def nearest_neighbour_search_from(self, center,
                                      max_count: Optional[int] = None) -> List[T]:
        return [r for r, _ in self.nearest_neighbour_search_from_with_distance(
            center, max_count)]

    def nearest_neighbour_search_with_distance(self, lat: float, lng: float,
                                               max_count: Optional[int] = None
                                               ) -> List[Tuple[T, float]]:
        return self.nearest_neighbour_search_from_with_distance(
            self.create_from_lat_long(lat, lng), max_count
        )

    def nearest_neighbour_search_from_with_distance(
            self, center, max_count: Optional[int] = None
    ) -> List[Tuple[T, float]]:
        point = project(center.latitude, center.longitude)
        hits = self._tree.nearest_neighbours(point, self._max_count(max_count))
        return self._with_distance(hits)

    # ------------------------------------------------------------------
    # Async variants (run the synchronous call on a worker thread)
    # ------------------------------------------------------------------

    async def add_async(self, record: T):
        await asyncio.to_thread(self.add, record)

    async def add_range_async(self, records: Iterable[T]):
        await asyncio.to_thread(self.add_range, records)

    async def balance_async(self):
        await asyncio.to_thread(self.balance)

    async def radial_search_async(self, lat: float, lng: float,
                                  radius: float = math.inf,
                                  max_count: Optional[int] = None) -> List[T]:
        return await asyncio.to_thread(
            self.radial_search, lat, lng, radius, max_count
        )

    async def radial_search_from_async(self, center, radius: float = math.inf,
                                       max_count: Optional[int] = None) -> List[T]:
        return await asyncio.to_thread(
            self.radial_search_from, center, radius, max_count
        )

    async def nearest_neighbour_search_async(self, lat: float, lng: float,
                                             max_count: Optional[int] = None
                                             ) -> List[T]:
        return await asyncio.to_thread(
            self.nearest_neighbour_search, lat, lng, max_count
        )

    async def nearest_neighbour_search_from_async(self, center,
                                                  max_count: Optional[int] = None
                                                  ) -> List[T]:
        return await asyncio.to_thread(
            self.nearest_neighbour_search_from, center, max_count
        )

    async def radial_search_with_distance_async(self, lat: float, lng: float,
                                                radius: float = math.inf,
                                                max_count: Optional[int] = None
                                                ) -> List[Tuple[T, float]]:
        return await asyncio.to_thread(
            self.radial_search_with_distance, lat, lng, radius, max_count
        )

    async def nearest_neighbour_search_with_distance_async(
            self, lat: float, lng: float, max_count: Optional[int] = None
    ) -> List[Tuple[T, float]]:
        return await asyncio.to_thread(
            self.nearest_neighbour_search_with_distance, lat, lng, max_count
        )

    # ------------------------------------------------------------------

    def _max_count(self, max_count: Optional[int]) -> int:
        if max_count is None:
            return self._tree.count
        return max_count

    @staticmethod
    def _with_distance(hits: List[Neighbour]) -> List[Tuple[Any, float]]:
        return [(h.value, math.sqrt(h.squared_distance)) for h in hits]

