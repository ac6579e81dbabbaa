"""Point-in-polygon lookup over the nested-set geographic hierarchy."""

import bisect
import logging
from typing import Iterable, Optional

from shapely.strtree import STRtree

from ..errors import MalformedInputError
from ..models.reference import GeoNode, GeoType
from .geometry import POLYGON_TYPES, parse_geometry, to_point

logger = logging.getLogger(__name__)

# Lower wins: the most specific level that contains the point
TYPE_PRIORITY: dict[GeoType, int] = {
    GeoType.CITY_DISTRICT: 1,
    GeoType.CITY: 2,
    GeoType.VILLAGE: 3,
    GeoType.REGION_DISTRICT: 4,
    GeoType.REGION: 5,
}
DEFAULT_PRIORITY = 6


def specificity_key(node: GeoNode) -> tuple[int, int]:
    """Sort key: type priority, then deeper nested-set position first."""
    return (TYPE_PRIORITY.get(node.type, DEFAULT_PRIORITY), -node.left)


class GeoIndex:
    """Read-only index of geo nodes and their polygons.

    Answers which nodes contain a point and which of them is the most
    specific. Nodes without a polygon stay addressable for hierarchy
    queries but never match a point.

    Example:
        index = GeoIndex(nodes)
        node = index.resolve(46.4846, 30.7390)
        if node:
            print(node.type, node.name.display())
    """

    def __init__(self, nodes: Iterable[GeoNode]):
        """Build the index.

        Args:
            nodes: All geo nodes; malformed polygons are logged and skipped
        """
        self._nodes: dict[int, GeoNode] = {}
        polygon_nodes: list[GeoNode] = []
        geometries = []

        for node in nodes:
            self._nodes[node.id] = node
            try:
                geometry = parse_geometry(node.geometry, POLYGON_TYPES, "geo_index", node.id)
            except MalformedInputError as e:
                logger.warning(f"Skipping geo polygon: {e}")
                continue
            if geometry is None:
                continue
            polygon_nodes.append(node)
            geometries.append(geometry)

        self._polygon_nodes = polygon_nodes
        self._geometries = geometries
        self._tree = STRtree(geometries) if geometries else None

        self._by_left = sorted(self._nodes.values(), key=lambda n: n.left)
        self._lefts = [n.left for n in self._by_left]

        self._check_nesting()
        logger.info(
            f"GeoIndex: {len(self._nodes)} nodes, {len(polygon_nodes)} with polygons"
        )

    def _check_nesting(self) -> None:
        for node in self._nodes.values():
            if node.parent_id is None:
                continue
            parent = self._nodes.get(node.parent_id)
            if parent is None:
                logger.warning(f"Geo {node.id}: parent {node.parent_id} not loaded")
            elif not parent.is_ancestor_of(node):
                logger.warning(
                    f"Geo {node.id}: bounds ({node.left}, {node.right}) not inside "
                    f"parent {parent.id} ({parent.left}, {parent.right})"
                )

    def __len__(self) -> int:
        return len(self._nodes)

    def get(self, node_id: Optional[int]) -> Optional[GeoNode]:
        if node_id is None:
            return None
        return self._nodes.get(node_id)

    def containing(self, lat: float, lng: float) -> list[GeoNode]:
        """All nodes whose polygon contains the point, most specific first."""
        if self._tree is None:
            return []
        point = to_point(lat, lng)
        hits = self._tree.query(point, predicate="within")
        nodes = [self._polygon_nodes[int(i)] for i in hits]
        return sorted(nodes, key=specificity_key)

    def resolve(self, lat: float, lng: float) -> Optional[GeoNode]:
        """Most specific node containing the point, or None.

        Type priority decides first (city district over city over village
        over region district over region); nested duplicates of the same
        type go to the node with the larger nested-set ``left``.
        """
        nodes = self.containing(lat, lng)
        return nodes[0] if nodes else None

    def hierarchy(self, lat: float, lng: float) -> dict[GeoType, GeoNode]:
        """One containing node per hierarchy level."""
        levels: dict[GeoType, GeoNode] = {}
        for node in self.containing(lat, lng):
            levels.setdefault(node.type, node)
        return levels

    def ancestors(self, node_id: int) -> list[GeoNode]:
        """Ancestors of a node, nearest first."""
        node = self._nodes.get(node_id)
        if node is None:
            return []
        found = [n for n in self._nodes.values() if n.is_ancestor_of(node)]
        return sorted(found, key=lambda n: n.left, reverse=True)

    def descendant_ids(self, node_id: int) -> set[int]:
        """Ids of a node and everything nested inside it."""
        node = self._nodes.get(node_id)
        if node is None:
            return {node_id}
        start = bisect.bisect_right(self._lefts, node.left)
        end = bisect.bisect_left(self._lefts, node.right)
        ids = {node.id}
        ids.update(n.id for n in self._by_left[start:end] if n.right < node.right)
        return ids
