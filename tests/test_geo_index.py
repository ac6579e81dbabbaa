"""Tests for GeoIndex."""

import pytest
from pydantic import ValidationError

from listingresolver.models import GeoNode, GeoType
from listingresolver.spatial import GeoIndex

from reference_data import (
    CENTER,
    CITY_ID,
    FONTANKA_ID,
    KYIVSKYI_ID,
    PRIMORSKYI_ID,
    REGION_ID,
    box_polygon,
)


class TestResolve:
    """Test most-specific containment."""

    def test_district_over_city(self, geo_index: GeoIndex):
        """A point in a district nested in a city resolves to the district."""
        node = geo_index.resolve(*CENTER)
        assert node is not None
        assert node.id == PRIMORSKYI_ID
        assert node.type == GeoType.CITY_DISTRICT

    def test_city_outside_districts(self, geo_index: GeoIndex):
        """A city point outside every district resolves to the city."""
        node = geo_index.resolve(46.36, 30.65)
        assert node.id == CITY_ID

    def test_village(self, geo_index: GeoIndex):
        """Villages win over the region."""
        assert geo_index.resolve(46.56, 30.86).id == FONTANKA_ID

    def test_outside_everything(self, geo_index: GeoIndex):
        """A point outside all polygons resolves to None."""
        assert geo_index.resolve(50.45, 30.52) is None

    def test_same_type_deeper_wins(self):
        """Nested nodes of the same type resolve to the larger left bound."""
        index = GeoIndex([
            GeoNode(id=1, type=GeoType.CITY, left=1, right=10, geometry=box_polygon(46.0, 30.0, 47.0, 31.0)),
            GeoNode(id=2, parent_id=1, type=GeoType.CITY, left=2, right=3,
                    geometry=box_polygon(46.4, 30.4, 46.6, 30.6)),
        ])
        assert index.resolve(46.5, 30.5).id == 2


class TestHierarchy:
    """Test hierarchy queries."""

    def test_containing_order(self, geo_index: GeoIndex):
        """Containing nodes are listed most specific first."""
        ids = [n.id for n in geo_index.containing(*CENTER)]
        assert ids == [PRIMORSKYI_ID, CITY_ID, REGION_ID]

    def test_hierarchy_levels(self, geo_index: GeoIndex):
        """One node per level."""
        levels = geo_index.hierarchy(*CENTER)
        assert levels[GeoType.REGION].id == REGION_ID
        assert levels[GeoType.CITY].id == CITY_ID
        assert levels[GeoType.CITY_DISTRICT].id == PRIMORSKYI_ID

    def test_ancestors(self, geo_index: GeoIndex):
        """Ancestors come nearest first."""
        assert [n.id for n in geo_index.ancestors(KYIVSKYI_ID)] == [CITY_ID, REGION_ID]

    def test_descendants(self, geo_index: GeoIndex):
        """Descendants include the node itself and everything nested in it."""
        assert geo_index.descendant_ids(CITY_ID) == {CITY_ID, PRIMORSKYI_ID, KYIVSKYI_ID}
        assert geo_index.descendant_ids(REGION_ID) == {
            REGION_ID, CITY_ID, PRIMORSKYI_ID, KYIVSKYI_ID, FONTANKA_ID,
        }
        assert geo_index.descendant_ids(PRIMORSKYI_ID) == {PRIMORSKYI_ID}


class TestMalformedInput:
    """Test handling of bad reference rows."""

    def test_bad_geometry_skipped(self):
        """Nodes with unusable polygons stay addressable but never match."""
        index = GeoIndex([
            GeoNode(id=1, type=GeoType.CITY, left=1, right=2,
                    geometry={"type": "Point", "coordinates": [30.5, 46.5]}),
            GeoNode(id=2, type=GeoType.CITY, left=3, right=4,
                    geometry={"type": "Polygon", "coordinates": "garbage"}),
        ])
        assert len(index) == 2
        assert index.get(1) is not None
        assert index.resolve(46.5, 30.5) is None

    def test_self_intersecting_polygon_repaired(self):
        """A bow-tie polygon is repaired instead of dropped."""
        bow_tie = {
            "type": "Polygon",
            "coordinates": [[[30.0, 46.0], [31.0, 47.0], [31.0, 46.0], [30.0, 47.0], [30.0, 46.0]]],
        }
        index = GeoIndex([GeoNode(id=1, type=GeoType.CITY, left=1, right=2, geometry=bow_tie)])
        assert index.resolve(46.5, 30.9).id == 1

    def test_invalid_bounds_rejected(self):
        """left must be below right."""
        with pytest.raises(ValidationError):
            GeoNode(id=1, type=GeoType.CITY, left=5, right=5)
