"""Tests for StreetIndex."""

import pytest

from listingresolver.models import GeoNode, GeoType, LocalizedName, Street
from listingresolver.spatial import GeoIndex, StreetIndex

from reference_data import (
    CENTER,
    CITY_ID,
    DERIBASIVSKA_ID,
    KANATNA_ID,
    KYIVSKYI_ID,
    KYIVSKYI_POINT,
    PRIMORSKYI_ID,
    SHEVCHENKA_ID,
    box_polygon,
    vertical_line,
)


def _street(street_id: int, east_m: float, geo_id: int = 1) -> Street:
    return Street(
        id=street_id,
        geo_id=geo_id,
        name=LocalizedName(uk=f"Вулиця {street_id}"),
        geometry=vertical_line(CENTER, east_m),
    )


@pytest.fixture
def three_streets() -> StreetIndex:
    """Streets at 50m, 150m and 400m from the reference point."""
    return StreetIndex([_street(1, 50), _street(2, -150), _street(3, 400)])


class TestNearest:
    """Test bounded nearest-street search."""

    def test_nearest_within_radius(self, three_streets: StreetIndex):
        """The closest street inside the radius wins."""
        assert three_streets.nearest(*CENTER, geo_id=None, radius_m=200).id == 1

    def test_nothing_within_radius(self, three_streets: StreetIndex):
        """No street closer than the radius gives None."""
        assert three_streets.nearest(*CENTER, geo_id=None, radius_m=30) is None

    def test_radius_inclusive(self, three_streets: StreetIndex):
        """A street exactly at the radius is found."""
        street = three_streets.get(2)
        distance = three_streets.distance_m(street, *CENTER)
        assert distance == pytest.approx(150, abs=0.5)

        found = three_streets.within(*CENTER, radius_m=distance)
        assert [s.id for s, _ in found] == [1, 2]

    def test_within_sorted(self, three_streets: StreetIndex):
        """within() lists streets nearest first."""
        found = three_streets.within(*CENTER, radius_m=1000)
        assert [s.id for s, _ in found] == [1, 2, 3]

    def test_tie_lower_id(self):
        """Equidistant streets resolve to the lower id."""
        index = StreetIndex([_street(7, 100), _street(4, 100)])
        assert index.nearest(*CENTER, geo_id=None, radius_m=200).id == 4

    def test_scope_preferred(self, street_index: StreetIndex):
        """Streets of the scoped geo win over closer streets elsewhere."""
        # Shevchenka belongs to Kyivskyi, Deribasivska to Primorskyi
        street = street_index.nearest(*CENTER, geo_id=KYIVSKYI_ID, radius_m=100000)
        assert street.id == SHEVCHENKA_ID

    def test_scope_includes_descendants(self, street_index: StreetIndex):
        """A city scope covers streets owned by its districts."""
        street = street_index.nearest(*CENTER, geo_id=CITY_ID, radius_m=200)
        assert street.id == DERIBASIVSKA_ID

    def test_scope_widened(self, street_index: StreetIndex):
        """Without scoped candidates in range, any street within radius is used."""
        street = street_index.nearest(*KYIVSKYI_POINT, geo_id=PRIMORSKYI_ID, radius_m=200)
        assert street.id == SHEVCHENKA_ID

    def test_distance_m(self, street_index: StreetIndex):
        """Point-to-line distance is metric."""
        street = street_index.get(DERIBASIVSKA_ID)
        assert street_index.distance_m(street, *CENTER) == pytest.approx(80, abs=0.5)


class TestNames:
    """Test name lookup."""

    def test_by_normalized_name(self, street_index: StreetIndex):
        """Any spelling of the name finds the street."""
        for name in ("Дерибасівська", "вул. Дерибасівська", "ул. Дерибасовская"):
            assert [s.id for s in street_index.by_normalized_name(name)] == [DERIBASIVSKA_ID]

    def test_historical_name(self, street_index: StreetIndex):
        """Renamed streets answer to their old name."""
        assert [s.id for s in street_index.by_normalized_name("вулиця Свердлова")] == [KANATNA_ID]

    def test_names_of(self, street_index: StreetIndex):
        """Current and historical names, normalized, without repeats."""
        assert set(street_index.names_of(KANATNA_ID)) == {"канатна", "канатная", "свердлова"}
        assert street_index.names_of(999) == []

    def test_rename_map(self, street_index: StreetIndex):
        """Only old names appear in the rename map."""
        renamed = street_index.rename_map()
        assert list(renamed) == ["свердлова"]
        assert renamed["свердлова"][0].id == KANATNA_ID

    def test_scoped_name_index(self, street_index: StreetIndex):
        """A district name index holds only its own streets."""
        names = street_index.name_index(KYIVSKYI_ID)
        assert set(names) == {"шевченка", "шевченко"}

        city_names = street_index.name_index(CITY_ID)
        assert "дерибасівська" in city_names
        assert "шевченка" in city_names

    def test_global_name_index(self, street_index: StreetIndex):
        """The global index covers every street."""
        names = street_index.name_index()
        assert names["канатна"][0].id == KANATNA_ID


class TestScope:
    """Test geo scoping and geometry-less streets."""

    def test_scope_without_geo_index(self):
        """Without a hierarchy a scope is the geo node alone."""
        index = StreetIndex([_street(1, 10, geo_id=2), _street(2, 20, geo_id=3)])
        assert [s.id for s in index.streets_in_scope(2)] == [1]

    def test_scope_with_geo_index(self):
        """With a hierarchy nested nodes are included."""
        geo = GeoIndex([
            GeoNode(id=2, type=GeoType.CITY, left=1, right=4, geometry=box_polygon(46, 30, 47, 31)),
            GeoNode(id=3, parent_id=2, type=GeoType.CITY_DISTRICT, left=2, right=3),
        ])
        index = StreetIndex([_street(1, 10, geo_id=2), _street(2, 20, geo_id=3)], geo)
        assert [s.id for s in index.streets_in_scope(2)] == [1, 2]

    def test_street_without_geometry(self):
        """Streets with unusable geometry stay searchable by name."""
        broken = Street(
            id=9,
            geo_id=1,
            name=LocalizedName(uk="Тестова"),
            geometry={"type": "Polygon", "coordinates": [[[30, 46], [31, 46], [31, 47], [30, 46]]]},
        )
        index = StreetIndex([broken])
        assert index.nearest(*CENTER, geo_id=None, radius_m=100000) is None
        assert index.by_normalized_name("Тестова")[0].id == 9
