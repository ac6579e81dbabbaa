"""Pytest fixtures and test utilities.

A small Odesa geography: region > city > two city districts plus a
village, a handful of streets drawn as metric offsets from a reference
point, and a linked complex table.
"""

import pytest

from listingresolver.complexes.index import ComplexIndex
from listingresolver.config import Settings
from listingresolver.models import (
    ApartmentComplex,
    ComplexSource,
    GeoNode,
    GeoType,
    Listing,
    LocalizedName,
    Street,
)
from listingresolver.pipeline import ReferenceSnapshot, ResolutionPipeline
from listingresolver.spatial import GeoIndex, StreetIndex

from reference_data import (
    AURORA_ID,
    CENTER,
    CITY_ID,
    DERIBASIVSKA_ID,
    FONTANKA_ID,
    KANATNA_ID,
    KYIVSKYI_ID,
    KYIVSKYI_POINT,
    PERLYNA_ID,
    PERLYNA_POINT,
    PRIMORSKYI_ID,
    REGION_ID,
    SHEVCHENKA_ID,
    SILPO_ID,
    box_polygon,
    square_around,
    vertical_line,
)


@pytest.fixture
def settings() -> Settings:
    """Default settings, independent of the environment."""
    return Settings(_env_file=None)


@pytest.fixture
def geo_nodes() -> list[GeoNode]:
    """Region > city > districts, plus a village outside the city."""
    return [
        GeoNode(
            id=REGION_ID,
            type=GeoType.REGION,
            name=LocalizedName(uk="Одеська область", ru="Одесская область"),
            left=1,
            right=20,
            geometry=box_polygon(45.9, 30.2, 47.0, 31.3),
        ),
        GeoNode(
            id=CITY_ID,
            parent_id=REGION_ID,
            type=GeoType.CITY,
            name=LocalizedName(uk="Одеса", ru="Одесса", en="Odesa"),
            left=2,
            right=11,
            geometry=box_polygon(46.35, 30.62, 46.60, 30.83),
        ),
        GeoNode(
            id=PRIMORSKYI_ID,
            parent_id=CITY_ID,
            type=GeoType.CITY_DISTRICT,
            name=LocalizedName(uk="Приморський район", ru="Приморский район"),
            left=3,
            right=4,
            geometry=box_polygon(46.47, 30.72, 46.50, 30.76),
        ),
        GeoNode(
            id=KYIVSKYI_ID,
            parent_id=CITY_ID,
            type=GeoType.CITY_DISTRICT,
            name=LocalizedName(uk="Київський район", ru="Киевский район"),
            left=5,
            right=6,
            geometry=box_polygon(46.38, 30.70, 46.44, 30.76),
        ),
        GeoNode(
            id=FONTANKA_ID,
            parent_id=REGION_ID,
            type=GeoType.VILLAGE,
            name=LocalizedName(uk="Фонтанка"),
            left=12,
            right=13,
            geometry=box_polygon(46.54, 30.84, 46.58, 30.88),
        ),
    ]


@pytest.fixture
def streets() -> list[Street]:
    """Streets around the reference point and one in the Kyivskyi district."""
    return [
        Street(
            id=DERIBASIVSKA_ID,
            geo_id=PRIMORSKYI_ID,
            name=LocalizedName(uk="вулиця Дерибасівська", ru="улица Дерибасовская"),
            geometry=vertical_line(CENTER, 80),
        ),
        Street(
            id=SHEVCHENKA_ID,
            geo_id=KYIVSKYI_ID,
            name=LocalizedName(uk="проспект Шевченка", ru="проспект Шевченко"),
            geometry=vertical_line(KYIVSKYI_POINT, 50),
        ),
        Street(
            id=KANATNA_ID,
            geo_id=PRIMORSKYI_ID,
            name=LocalizedName(uk="вулиця Канатна", ru="улица Канатная"),
            names={"uk": ["Канатна", "Свердлова"], "ru": ["Канатная", "Свердлова"]},
            geometry=vertical_line(CENTER, -400),
        ),
    ]


@pytest.fixture
def complexes() -> list[ApartmentComplex]:
    """Linked complex table: one with known references, one landmark, one footprint."""
    return [
        ApartmentComplex(
            id=AURORA_ID,
            name=LocalizedName(uk="ЖК Аврора", ru="ЖК Аврора", en="Aurora"),
            lat=KYIVSKYI_POINT[0],
            lng=KYIVSKYI_POINT[1],
            geo_id=KYIVSKYI_ID,
            street_id=SHEVCHENKA_ID,
            source=ComplexSource.MERGED,
            osm_id=1001,
            osm_type="way",
        ),
        ApartmentComplex(
            id=SILPO_ID,
            name=LocalizedName(uk="Сільпо"),
            lat=46.4600,
            lng=30.7400,
            source=ComplexSource.OSM,
            osm_id=1002,
            osm_type="way",
        ),
        ApartmentComplex(
            id=PERLYNA_ID,
            name=LocalizedName(uk="ЖК «Перлина Моря»", ru="ЖК «Жемчужина Моря»"),
            lat=PERLYNA_POINT[0],
            lng=PERLYNA_POINT[1],
            geometry=square_around(PERLYNA_POINT, 25),
            source=ComplexSource.CSV_IMPORT,
        ),
    ]


@pytest.fixture
def geo_index(geo_nodes: list[GeoNode]) -> GeoIndex:
    """GeoIndex over the fixture geography."""
    return GeoIndex(geo_nodes)


@pytest.fixture
def street_index(streets: list[Street], geo_index: GeoIndex) -> StreetIndex:
    """StreetIndex over the fixture streets."""
    return StreetIndex(streets, geo_index)


@pytest.fixture
def complex_index(complexes: list[ApartmentComplex]) -> ComplexIndex:
    """ComplexIndex over the fixture complexes."""
    return ComplexIndex(complexes)


@pytest.fixture
def snapshot(
    geo_nodes: list[GeoNode],
    streets: list[Street],
    complexes: list[ApartmentComplex],
    settings: Settings,
) -> ReferenceSnapshot:
    """Reference snapshot with enriched complexes."""
    return ReferenceSnapshot.build(geo_nodes, streets, complexes, settings=settings)


@pytest.fixture
def pipeline(snapshot: ReferenceSnapshot, settings: Settings) -> ResolutionPipeline:
    """Resolution pipeline over the fixture snapshot."""
    return ResolutionPipeline(snapshot, settings)


@pytest.fixture
def center_listing() -> Listing:
    """Listing at the reference point with no text."""
    return Listing(id="olx-1", lat=CENTER[0], lng=CENTER[1])
