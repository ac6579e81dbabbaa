"""Tests for CSV/OSM complex linkage."""

import pytest

from listingresolver.complexes.linkage import (
    ComplexLinker,
    name_similarity,
    string_similarity,
    word_similarity,
)
from listingresolver.config import Settings
from listingresolver.models import ComplexRecord, ComplexSource, LocalizedName, OsmFeature

from reference_data import CENTER, offset


def _record(name: str, point: tuple[float, float]) -> ComplexRecord:
    return ComplexRecord(name=LocalizedName(uk=name, ru=name), lat=point[0], lng=point[1])


def _feature(osm_id: int, name: str, point: tuple[float, float], half_side_m: float = 20) -> OsmFeature:
    south, west = offset(point, -half_side_m, -half_side_m)
    north, east = offset(point, half_side_m, half_side_m)
    ring = [(west, south), (east, south), (east, north), (west, north), (west, south)]
    return OsmFeature(osm_id=osm_id, tags={"name": name, "building": "apartments"}, ring=ring)


@pytest.fixture
def linker(settings: Settings) -> ComplexLinker:
    """Linker with default thresholds."""
    return ComplexLinker(settings)


class TestSimilarity:
    """Test name similarity."""

    def test_exact(self):
        """Names equal after normalization score 1."""
        assert string_similarity("ЖК «Аврора»", "Аврора") == 1.0

    def test_substring(self):
        """One name inside the other scores 0.9."""
        assert string_similarity("Аврора", "Аврора Сіті") == pytest.approx(0.9)

    def test_jaccard(self):
        """Otherwise the word overlap counts."""
        assert string_similarity("Сонячна Долина Преміум", "Сонячна Гора") == pytest.approx(0.25)

    def test_short_words_ignored(self):
        """Words of two letters or less do not count."""
        assert string_similarity("На Морі", "На Горі") == 0.0

    def test_diacritics_folded(self):
        """й and и compare equal in word overlap."""
        assert string_similarity("Затишний Двір Плюс", "Затишнии Сад") == pytest.approx(0.25)

    def test_empty(self):
        """Empty names never match."""
        assert string_similarity("", "Аврора") == 0.0

    def test_best_over_languages(self):
        """The best pair of available names counts."""
        a = LocalizedName(uk="Перлина", ru="Жемчужина")
        b = LocalizedName(uk="Інша назва", ru="ЖК Жемчужина")
        assert name_similarity(a, b) == 1.0


class TestLink:
    """Test record linkage."""

    def test_merge_within_radius(self, linker: ComplexLinker):
        """Identical names 200m apart merge."""
        csv_point = offset(CENTER, 0, 0)
        osm_point = offset(CENTER, 0, 200)

        score = linker.score(_record("Аврора", csv_point), _feature(1, "ЖК Аврора", osm_point), 200)
        assert score == pytest.approx(0.92)

        result = linker.link([_record("Аврора", csv_point)], [_feature(1, "ЖК Аврора", osm_point)])
        assert len(result) == 1
        merged = result[0]
        assert merged.source == ComplexSource.MERGED
        assert merged.osm_id == 1
        assert merged.name.uk == "Аврора"
        assert merged.geometry["type"] == "Polygon"
        assert merged.lat == pytest.approx(osm_point[0])
        assert merged.lng == pytest.approx(osm_point[1])

    def test_no_merge_beyond_radius(self, linker: ComplexLinker):
        """Identical names 600m apart stay separate."""
        result = linker.link(
            [_record("Аврора", CENTER)],
            [_feature(1, "Аврора", offset(CENTER, 0, 600))],
        )
        assert [c.source for c in result] == [ComplexSource.CSV_IMPORT, ComplexSource.OSM]

    def test_low_score_rejected(self, linker: ComplexLinker):
        """Unrelated names close together do not merge."""
        result = linker.link(
            [_record("Аврора", CENTER)],
            [_feature(1, "Сонячний", offset(CENTER, 0, 50))],
        )
        assert {c.source for c in result} == {ComplexSource.CSV_IMPORT, ComplexSource.OSM}

    def test_osm_feature_merges_once(self, linker: ComplexLinker):
        """The second CSV record cannot take an already merged OSM feature."""
        result = linker.link(
            [_record("Аврора", CENTER), _record("Аврора", offset(CENTER, 0, 10))],
            [_feature(1, "Аврора", offset(CENTER, 0, 100))],
        )
        assert [c.source for c in result] == [ComplexSource.MERGED, ComplexSource.CSV_IMPORT]

    def test_best_candidate_chosen(self, linker: ComplexLinker):
        """The closer of two equally named candidates wins."""
        result = linker.link(
            [_record("Аврора", CENTER)],
            [
                _feature(5, "Аврора", offset(CENTER, 0, 300)),
                _feature(9, "Аврора", offset(CENTER, 0, 100)),
            ],
        )
        assert result[0].source == ComplexSource.MERGED
        assert result[0].osm_id == 9

    def test_sequential_ids(self, linker: ComplexLinker):
        """Ids run from 1: CSV-derived first, then OSM only."""
        result = linker.link(
            [_record("Аврора", CENTER), _record("Перлина", offset(CENTER, 5000, 0))],
            [
                _feature(1, "Аврора", offset(CENTER, 0, 50)),
                _feature(2, "Сонячний", offset(CENTER, -3000, 0)),
            ],
        )
        assert [c.id for c in result] == [1, 2, 3]
        assert [c.source for c in result] == [
            ComplexSource.MERGED,
            ComplexSource.CSV_IMPORT,
            ComplexSource.OSM,
        ]

    def test_unnamed_osm_ignored(self, linker: ComplexLinker):
        """OSM elements without a name are not complexes."""
        unnamed = OsmFeature(osm_id=3, tags={"building": "yes"}, lat=CENTER[0], lng=CENTER[1])
        assert linker.link([], [unnamed]) == []

    def test_point_feature_position(self, linker: ComplexLinker):
        """Features without a ring use their own coordinates."""
        point_feature = OsmFeature(osm_id=4, tags={"name": "Аврора"}, lat=CENTER[0], lng=CENTER[1])
        result = linker.link([], [point_feature])
        assert result[0].geometry is None
        assert result[0].lat == CENTER[0]


class TestWordSimilarity:
    """Test the whole-word variant used for listing text."""

    def test_whole_word_containment(self):
        """A name that is a run of whole words of the other scores 0.9."""
        assert word_similarity("Перлина", "ЖК Перлина Моря") == pytest.approx(0.9)

    def test_mid_word_containment(self):
        """Letters inside another word do not count as containment."""
        assert string_similarity("Ера", "Геральдика") == pytest.approx(0.9)
        assert word_similarity("Ера", "Геральдика") == 0.0

    def test_exact_and_jaccard(self):
        """Equality and word overlap behave as in string_similarity."""
        assert word_similarity("ЖК «Аврора»", "Аврора") == 1.0
        assert word_similarity("Сонячна Долина Преміум", "Сонячна Гора") == pytest.approx(0.25)
