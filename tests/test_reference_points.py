"""
tests/test_reference_points.py
==============================
Reference correspondence loader: parsing, ids, embedded anchor and the rule
that an origin read from a persisted file is never overridden.
"""
import numpy as np
import pytest

from gcpalign.core.geo_map import UTM
from gcpalign.core.local_frame import LocalGeoCS
from gcpalign.domain.schemas import GeoPoint
from gcpalign.exceptions import ParseError
from gcpalign.io.reference_points import load_reference_file


def _write(tmp_path, lines, name="refs.txt"):
    path = tmp_path / name
    path.write_text("\n".join(lines) + "\n")
    return path


class TestParsing:

    def test_landmarks_and_tracks_share_ids(self, tmp_path, scene):
        path = _write(tmp_path, scene.reference_lines())
        lms, tracks = load_reference_file(path, LocalGeoCS(UTM()))
        assert sorted(lms) == [0, 1, 2, 3, 4]
        assert sorted(tracks) == [0, 1, 2, 3, 4]
        assert all(tracks[i].track_id == i for i in tracks)

    def test_track_states_keep_file_order(self, tmp_path):
        path = _write(tmp_path, ["20.0 10.0 5.0 3 1.5 2.5 0 10 20 7 -1 -2"])
        _, tracks = load_reference_file(path, LocalGeoCS(UTM()))
        states = tracks[0].states
        assert [s.frame_id for s in states] == [3, 0, 7]
        np.testing.assert_allclose(states[0].uv, [1.5, 2.5])
        assert tracks[0].state_for(7).u == -1.0

    def test_comments_and_blank_lines_are_ignored(self, tmp_path):
        path = _write(tmp_path, [
            "# lon lat alt frame u v ...",
            "",
            "20.0 10.0 5.0 0 1 1 1 2 2",
            "   ",
            "20.001 10.001 6.0 0 3 3 1 4 4",
        ])
        lms, tracks = load_reference_file(path, LocalGeoCS(UTM()))
        assert len(lms) == 2
        assert len(tracks[1]) == 2

    def test_empty_file_gives_empty_sets_and_leaves_frame_alone(self, tmp_path):
        frame = LocalGeoCS(UTM())
        lms, tracks = load_reference_file(_write(tmp_path, ["# nothing"]), frame)
        assert lms == {} and tracks == {}
        assert not frame.is_anchored

    @pytest.mark.parametrize("line", [
        "20.0 10.0 5.0",                 # no track state
        "20.0 10.0 5.0 0 1",             # incomplete state
        "20.0 10.0 5.0 0 1 2 3",         # dangling token
        "20.0 ten 5.0 0 1 2",            # bad number
        "20.0 10.0 5.0 zero 1 2",        # bad frame id
        "20.0 95.0 5.0 0 1 2",           # latitude out of range
        "20.0 10.0 5.0 0 nan 2",         # non-finite pixel
        "20.0 10.0 5.0 0 1 2 1 3 inf",   # non-finite pixel in a later state
        "20.0 10.0 nan 0 1 2",           # non-finite altitude
    ])
    def test_malformed_line_raises_parse_error_with_location(self, tmp_path, line):
        path = _write(tmp_path, ["20.0 10.0 5.0 0 1 2", line])
        with pytest.raises(ParseError, match=r"refs\.txt:2"):
            load_reference_file(path, LocalGeoCS(UTM()))

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(OSError):
            load_reference_file(tmp_path / "missing.txt", LocalGeoCS(UTM()))


class TestAnchoring:

    def test_unanchored_frame_is_anchored_at_mean_position(self, tmp_path):
        path = _write(tmp_path, [
            "20.0 10.0 4.0 0 1 1 1 2 2",
            "20.002 10.002 6.0 0 1 1 1 2 2",
        ])
        frame = LocalGeoCS(UTM())
        lms, _ = load_reference_file(path, frame)
        assert frame.origin_source == "reference"
        geo = frame.to_geo()
        np.testing.assert_allclose([geo.latitude, geo.longitude, geo.altitude], [10.001, 20.001, 5.0], atol=1e-9)
        # the anchor sits between the two points
        np.testing.assert_allclose(lms[0].loc + lms[1].loc, np.zeros(3), atol=1e-2)
        np.testing.assert_allclose([lms[0].loc[2], lms[1].loc[2]], [-1.0, 1.0])

    def test_landmarks_are_in_local_frame_coordinates(self, tmp_path, scene):
        path = _write(tmp_path, scene.reference_lines())
        frame = LocalGeoCS(UTM())
        lms, _ = load_reference_file(path, frame)
        o = frame.origin
        shift = np.array([o.utm_easting, o.utm_northing, o.altitude]) - scene.origin_utm
        for i, lm in lms.items():
            np.testing.assert_allclose(lm.loc + shift, scene.world_gcps[i].loc, atol=1e-6)

    def test_file_origin_is_not_overridden(self, tmp_path, scene):
        frame = LocalGeoCS(UTM())
        frame.anchor_from_geo(GeoPoint(latitude=40.0, longitude=-105.0, altitude=1600.0), source="file")
        lms, _ = load_reference_file(_write(tmp_path, scene.reference_lines()), frame)
        assert frame.origin_source == "file"
        for i, lm in lms.items():
            np.testing.assert_allclose(lm.loc, scene.world_gcps[i].loc, atol=1e-6)

    def test_centroid_outside_utm_domain_names_the_file(self, tmp_path):
        path = _write(tmp_path, ["20.0 86.0 5.0 0 1 1 1 2 2", "20.1 86.1 5.0 0 1 1 1 2 2"])
        with pytest.raises(ParseError, match=r"refs\.txt"):
            load_reference_file(path, LocalGeoCS(UTM()))

    def test_point_outside_utm_domain_names_the_line(self, tmp_path):
        frame = LocalGeoCS(UTM())
        frame.anchor_from_geo(GeoPoint(latitude=83.0, longitude=20.0), source="file")
        path = _write(tmp_path, ["20.0 83.1 5.0 0 1 1 1 2 2", "20.0 85.0 5.0 0 1 1 1 2 2"])
        with pytest.raises(ParseError, match=r"refs\.txt:2"):
            load_reference_file(path, frame)

    def test_computed_origin_is_replaced(self, tmp_path, scene):
        frame = LocalGeoCS(UTM())
        frame.anchor_from_geo(GeoPoint(latitude=39.0, longitude=-104.0), source="computed")
        load_reference_file(_write(tmp_path, scene.reference_lines()), frame)
        assert frame.origin_source == "reference"
        np.testing.assert_allclose(frame.to_geo().latitude, 40.0, atol=1e-3)
