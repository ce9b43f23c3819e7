from pathlib import Path
import pytest

from dts_uff.errors import ValidationError
from dts_uff.listing import list_tracks

from conftest import default_attributes


def test_list_tracks(make_dts_folder):
    folder = make_dts_folder(n_chans=2)
    listing = list_tracks(folder.dir_path)
    assert listing.source == str(folder.dir_path)
    assert listing.count == 2
    assert listing.warnings == []
    track = listing.tracks[0]
    assert track.channel == 1
    assert track.name == "Accelerometer 1"
    assert track.description == "Accelerometer 1"
    assert track.sampling_rate_hz == 1000
    assert track.sensitivity == 98.5
    assert track.serial == "SN001"
    assert track.unit == "g"
    assert track.extras == {"unit_defaulted": False, "description_present": True}


def test_list_tracks_with_track_names(make_dts_folder):
    folder = make_dts_folder(n_chans=3, track_names=["Front", "Rear"])
    listing = list_tracks(folder.dir_path, folder.tracks_path)
    assert [x.name for x in listing.tracks] == ["Front", "Rear", "Accelerometer 3"]
    assert listing.warnings == ["Track name count (2) differs from metadata entries (3)"]


def test_list_tracks_fallback_names_and_defaults(make_dts_folder):
    attributes = [
        default_attributes(1, Name="Front"),
        default_attributes(2, Description="", Eu="", SerialNumber=" "),
        default_attributes(3, Description="", Eu="", Sensitivity="NaN"),
    ]
    chn_kwargs = [{}, {"sample_rate": 199_999.6}, {}]
    folder = make_dts_folder(n_chans=3, attributes=attributes, chn_kwargs=chn_kwargs)
    listing = list_tracks(folder.dir_path)
    front, second, third = listing.tracks
    assert front.name == "Front"
    assert second.name == "Track 2"
    assert second.sampling_rate_hz == 200_000
    assert second.serial is None
    assert second.unit == "g"
    assert second.extras == {"unit_defaulted": True, "description_present": False}
    assert third.sensitivity is None
    assert listing.warnings == [
        "2 tracks missing descriptions",
        "2 tracks missing units, defaulted to 'g'",
    ]


def test_list_tracks_other_units_kept(make_dts_folder):
    attributes = [
        default_attributes(1, Eu="m/s^2"),
        default_attributes(2, Eu="G"),
        default_attributes(3, Eu="m/s^2"),
        default_attributes(4, Eu="N"),
    ]
    folder = make_dts_folder(n_chans=4, attributes=attributes)
    listing = list_tracks(folder.dir_path)
    first, second, _, fourth = listing.tracks
    assert first.unit == "m/s^2"
    assert first.extras == {
        "unit_defaulted": False,
        "description_present": True,
        "raw_unit": "m/s^2",
    }
    assert second.unit == "g"
    assert "raw_unit" not in second.extras
    assert fourth.extras["raw_unit"] == "N"
    assert listing.warnings == ["3 tracks used units other than 'g': N (1), m/s^2 (2)"]


def test_list_tracks_empty_track_file(make_dts_folder, tmp_path: Path):
    folder = make_dts_folder(n_chans=1)
    tracks_path = tmp_path / "empty.txt"
    tracks_path.write_text("\n , \n")
    with pytest.raises(ValidationError, match="did not contain any usable entries"):
        list_tracks(folder.dir_path, tracks_path)


def test_listing_dataframe(make_dts_folder):
    folder = make_dts_folder(n_chans=3)
    listing = list_tracks(folder.dir_path)
    df = listing.to_dataframe()
    assert list(df.columns) == [
        "channel",
        "name",
        "description",
        "sampling_rate_hz",
        "sensitivity",
        "serial",
        "unit",
    ]
    assert df["channel"].tolist() == [1, 2, 3]
    assert df["serial"].tolist() == ["SN001", "SN002", "SN003"]
    text = listing.to_text()
    assert "3 tracks" in text
    assert "Accelerometer 2" in text
