"""
Comparison with a UFF file written by the legacy MATLAB tools

This needs a real recording. Set TEST_DATA_PATH_DTS, in the environment or a
.env file, to a directory containing Bancairon_G1_training6_small with its
tracks.txt and matlab_converted.uff, otherwise the tests are skipped.
"""
from typing import List, Tuple
from dotenv import load_dotenv
from pathlib import Path
import os
import numpy as np
import pytest

from dts_uff.conversion import convert
from dts_uff.listing import list_tracks

load_dotenv()
DATA_PATH = os.getenv("TEST_DATA_PATH_DTS")
RECORDING = "Bancairon_G1_training6_small"

pytestmark = pytest.mark.skipif(
    DATA_PATH is None, reason="TEST_DATA_PATH_DTS is not set"
)


def get_recording_path() -> Path:
    return Path(DATA_PATH) / RECORDING


def read_datasets(path: Path) -> List[Tuple[str, np.ndarray]]:
    """Read labels and values of ASCII type 58 datasets, any line ending"""
    lines = [x.rstrip() for x in path.read_text(encoding="latin-1").splitlines()]
    datasets = []
    idx = 0
    while idx < len(lines):
        if lines[idx] != "    -1":
            idx += 1
            continue
        label = lines[idx + 3][3:-1]
        n_samples = int(lines[idx + 8][10:20])
        idx += 13
        values: List[float] = []
        while len(values) < n_samples:
            values.extend(float(x) for x in lines[idx].split())
            idx += 1
        datasets.append((label, np.array(values)))
        idx += 1
    return datasets


def test_matches_matlab_reference_bytes(tmp_path: Path):
    dir_path = get_recording_path()
    output_path = tmp_path / "converted.uff"
    report = convert(dir_path, dir_path / "tracks.txt", output_path)
    assert report.warnings == []

    # records are written with \n where the legacy tools used \r\n
    expected = (dir_path / "matlab_converted.uff").read_bytes()
    expected = expected.replace(b"\r\n", b"\n")
    produced = output_path.read_bytes()
    assert b"\r" not in produced
    assert produced == expected


def test_matches_matlab_reference_values(tmp_path: Path):
    dir_path = get_recording_path()
    output_path = tmp_path / "converted.uff"
    convert(dir_path, dir_path / "tracks.txt", output_path)

    expected = read_datasets(dir_path / "matlab_converted.uff")
    produced = read_datasets(output_path)
    assert [x[0] for x in produced] == [x[0] for x in expected]
    for (_, produced_values), (_, expected_values) in zip(produced, expected):
        np.testing.assert_allclose(produced_values, expected_values, rtol=1e-10)


def test_list_reference_tracks():
    listing = list_tracks(get_recording_path())
    assert listing.count == 2
    for track in listing.tracks:
        assert track.description == "IEPE 100 mV/g"
        assert track.sampling_rate_hz == 200_000
        assert track.sensitivity == pytest.approx(98.5176059)
        assert track.serial == "PCB_B34_xx"
        assert track.unit == "g"
