from loguru import logger
from pathlib import Path
import sys
import pytest

from dts_uff.cli import main


@pytest.fixture(autouse=True)
def no_env_config(monkeypatch, tmp_path):
    for key in ["DTS_UFF_MAX_WORKERS", "DTS_UFF_QUEUE_SIZE", "DTS_UFF_BYTE_ORDER"]:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    yield
    # main replaces the logging sinks
    logger.remove()
    logger.add(sys.stderr)


def test_cli_convert(make_dts_folder, tmp_path: Path, capsys):
    folder = make_dts_folder(n_chans=3, track_names=["A", "B"])
    output_path = tmp_path / "out.uff"
    argv = [
        "convert",
        "-i",
        str(folder.dir_path),
        "-t",
        str(folder.tracks_path),
        "-o",
        str(output_path),
        "--no-progress",
    ]
    assert main(argv) == 0
    assert output_path.exists()
    out = capsys.readouterr().out
    assert "Channels written: 3" in out
    assert "Number of track names (2) does not match number of channels (3)" in out
    assert "3. Channel_3" in out


def test_cli_convert_options(make_dts_folder, tmp_path: Path, capsys):
    folder = make_dts_folder(n_chans=3, n_samples=10)
    output_path = tmp_path / "out.uff"
    argv = [
        "convert",
        "-i",
        str(folder.dir_path),
        "-t",
        str(folder.tracks_path),
        "-o",
        str(output_path),
        "-f",
        "BINARY",
        "--slice",
        "0:4",
        "--tracks-filter",
        "Track2, Track1",
        "--workers",
        "2",
        "--verbose",
    ]
    assert main(argv) == 0
    raw = output_path.read_bytes()
    assert raw[81:88] == b"    58b"
    assert int(raw[81 + 31 : 81 + 43]) == 16
    out = capsys.readouterr().out
    assert "1. Track2" in out
    assert "2. Track1" in out


@pytest.mark.parametrize(
    "extra, message",
    [
        (["-f", "hdf5"], "Unsupported output format"),
        (["--slice", "5:2"], "Sample slice start must be less than end"),
        (["--tracks-filter", " , "], "At least one track name"),
        (["--workers", "0"], "max_workers"),
    ],
)
def test_cli_convert_invalid_options(
    make_dts_folder, tmp_path: Path, capsys, extra, message
):
    folder = make_dts_folder(n_chans=1)
    output_path = tmp_path / "out.uff"
    argv = ["convert", "-i", str(folder.dir_path), "-t", str(folder.tracks_path)]
    argv += ["-o", str(output_path), "--no-progress"] + extra
    assert main(argv) == 1
    err = capsys.readouterr().err
    assert "Error: " in err
    assert message in err
    assert not output_path.exists()


def test_cli_convert_missing_input(tmp_path: Path, capsys):
    tracks_path = tmp_path / "tracks.txt"
    tracks_path.write_text("A")
    argv = ["convert", "-i", str(tmp_path / "missing"), "-t", str(tracks_path)]
    argv += ["-o", str(tmp_path / "out.uff"), "--no-progress"]
    assert main(argv) == 1
    assert "DTS directory not found" in capsys.readouterr().err


def test_cli_list(make_dts_folder, capsys):
    folder = make_dts_folder(n_chans=2, track_names=["Front", "Rear"])
    argv = ["list", "-i", str(folder.dir_path), "-t", str(folder.tracks_path)]
    assert main(argv) == 0
    out = capsys.readouterr().out
    assert "2 tracks" in out
    assert "Front" in out
    assert "SN002" in out


def test_cli_requires_command(capsys):
    with pytest.raises(SystemExit) as e:
        main([])
    assert e.value.code == 2
