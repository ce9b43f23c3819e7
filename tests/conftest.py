"""
Fixtures for building synthetic DTS test folders

The .chn files are written byte by byte with struct at the offsets of the DTS
channel header rather than with the package's own layout table, so the tests
check the decoding against an independent description of the format.
"""
from typing import Any, Callable, Dict, List, Optional, Sequence
from pathlib import Path
import struct
import numpy as np
import pytest

CHN_MAGIC = 0x2C36351F
BASE_HEADER_BYTES = 90


def make_chn_bytes(
    samples: Sequence[int],
    sample_rate: float = 1000.0,
    scale_factor_mv: float = 0.5,
    scale_factor_eu: float = 2.0,
    pre_test_zero_level_adc: int = 0,
    data_zero_level_adc: int = 0,
    triggers: Sequence[int] = (),
    sample_count: Optional[int] = None,
    padding: int = 6,
    magic: int = CHN_MAGIC,
) -> bytes:
    """Get the bytes of a .chn file, the header followed by int16 samples"""
    shift = 8 * len(triggers)
    header_end = BASE_HEADER_BYTES + shift
    data_offset = header_end + padding
    if sample_count is None:
        sample_count = len(samples)
    raw = bytearray(data_offset)
    struct.pack_into("<I", raw, 0, magic)
    struct.pack_into("<I", raw, 4, 3)
    struct.pack_into("<Q", raw, 8, data_offset)
    struct.pack_into("<Q", raw, 16, sample_count)
    struct.pack_into("<I", raw, 24, 16)
    struct.pack_into("<I", raw, 28, 1)
    struct.pack_into("<d", raw, 32, sample_rate)
    struct.pack_into("<H", raw, 40, len(triggers))
    for idx, trigger in enumerate(triggers):
        struct.pack_into("<q", raw, 42 + 8 * idx, trigger)
    struct.pack_into("<i", raw, 42 + shift, pre_test_zero_level_adc)
    struct.pack_into("<i", raw, 46 + shift, 0)
    struct.pack_into("<i", raw, 50 + shift, 0)
    struct.pack_into("<d", raw, 54 + shift, 0.25)
    struct.pack_into("<i", raw, 62 + shift, 0)
    struct.pack_into("<i", raw, 66 + shift, 0)
    struct.pack_into("<i", raw, 70 + shift, data_zero_level_adc)
    struct.pack_into("<d", raw, 74 + shift, scale_factor_mv)
    struct.pack_into("<d", raw, 82 + shift, scale_factor_eu)
    return bytes(raw) + np.asarray(samples, dtype="<i2").tobytes()


def channel_element(attributes: Dict[str, Any]) -> str:
    values = " ".join(f'{key}="{value}"' for key, value in attributes.items())
    return f"<AnalogInputChanel {values} />"


def make_dts_xml(
    modules: List[List[Dict[str, Any]]], start_samples: Optional[List[int]] = None
) -> str:
    """Get DTS XML text with one Module element per list of channel attributes"""
    if start_samples is None:
        start_samples = [0] * len(modules)
    parts = ['<?xml version="1.0" encoding="utf-8"?>', "<Test>", "<Modules>"]
    for channels, start in zip(modules, start_samples):
        parts.append(f'<Module StartRecordSampleNumber="{start}">')
        parts.append("<Channels>")
        parts.extend(channel_element(x) for x in channels)
        parts.append("</Channels>")
        parts.append("</Module>")
    parts.extend(["</Modules>", "</Test>"])
    return "\n".join(parts)


def default_attributes(number: int, **overrides: Any) -> Dict[str, Any]:
    """Channel attributes for an accelerometer numbered from 1"""
    attributes = {
        "ProportionalToExcitation": "False",
        "IsInverted": "False",
        "InitialEu": "0",
        "ZeroMethod": "UsePreCalZero",
        "Eu": "g",
        "Description": f"Accelerometer {number}",
        "SerialNumber": f"SN{number:03d}",
        "Sensitivity": "98.5",
        "AbsoluteDisplayOrder": str(number),
    }
    attributes.update(overrides)
    return attributes


class DtsFolder:
    """Paths of a synthetic DTS test folder"""

    def __init__(self, dir_path: Path, tracks_path: Path, samples: List[np.ndarray]):
        self.dir_path = dir_path
        self.tracks_path = tracks_path
        self.samples = samples


@pytest.fixture
def make_dts_folder(tmp_path: Path) -> Callable[..., DtsFolder]:
    """
    Factory for DTS test folders

    Channel n (from 1) has samples n * 100 + arange(n_samples), a scale of
    0.5 / 2.0 = 0.25 EU per count, no zero offset, and is written to
    'test.ch{n}.chn'. The .chn files are named so that alphabetical and
    natural order differ once there are ten or more channels.
    """
    counter = {"n": 0}

    def _make(
        n_chans: int = 3,
        n_samples: int = 10,
        track_names: Optional[List[str]] = None,
        attributes: Optional[List[Dict[str, Any]]] = None,
        chn_kwargs: Optional[List[Dict[str, Any]]] = None,
        modules: Optional[List[int]] = None,
    ) -> DtsFolder:
        counter["n"] += 1
        dir_path = tmp_path / f"dts_{counter['n']}"
        dir_path.mkdir()
        if attributes is None:
            attributes = [default_attributes(x + 1) for x in range(n_chans)]
        if chn_kwargs is None:
            chn_kwargs = [{} for _ in range(n_chans)]
        if modules is None:
            modules = [n_chans]

        channel_modules = []
        start = 0
        for size in modules:
            channel_modules.append(attributes[start : start + size])
            start += size
        xml = make_dts_xml(channel_modules)
        (dir_path / "test.dts").write_text(xml, encoding="utf-8")

        samples = []
        for idx in range(n_chans):
            data = (idx + 1) * 100 + np.arange(n_samples, dtype=np.int16)
            samples.append(data)
            chn = make_chn_bytes(data, **chn_kwargs[idx])
            (dir_path / f"test.ch{idx + 1}.chn").write_bytes(chn)

        if track_names is None:
            track_names = [f"Track{x + 1}" for x in range(n_chans)]
        tracks_path = tmp_path / f"tracks_{counter['n']}.txt"
        tracks_path.write_text(",".join(track_names), encoding="utf-8")
        return DtsFolder(dir_path, tracks_path, samples)

    return _make
