"""
Decoding of the binary header at the start of each DTS .chn channel file

The .chn header is a fixed little-endian layout. The first fields sit at fixed
byte offsets. After the trigger count comes one 8 byte trigger sample number
per trigger, so every field after the trigger table is shifted by
8 * trigger_count bytes.

The offsets are an external contract of the DTS format and are kept together
in HEADER_LAYOUT rather than spread through the code.
"""
from loguru import logger
from typing import Any, Dict, List, NamedTuple
from pathlib import Path
import struct
from pydantic import BaseModel

from dts_uff.errors import ChannelHeaderError

MAGIC_KEY = 0x2C36351F
TRIGGER_BYTES = 8


class HeaderField(NamedTuple):
    """One entry of the .chn header layout"""

    name: str
    offset: int
    fmt: str
    after_triggers: bool


HEADER_LAYOUT: List[HeaderField] = [
    HeaderField("magic", 0, "I", False),
    HeaderField("header_version", 4, "I", False),
    HeaderField("sample_data_offset", 8, "Q", False),
    HeaderField("sample_count", 16, "Q", False),
    HeaderField("bit_length", 24, "I", False),
    HeaderField("is_signed", 28, "I", False),
    HeaderField("sample_rate_hz", 32, "d", False),
    HeaderField("trigger_count", 40, "H", False),
    HeaderField("trigger_sample_number", 42, "q", False),
    HeaderField("pre_test_zero_level_adc", 42, "i", True),
    HeaderField("removed_adc", 46, "i", True),
    HeaderField("pre_test_diagnostics_level_adc", 50, "i", True),
    HeaderField("pre_test_noise", 54, "d", True),
    HeaderField("post_test_zero_level_adc", 62, "i", True),
    HeaderField("post_test_diagnostics_level_adc", 66, "i", True),
    HeaderField("data_zero_level_adc", 70, "i", True),
    HeaderField("scale_factor_mv", 74, "d", True),
    HeaderField("scale_factor_eu", 82, "d", True),
]
"""Byte layout of the .chn header, offsets are from the start of the file"""
TRIGGER_COUNT_FIELD = next(x for x in HEADER_LAYOUT if x.name == "trigger_count")


def _field_end(field: HeaderField, trigger_count: int) -> int:
    shift = trigger_count * TRIGGER_BYTES if field.after_triggers else 0
    return field.offset + shift + struct.calcsize("<" + field.fmt)


def header_size(trigger_count: int) -> int:
    """
    Get the number of bytes needed to decode a header

    Parameters
    ----------
    trigger_count : int
        The number of triggers recorded in the header

    Returns
    -------
    int
        The header size in bytes
    """
    return max(_field_end(field, trigger_count) for field in HEADER_LAYOUT)


class ChannelHeader(BaseModel):
    """The decoded binary header of a single .chn file"""

    header_version: int
    sample_data_offset: int
    """Byte offset from the start of the file to the first sample"""
    sample_count: int
    """The number of samples recorded in the file"""
    bit_length: int
    is_signed: int
    sample_rate_hz: float
    trigger_count: int
    trigger_sample_number: int
    pre_test_zero_level_adc: int
    """ADC zero level measured before the test"""
    removed_adc: int
    pre_test_diagnostics_level_adc: int
    pre_test_noise: float
    post_test_zero_level_adc: int
    post_test_diagnostics_level_adc: int
    data_zero_level_adc: int
    """ADC zero level averaged over the recorded data"""
    scale_factor_mv: float
    """mV per ADC count"""
    scale_factor_eu: float
    """mV per engineering unit"""


def unpack_header(raw: bytes, path: Path) -> Dict[str, Any]:
    """
    Unpack header bytes into a dictionary of field values

    Parameters
    ----------
    raw : bytes
        The header bytes, starting at the beginning of the file
    path : Path
        The path the bytes were read from, used in error messages

    Returns
    -------
    Dict[str, Any]
        Header field name to value

    Raises
    ------
    ChannelHeaderError
        If the magic key does not match or there are too few bytes
    """
    magic_field = HEADER_LAYOUT[0]
    if len(raw) < _field_end(magic_field, 0):
        raise ChannelHeaderError(path, f"File too short ({len(raw)} bytes)")
    (magic,) = struct.unpack_from("<" + magic_field.fmt, raw, magic_field.offset)
    if magic != MAGIC_KEY:
        raise ChannelHeaderError(
            path, f"Not a valid DTS .chn file (magic key 0x{magic:08X})"
        )

    if len(raw) < _field_end(TRIGGER_COUNT_FIELD, 0):
        raise ChannelHeaderError(path, f"File too short ({len(raw)} bytes)")
    (trigger_count,) = struct.unpack_from(
        "<" + TRIGGER_COUNT_FIELD.fmt, raw, TRIGGER_COUNT_FIELD.offset
    )
    n_bytes = header_size(trigger_count)
    if len(raw) < n_bytes:
        raise ChannelHeaderError(
            path, f"File too short for header, {len(raw)} < {n_bytes} bytes"
        )

    values = {}
    shift = trigger_count * TRIGGER_BYTES
    for field in HEADER_LAYOUT[1:]:
        offset = field.offset + shift if field.after_triggers else field.offset
        (values[field.name],) = struct.unpack_from("<" + field.fmt, raw, offset)
    return values


def read_chn_header(path: Path) -> ChannelHeader:
    """
    Read the binary header of a .chn file

    Parameters
    ----------
    path : Path
        Path to the .chn file

    Returns
    -------
    ChannelHeader
        The decoded header

    Raises
    ------
    ChannelHeaderError
        If the file is not a valid .chn file
    """
    with path.open("rb") as f:
        raw = f.read(header_size(0))
        if len(raw) >= _field_end(TRIGGER_COUNT_FIELD, 0):
            (trigger_count,) = struct.unpack_from(
                "<" + TRIGGER_COUNT_FIELD.fmt, raw, TRIGGER_COUNT_FIELD.offset
            )
            f.seek(0)
            raw = f.read(header_size(trigger_count))
    header = ChannelHeader(**unpack_header(raw, path))
    logger.debug(
        f"{path.name}: {header.sample_count} samples at {header.sample_rate_hz} Hz,"
        f" data offset {header.sample_data_offset}"
    )
    return header
