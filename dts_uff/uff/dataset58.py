"""
Writing UFF Dataset Type 58 (function at nodal DOF)

Each call writes one dataset block for one channel, so a UFF file with many
channels is built by writing the blocks one after the other into the same
stream.

A block is made of 80 column text records:

- The separator '    -1' and the dataset type
- Five ID records, the second one is 'Pt=<track name>;'
- Record 6, DOF identification with the track name as response entity
- Record 7, data form: ordinate data type, number of points, even spacing,
  abscissa start, abscissa increment and z axis value
- Records 8 to 11, data characteristics of the abscissa (time in s), the
  ordinate (the track name and unit), the ordinate denominator and the z axis
- The data
- The separator '    -1'

For ASCII datasets the data are double precision values, four per line in 20
character fields. For binary 58b datasets the type record also gives the byte
order, floating point format, number of ASCII header lines and the number of
data bytes, and the data are raw single precision values.
"""
from loguru import logger
from typing import BinaryIO, List
from enum import Enum
from pathlib import Path
import math
import numpy as np

from dts_uff.dts.reader import ChannelData
from dts_uff.uff.formatting import format_scientific, format_lines
from dts_uff.uff.formatting import HEADER_PRECISION, HEADER_WIDTH
from dts_uff.uff.formatting import DATA_PRECISION, DATA_WIDTH

RECORD_WIDTH = 80
SEPARATOR = -1
DATASET_TYPE = 58
LINE_ENDING = "\n"
TEXT_ENCODING = "latin-1"
VALUES_PER_LINE = 4
LABEL_LENGTH = 19
"""Track names are truncated to this length in records 6 and 9"""
ID_LABEL_LENGTH = 64
"""Track names are truncated to this length in ID record 2"""
UNIT_LENGTH = 33
NONE_LABEL = "NONE"
# record 6
FUNCTION_TYPE_TIME_RESPONSE = 1
REFERENCE_NODE = 1
# record 7
ORD_DATA_TYPE_REAL_SINGLE = 2
ORD_DATA_TYPE_REAL_DOUBLE = 4
EVEN_SPACING = 1
# records 8 and 9
ABSCISSA_DATA_TIME = 17
ORDINATE_DATA_GENERAL = 8
ABSCISSA_LABEL = "Time"
ABSCISSA_UNIT = "s"
# 58b type record
FLOAT_FORMAT_IEEE = 2
ASCII_HEADER_LINES = 11
BINARY_ITEM_SIZE = np.dtype(np.float32).itemsize


class Uff58Format(Enum):
    """The type 58 variant to write"""

    ASCII = "ascii"
    BINARY = "binary"


class ByteOrder(Enum):
    """Byte order codes used in 58b type records"""

    LITTLE = 1
    BIG = 2

    @property
    def dtype(self) -> np.dtype:
        """The single precision dtype with this byte order"""
        return np.dtype("<f4") if self == ByteOrder.LITTLE else np.dtype(">f4")


def _record(text: str) -> bytes:
    """Pad a record to the record width and add the line ending"""
    return f"{text:<{RECORD_WIDTH}}{LINE_ENDING}".encode(
        TEXT_ENCODING, errors="replace"
    )


def _characteristics(data_type: int, label: str, unit: str) -> str:
    """Records 8 to 11, the exponents for length, force and temperature are 0"""
    return f"{data_type:10d}{0:5d}{0:5d}{0:5d} {label:<20s} {unit:<20s}"


def _increment(sample_rate: float) -> float:
    """The abscissa increment, the sampling period"""
    if sample_rate == 0:
        return math.inf
    return 1.0 / sample_rate


def header_records(
    data: ChannelData, track_name: str, ord_data_type: int
) -> List[bytes]:
    """
    Get the ID records and records 6 to 11 of a dataset

    Parameters
    ----------
    data : ChannelData
        The channel data
    track_name : str
        The track name used to label the dataset
    ord_data_type : int
        The ordinate data type code for record 7

    Returns
    -------
    List[bytes]
        The encoded records, each with a line ending
    """
    label = track_name[:LABEL_LENGTH]
    unit = data.unit[:UNIT_LENGTH]
    record6 = (
        f"{FUNCTION_TYPE_TIME_RESPONSE:5d}{0:10d}{0:5d}{0:10d}"
        f" {label:<10s}{0:10d}{0:4d}"
        f" {NONE_LABEL:<10s}{REFERENCE_NODE:10d}{0:4d}"
    )
    record7 = f"{ord_data_type:10d}{data.n_samples:10d}{EVEN_SPACING:10d}"
    record7 += format_scientific(0.0, HEADER_PRECISION, HEADER_WIDTH)
    record7 += format_scientific(
        _increment(data.sample_rate_hz), HEADER_PRECISION, HEADER_WIDTH
    )
    record7 += format_scientific(0.0, HEADER_PRECISION, HEADER_WIDTH)
    records = [
        "",
        f"Pt={track_name[:ID_LABEL_LENGTH]};",
        "",
        NONE_LABEL,
        NONE_LABEL,
        record6,
        record7,
        _characteristics(ABSCISSA_DATA_TIME, ABSCISSA_LABEL, ABSCISSA_UNIT),
        _characteristics(ORDINATE_DATA_GENERAL, label, unit),
        _characteristics(0, NONE_LABEL, NONE_LABEL),
        _characteristics(0, NONE_LABEL, NONE_LABEL),
    ]
    return [_record(x) for x in records]


def write_uff58_ascii(stream: BinaryIO, data: ChannelData, track_name: str) -> None:
    """
    Write a channel as an ASCII type 58 dataset

    Parameters
    ----------
    stream : BinaryIO
        The output stream, opened in binary mode
    data : ChannelData
        The channel data
    track_name : str
        The track name used to label the dataset
    """
    stream.write(_record(f"{SEPARATOR:6d}"))
    stream.write(_record(f"{DATASET_TYPE:6d}"))
    for record in header_records(data, track_name, ORD_DATA_TYPE_REAL_DOUBLE):
        stream.write(record)
    values = data.time_series.astype(np.float64)
    for line in format_lines(values, VALUES_PER_LINE, DATA_PRECISION, DATA_WIDTH):
        stream.write(_record(line))
    stream.write(_record(f"{SEPARATOR:6d}"))


def write_uff58b(
    stream: BinaryIO,
    data: ChannelData,
    track_name: str,
    byte_order: ByteOrder = ByteOrder.LITTLE,
) -> None:
    """
    Write a channel as a binary 58b dataset

    Parameters
    ----------
    stream : BinaryIO
        The output stream, opened in binary mode
    data : ChannelData
        The channel data
    track_name : str
        The track name used to label the dataset
    byte_order : ByteOrder, optional
        The byte order of the data, by default ByteOrder.LITTLE
    """
    n_bytes = BINARY_ITEM_SIZE * data.n_samples
    type_record = (
        f"{DATASET_TYPE:6d}b{byte_order.value:6d}{FLOAT_FORMAT_IEEE:6d}"
        f"{ASCII_HEADER_LINES:12d}{n_bytes:12d}{0:6d}{0:6d}{0:12d}{0:12d}"
    )
    stream.write(_record(f"{SEPARATOR:6d}"))
    stream.write(_record(type_record))
    for record in header_records(data, track_name, ORD_DATA_TYPE_REAL_SINGLE):
        stream.write(record)
    stream.write(data.time_series.astype(byte_order.dtype).tobytes())
    stream.write(LINE_ENDING.encode(TEXT_ENCODING))
    stream.write(_record(f"{SEPARATOR:6d}"))


def write_uff58(
    stream: BinaryIO,
    data: ChannelData,
    track_name: str,
    uff_format: Uff58Format = Uff58Format.ASCII,
    byte_order: ByteOrder = ByteOrder.LITTLE,
) -> None:
    """
    Write a channel as a type 58 dataset in either format

    Parameters
    ----------
    stream : BinaryIO
        The output stream, opened in binary mode
    data : ChannelData
        The channel data
    track_name : str
        The track name used to label the dataset
    uff_format : Uff58Format, optional
        ASCII or binary, by default Uff58Format.ASCII
    byte_order : ByteOrder, optional
        Byte order for binary datasets, by default ByteOrder.LITTLE
    """
    if uff_format == Uff58Format.ASCII:
        write_uff58_ascii(stream, data, track_name)
    elif uff_format == Uff58Format.BINARY:
        write_uff58b(stream, data, track_name, byte_order)
    else:
        raise ValueError(f"Unknown UFF format {uff_format}")


def write_uff58_file(
    path: Path,
    data: ChannelData,
    track_name: str,
    append: bool = False,
    uff_format: Uff58Format = Uff58Format.ASCII,
    byte_order: ByteOrder = ByteOrder.LITTLE,
) -> None:
    """
    Write a channel as a type 58 dataset to a file

    Parameters
    ----------
    path : Path
        The UFF file path
    data : ChannelData
        The channel data
    track_name : str
        The track name used to label the dataset
    append : bool, optional
        Add the dataset to the end of an existing file rather than replace
        the file, by default False
    uff_format : Uff58Format, optional
        ASCII or binary, by default Uff58Format.ASCII
    byte_order : ByteOrder, optional
        Byte order for binary datasets, by default ByteOrder.LITTLE
    """
    mode = "ab" if append else "wb"
    with Path(path).open(mode) as f:
        write_uff58(f, data, track_name, uff_format, byte_order)
    logger.debug(f"Wrote {uff_format.value} dataset for {track_name} to {path}")
