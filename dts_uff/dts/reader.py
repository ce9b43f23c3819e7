"""
Reader for DTS test folders

A DTS test folder has one .dts XML metadata file and one .chn binary file per
channel. The .chn files are matched to the metadata channels by position: the
metadata channels are sorted by their absolute display order and the .chn
files by natural order of their names (the file names are not zero padded,
so 'ch10.chn' has to come after 'ch9.chn').

All channels are read with the same number of samples, the minimum over all
the .chn files.
"""
from loguru import logger
from typing import TYPE_CHECKING, List, Optional, Union
from pathlib import Path
import re
import numpy as np
from pydantic import BaseModel

from dts_uff.errors import FormatError, MetadataReadError, TrackIndexError
from dts_uff.dts.header import ChannelHeader, read_chn_header
from dts_uff.dts.metadata import ChannelMetadata, read_dts_metadata
from dts_uff.dts.calibration import calibrate

if TYPE_CHECKING:
    from dts_uff.conversion import SampleSlice


SAMPLE_DTYPE = np.dtype("<i2")


def natural_key(name: str) -> List[Union[int, str]]:
    """
    Sort key comparing runs of digits by their numeric value

    Parameters
    ----------
    name : str
        The string to get a key for

    Returns
    -------
    List[Union[int, str]]
        Alternating text and integer parts, always starting with text

    Examples
    --------
    >>> sorted(["ch10.chn", "ch9.chn", "ch1.chn"], key=natural_key)
    ['ch1.chn', 'ch9.chn', 'ch10.chn']
    """
    parts = re.split(r"(\d+)", name)
    return [int(x) if idx % 2 else x for idx, x in enumerate(parts)]


class TrackMetadata(BaseModel):
    """Descriptive metadata for a track, available without reading samples"""

    name: str
    description: str
    sampling_rate: float
    sensitivity: Optional[float] = None
    serial_number: str
    unit: str


class ChannelRecord(BaseModel):
    """A metadata channel paired with its .chn file"""

    metadata: ChannelMetadata
    header: ChannelHeader
    file_path: Path
    channel_index: int


class ChannelData:
    """
    Calibrated samples of a single channel

    Parameters
    ----------
    time_series : np.ndarray
        The samples in engineering units, single precision
    sample_rate_hz : float
        The sampling rate in Hz
    unit : str
        The engineering unit
    """

    def __init__(self, time_series: np.ndarray, sample_rate_hz: float, unit: str):
        self.time_series = time_series
        self.sample_rate_hz = sample_rate_hz
        self.unit = unit

    @property
    def n_samples(self) -> int:
        return self.time_series.size

    def slice(self, sample_slice: "SampleSlice") -> "ChannelData":
        """
        Get a range of samples

        Parameters
        ----------
        sample_slice : SampleSlice
            The sample range, checked against the number of samples

        Returns
        -------
        ChannelData
            The samples in the range with the same sample rate and unit
        """
        sample_slice.check(self.n_samples)
        return ChannelData(
            time_series=self.time_series[sample_slice.start : sample_slice.end],
            sample_rate_hz=self.sample_rate_hz,
            unit=self.unit,
        )

    def __repr__(self) -> str:
        return (
            f"ChannelData(n_samples={self.n_samples},"
            f" sample_rate_hz={self.sample_rate_hz}, unit={self.unit!r})"
        )


class DtsReader:
    """
    Reader for a DTS test folder

    Creating the reader reads all the metadata and the .chn headers. Sample
    data is only read when asked for with read_track.

    Parameters
    ----------
    dir_path : Path
        The DTS test folder

    Raises
    ------
    MetadataReadError
        If there is not exactly one metadata file or the number of metadata
        channels does not match the number of .chn files
    ChannelHeaderError
        If any .chn header is invalid

    Examples
    --------
    .. code-block:: python

        reader = DtsReader(Path("test_folder"))
        for index in range(reader.channel_count()):
            data = reader.read_track(index)
    """

    metadata_extension: str = ".dts"
    """The extension of the XML metadata file"""
    data_extension: str = ".chn"
    """The extension of the binary channel files"""

    def __init__(
        self,
        dir_path: Path,
        metadata_extension: Optional[str] = None,
        data_extension: Optional[str] = None,
    ):
        if metadata_extension is not None:
            self.metadata_extension = metadata_extension
        if data_extension is not None:
            self.data_extension = data_extension
        self.dir_path = Path(dir_path)
        if not self.dir_path.is_dir():
            raise FileNotFoundError(f"DTS directory not found: {self.dir_path}")

        metadata_path = self._get_metadata_path()
        logger.info(f"Reading metadata from {metadata_path}")
        metadata_list = read_dts_metadata(metadata_path)
        data_paths = self._get_data_paths()
        if len(data_paths) != len(metadata_list):
            raise MetadataReadError(
                metadata_path,
                f"Mismatch between channel count in metadata ({len(metadata_list)})"
                f" and number of {self.data_extension} files ({len(data_paths)})",
            )

        self._records: List[ChannelRecord] = []
        for idx, (metadata, data_path) in enumerate(zip(metadata_list, data_paths)):
            header = read_chn_header(data_path)
            record = ChannelRecord(
                metadata=metadata, header=header, file_path=data_path, channel_index=idx
            )
            self._records.append(record)
        self.min_npts = min((x.header.sample_count for x in self._records), default=0)
        logger.info(
            f"Found {len(self._records)} channels, reading {self.min_npts} samples each"
        )

    def _files_with_extension(self, extension: str) -> List[Path]:
        """Get the files in the directory with an extension, case insensitive"""
        extension = extension.lower()
        return [
            x
            for x in self.dir_path.iterdir()
            if x.is_file() and x.suffix.lower() == extension
        ]

    def _get_metadata_path(self) -> Path:
        """Get the single metadata file"""
        metadata_paths = self._files_with_extension(self.metadata_extension)
        if len(metadata_paths) != 1:
            raise MetadataReadError(
                self.dir_path,
                f"Num {self.metadata_extension} files {len(metadata_paths)} != 1",
            )
        return metadata_paths[0]

    def _get_data_paths(self) -> List[Path]:
        """Get the channel files in natural order of their names"""
        data_paths = self._files_with_extension(self.data_extension)
        return sorted(data_paths, key=lambda x: natural_key(x.name))

    @property
    def records(self) -> List[ChannelRecord]:
        """The channel records in channel order"""
        return list(self._records)

    def channel_count(self) -> int:
        """Get the number of channels"""
        return len(self._records)

    def track_metadata(self) -> List[TrackMetadata]:
        """
        Get descriptive metadata for every track without reading any samples

        The name defaults to the description when the metadata has no name.

        Returns
        -------
        List[TrackMetadata]
            Track metadata in channel order
        """
        tracks = []
        for record in self._records:
            metadata = record.metadata
            name = metadata.name
            if name is None or name.strip() == "":
                name = metadata.description
            tracks.append(
                TrackMetadata(
                    name=name,
                    description=metadata.description,
                    sampling_rate=record.header.sample_rate_hz,
                    sensitivity=metadata.sensitivity,
                    serial_number=metadata.serial_number,
                    unit=metadata.unit,
                )
            )
        return tracks

    def read_adc(self, index: int) -> np.ndarray:
        """
        Read the raw ADC counts of a track

        Parameters
        ----------
        index : int
            The track index

        Returns
        -------
        np.ndarray
            min_npts signed 16 bit ADC counts

        Raises
        ------
        TrackIndexError
            If the index is out of bounds
        FormatError
            If the file is too short for the samples in its header
        """
        if index < 0 or index >= self.channel_count():
            raise TrackIndexError(index, self.channel_count())
        record = self._records[index]
        n_samples = self.min_npts
        if n_samples == 0:
            return np.empty(0, dtype=SAMPLE_DTYPE)
        byteoff = record.header.sample_data_offset
        n_bytes = byteoff + n_samples * SAMPLE_DTYPE.itemsize
        file_size = record.file_path.stat().st_size
        if file_size < n_bytes:
            raise FormatError(
                record.file_path,
                f"File has {file_size} bytes, {n_bytes} needed for {n_samples} samples",
            )
        logger.debug(f"Reading {n_samples} samples from {record.file_path.name}")
        adc = np.memmap(
            record.file_path,
            dtype=SAMPLE_DTYPE,
            mode="r",
            offset=byteoff,
            shape=(n_samples,),
        )
        return np.array(adc)

    def read_track(self, index: int) -> ChannelData:
        """
        Read a track and calibrate it to engineering units

        Parameters
        ----------
        index : int
            The track index

        Returns
        -------
        ChannelData
            The calibrated track data

        Raises
        ------
        TrackIndexError
            If the index is out of bounds
        """
        adc = self.read_adc(index)
        record = self._records[index]
        time_series = calibrate(adc, record.header, record.metadata)
        return ChannelData(
            time_series=time_series,
            sample_rate_hz=record.header.sample_rate_hz,
            unit=record.metadata.unit,
        )
