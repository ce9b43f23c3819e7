"""
Conversion of a DTS test folder to a single UFF Type 58 file

The conversion runs through the following steps:

- Read the track names, which label the channels in channel order
- Build a channel plan, either all channels in channel order or the
  requested tracks in the requested order
- Extract the planned channels in parallel, reading and calibrating each one
  and applying the optional sample slice
- Write the channels to the output file one after the other, strictly in plan
  order
- Return a report with the warnings collected on the way

Problems with track names (a count that does not match the channels, a
requested track that does not exist) are warnings. Everything else is an error
and stops the conversion. The output file is only put in place once every
channel has been written, so a failed conversion does not leave a partial
file behind.
"""
from loguru import logger
from typing import Callable, Deque, Iterator, List, Optional, Sequence, Tuple, Union
from concurrent.futures import BrokenExecutor, Future, ThreadPoolExecutor
from collections import deque
from enum import Enum
from pathlib import Path
import asyncio
import functools
import os
import stat
import tempfile
from pydantic import BaseModel

from dts_uff.errors import ConcurrencyError, ValidationError
from dts_uff.config import ConversionConfig
from dts_uff.tracks import read_track_names
from dts_uff.dts.reader import ChannelData, DtsReader
from dts_uff.uff.dataset58 import Uff58Format, write_uff58

PathLike = Union[str, Path]


class OutputFormat(Enum):
    """Output format of the UFF file"""

    ASCII = "ascii"
    BINARY = "binary"

    @classmethod
    def from_str(cls, value: str) -> "OutputFormat":
        """
        Get the output format from a string, ignoring case

        Raises
        ------
        ValidationError
            If the value is not ascii or binary
        """
        normalised = value.strip().lower()
        for output_format in cls:
            if output_format.value == normalised:
                return output_format
        raise ValidationError(
            "Unsupported output format, expected 'ascii' or 'binary'", value
        )

    @property
    def uff_format(self) -> Uff58Format:
        if self == OutputFormat.ASCII:
            return Uff58Format.ASCII
        return Uff58Format.BINARY


class SampleSlice(BaseModel):
    """A zero based sample range, start inclusive and end exclusive"""

    start: int
    end: int

    @classmethod
    def from_str(cls, value: str) -> "SampleSlice":
        """
        Parse a slice written as start:end

        Both bounds are required non-negative integers and steps are not
        supported.

        Raises
        ------
        ValidationError
            If the slice is malformed or start >= end
        """
        parts = value.strip().split(":")
        if len(parts) != 2:
            raise ValidationError("Sample slice must be written as start:end", value)
        bounds = [x.strip() for x in parts]
        if not all(x.isdecimal() for x in bounds):
            raise ValidationError(
                "Sample slice bounds must be non-negative integers", value
            )
        sample_slice = cls(start=int(bounds[0]), end=int(bounds[1]))
        if sample_slice.start >= sample_slice.end:
            raise ValidationError("Sample slice start must be less than end", value)
        return sample_slice

    def __str__(self) -> str:
        return f"{self.start}:{self.end}"

    def check(self, n_samples: int) -> None:
        """
        Check the slice can be taken from a number of samples

        Raises
        ------
        ValidationError
            If start >= end or end is beyond the number of samples
        """
        if self.start < 0 or self.start >= self.end:
            raise ValidationError("Sample slice start must be less than end", str(self))
        if self.end > n_samples:
            raise ValidationError(
                f"Sample slice end is beyond the {n_samples} available samples",
                str(self),
            )


class ConversionReport(BaseModel):
    """Summary of a completed conversion"""

    channel_count: int
    """Number of channels written"""
    track_name_count: int
    """Number of track names read from the track name file"""
    processed_track_names: List[str]
    """Names of the written tracks, in output order"""
    warnings: List[str]
    """Sorted, de-duplicated warnings"""

    def to_text(self, preview: int = 5) -> str:
        """Get a human readable summary"""
        lines = [
            f"Channels written: {self.channel_count}",
            f"Track names provided: {self.track_name_count}",
        ]
        if self.warnings:
            lines.append("Warnings:")
            lines.extend(f"- {x}" for x in self.warnings)
        if self.processed_track_names:
            lines.append("Track preview:")
            for idx, name in enumerate(self.processed_track_names[:preview]):
                lines.append(f"{idx + 1}. {name}")
            remaining = len(self.processed_track_names) - preview
            if remaining > 0:
                lines.append(f"... and {remaining} more track(s)")
        return "\n".join(lines)


class ProgressStage(Enum):
    STARTED = "started"
    ADVANCED = "advanced"
    FINISHED = "finished"


class ConversionProgress(BaseModel):
    """A progress update sent to an optional callback"""

    stage: ProgressStage
    completed: int
    total: int
    track_name: Optional[str] = None


ProgressCallback = Callable[[ConversionProgress], None]


class PlannedTrack(BaseModel):
    """A channel to write, order is its position in the output"""

    order: int
    channel_index: int
    label: str


def default_track_label(index: int) -> str:
    """Label for a channel without a track name"""
    return f"Channel_{index + 1}"


def build_channel_plan(
    track_names: Sequence[str],
    channel_count: int,
    track_filter: Optional[Sequence[str]] = None,
) -> Tuple[List[PlannedTrack], List[str]]:
    """
    Decide which channels to write and in which order

    Without a filter all channels are written in channel order. With a filter,
    each requested name takes the first track name equal to it that has not
    already been taken, and the channel at the position of that track name is
    written. Channels are written in the order they were requested.

    Parameters
    ----------
    track_names : Sequence[str]
        Track names in channel order
    channel_count : int
        Number of channels in the recording
    track_filter : Optional[Sequence[str]], optional
        Requested track names, by default None

    Returns
    -------
    Tuple[List[PlannedTrack], List[str]]
        The plan and any warnings

    Raises
    ------
    ValidationError
        If a filter is given but no requested track could be found
    """
    if track_filter is None:
        plan = []
        for idx in range(channel_count):
            if idx < len(track_names):
                label = track_names[idx]
            else:
                label = default_track_label(idx)
            plan.append(PlannedTrack(order=idx, channel_index=idx, label=label))
        return plan, []

    if len(track_filter) == 0:
        raise ValidationError("At least one track name must be provided", "")
    plan = []
    warnings = []
    used = [False] * len(track_names)
    for name in track_filter:
        matches = (
            idx for idx, x in enumerate(track_names) if x == name and not used[idx]
        )
        idx = next(matches, None)
        if idx is None:
            warnings.append(f"Requested track '{name}' was not found in track names")
            continue
        used[idx] = True
        if idx >= channel_count:
            warnings.append(
                f"Requested track '{name}' is track {idx + 1} but there are only"
                f" {channel_count} channels"
            )
            continue
        plan.append(PlannedTrack(order=len(plan), channel_index=idx, label=name))
    if len(plan) == 0:
        raise ValidationError(
            "None of the requested tracks were found", ", ".join(track_filter)
        )
    return plan, warnings


def extract_track(
    reader: DtsReader, planned: PlannedTrack, sample_slice: Optional[SampleSlice]
) -> Tuple[PlannedTrack, ChannelData]:
    """
    Read, calibrate and optionally slice one planned channel

    Parameters
    ----------
    reader : DtsReader
        The reader for the test folder
    planned : PlannedTrack
        The planned channel
    sample_slice : Optional[SampleSlice]
        The sample range to keep, None for all samples

    Returns
    -------
    Tuple[PlannedTrack, ChannelData]
        The planned channel and its data
    """
    data = reader.read_track(planned.channel_index)
    if sample_slice is not None:
        data = data.slice(sample_slice)
    return planned, data


def _submit(
    executor: ThreadPoolExecutor,
    reader: DtsReader,
    planned: PlannedTrack,
    sample_slice: Optional[SampleSlice],
) -> Future:
    try:
        return executor.submit(extract_track, reader, planned, sample_slice)
    except RuntimeError as e:
        raise ConcurrencyError(f"Unable to schedule channel extraction: {e}")


def iter_extracted(
    reader: DtsReader,
    plan: Sequence[PlannedTrack],
    sample_slice: Optional[SampleSlice],
    config: ConversionConfig,
) -> Iterator[Tuple[PlannedTrack, ChannelData]]:
    """
    Extract planned channels in parallel, yielding them in plan order

    At most queue_size channels are in flight. Channels are submitted in plan
    order and yielded in the same order, a channel finishing early waits in
    its future until all the channels before it have been yielded.

    Parameters
    ----------
    reader : DtsReader
        The reader for the test folder
    plan : Sequence[PlannedTrack]
        The planned channels, in output order
    sample_slice : Optional[SampleSlice]
        The sample range to keep, None for all samples
    config : ConversionConfig
        The conversion configuration

    Yields
    ------
    Iterator[Tuple[PlannedTrack, ChannelData]]
        Planned channels with their data, in plan order

    Raises
    ------
    ConcurrencyError
        If the thread pool fails to run an extraction
    """
    queue_size = config.get_queue_size()
    logger.debug(f"Extracting with {config.max_workers} workers, queue {queue_size}")
    with ThreadPoolExecutor(
        max_workers=config.max_workers, thread_name_prefix="dts-extract"
    ) as executor:
        plan_iter = iter(plan)
        pending: Deque[Future] = deque()
        try:
            while True:
                while len(pending) < queue_size:
                    planned = next(plan_iter, None)
                    if planned is None:
                        break
                    pending.append(_submit(executor, reader, planned, sample_slice))
                if len(pending) == 0:
                    break
                try:
                    yield pending.popleft().result()
                except BrokenExecutor as e:
                    raise ConcurrencyError(str(e))
        finally:
            for future in pending:
                future.cancel()


def _require_path(value: PathLike, name: str) -> Path:
    if str(value).strip() == "":
        raise ValidationError(f"{name} cannot be empty", str(value))
    return Path(value)


def _notify(progress: Optional[ProgressCallback], update: ConversionProgress) -> None:
    if progress is not None:
        progress(update)


def _output_mode(output_path: Path) -> int:
    """Get the permissions of an existing output, else those of a new file"""
    if output_path.exists():
        return stat.S_IMODE(output_path.stat().st_mode)
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def _write_output(
    output_path: Path,
    extracted: Iterator[Tuple[PlannedTrack, ChannelData]],
    uff_format: Uff58Format,
    config: ConversionConfig,
    total: int,
    progress: Optional[ProgressCallback],
) -> List[str]:
    """
    Write extracted channels to a temporary file then move it to output_path

    Returns the written track names in order
    """
    handle, tmp_name = tempfile.mkstemp(
        prefix=f".{output_path.name}.", suffix=".tmp", dir=output_path.parent
    )
    tmp_path = Path(tmp_name)
    mode = _output_mode(output_path)
    processed = []
    try:
        with os.fdopen(handle, "wb") as f:
            for planned, data in extracted:
                logger.debug(f"Writing {planned.label} ({data.n_samples} samples)")
                write_uff58(f, data, planned.label, uff_format, config.byte_order)
                processed.append(planned.label)
                update = ConversionProgress(
                    stage=ProgressStage.ADVANCED,
                    completed=len(processed),
                    total=total,
                    track_name=planned.label,
                )
                _notify(progress, update)
        # mkstemp creates the file readable by the owner only
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, output_path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    return processed


def convert(
    input_dir: PathLike,
    tracks_path: PathLike,
    output_path: PathLike,
    output_format: OutputFormat = OutputFormat.ASCII,
    sample_slice: Optional[SampleSlice] = None,
    track_filter: Optional[Sequence[str]] = None,
    config: Optional[ConversionConfig] = None,
    progress: Optional[ProgressCallback] = None,
) -> ConversionReport:
    """
    Convert a DTS test folder to a UFF Type 58 file

    Parameters
    ----------
    input_dir : PathLike
        The DTS test folder
    tracks_path : PathLike
        The track name file
    output_path : PathLike
        The UFF file to write, replaced if it exists
    output_format : OutputFormat, optional
        ASCII or binary, by default OutputFormat.ASCII
    sample_slice : Optional[SampleSlice], optional
        Sample range to write for every channel, by default None for all
    track_filter : Optional[Sequence[str]], optional
        Track names to write, in output order, by default None for all
    config : Optional[ConversionConfig], optional
        Conversion configuration, by default None for the defaults
    progress : Optional[ProgressCallback], optional
        Called with progress updates, by default None

    Returns
    -------
    ConversionReport
        Summary of the conversion

    Raises
    ------
    ValidationError
        For invalid paths, slices or track filters
    FormatError
        If the DTS files are not valid
    """
    input_dir = _require_path(input_dir, "Input directory")
    tracks_path = _require_path(tracks_path, "Track names file")
    output_path = _require_path(output_path, "Output path")
    if config is None:
        config = ConversionConfig()

    track_names = read_track_names(tracks_path)
    logger.info(f"Found {len(track_names)} track names in {tracks_path}")
    reader = DtsReader(input_dir, config.metadata_extension, config.data_extension)
    n_chans = reader.channel_count()

    warnings = []
    if len(track_names) != n_chans:
        warnings.append(
            f"Number of track names ({len(track_names)}) does not match"
            f" number of channels ({n_chans})"
        )
    plan, plan_warnings = build_channel_plan(track_names, n_chans, track_filter)
    warnings.extend(plan_warnings)
    for warning in warnings:
        logger.warning(warning)
    if sample_slice is not None:
        sample_slice.check(reader.min_npts)

    _notify(
        progress,
        ConversionProgress(stage=ProgressStage.STARTED, completed=0, total=len(plan)),
    )
    extracted = iter_extracted(reader, plan, sample_slice, config)
    try:
        processed = _write_output(
            output_path, extracted, output_format.uff_format, config, len(plan), progress
        )
    except Exception as e:
        logger.error(f"Conversion of {input_dir} failed: {e}")
        raise
    finally:
        extracted.close()
    _notify(
        progress,
        ConversionProgress(
            stage=ProgressStage.FINISHED, completed=len(processed), total=len(plan)
        ),
    )
    logger.info(f"Wrote {len(processed)} {output_format.value} datasets to {output_path}")
    return ConversionReport(
        channel_count=len(processed),
        track_name_count=len(track_names),
        processed_track_names=processed,
        warnings=sorted(set(warnings)),
    )


async def convert_async(*args, **kwargs) -> ConversionReport:
    """
    Run convert in a worker thread so the event loop is not blocked

    Takes the same arguments as convert. Errors from the conversion are raised
    unchanged.

    Raises
    ------
    ConcurrencyError
        If the conversion could not be started in a worker thread
    """
    loop = asyncio.get_running_loop()
    try:
        future = loop.run_in_executor(None, functools.partial(convert, *args, **kwargs))
    except RuntimeError as e:
        raise ConcurrencyError(f"Unable to start conversion: {e}")
    return await future
