"""
Listing the tracks of a DTS test folder

The listing gives the descriptive metadata of every track without reading any
samples. It is useful for checking a track name file against a recording
before running a conversion.
"""
from loguru import logger
from typing import Any, Dict, List, Optional, Union
from pathlib import Path
import math
import pandas as pd
from pydantic import BaseModel

from dts_uff.tracks import read_track_names
from dts_uff.dts.reader import DtsReader

DEFAULT_UNIT = "g"


class ListedTrack(BaseModel):
    """Descriptive metadata of one track in a listing"""

    channel: int
    """The channel number, starting at 1"""
    name: str
    description: str
    sampling_rate_hz: int
    """The sampling rate rounded to a whole number of Hz"""
    sensitivity: Optional[float] = None
    """The sensitivity in mV/EU, None if not known"""
    serial: Optional[str] = None
    unit: str
    extras: Dict[str, Any] = {}
    """Annotations about values that were defaulted or are missing"""


class TrackListing(BaseModel):
    """The tracks of a DTS test folder"""

    source: str
    count: int
    tracks: List[ListedTrack]
    warnings: List[str]

    def to_dataframe(self) -> pd.DataFrame:
        """
        Get the tracks as a DataFrame, one row per track

        Returns
        -------
        pd.DataFrame
            DataFrame with the track fields as columns, without extras
        """
        columns = [x for x in ListedTrack.model_fields if x != "extras"]
        data = [track.model_dump(include=set(columns)) for track in self.tracks]
        return pd.DataFrame(data=data, columns=columns)

    def to_text(self) -> str:
        """Get the listing as a table followed by any warnings"""
        plural = "" if self.count == 1 else "s"
        lines = [f"Track metadata for '{self.source}', {self.count} track{plural}"]
        if self.count > 0:
            lines.append(self.to_dataframe().to_string(index=False))
        if self.warnings:
            lines.append("Warnings:")
            lines.extend(f"- {x}" for x in self.warnings)
        return "\n".join(lines)


def _round_rate(sampling_rate: float) -> int:
    """Round the sampling rate, rates that are not finite become 0"""
    if not math.isfinite(sampling_rate):
        return 0
    return round(sampling_rate)


def _count_message(count: int, message: str) -> str:
    plural = "" if count == 1 else "s"
    return f"{count} track{plural} {message}"


def list_tracks(
    input_dir: Union[str, Path], tracks_path: Optional[Union[str, Path]] = None
) -> TrackListing:
    """
    List the tracks of a DTS test folder

    Track names are taken from the track name file when one is given and has
    an entry for the channel, otherwise from the metadata name, otherwise
    'Track n' is used.

    Parameters
    ----------
    input_dir : Union[str, Path]
        The DTS test folder
    tracks_path : Optional[Union[str, Path]], optional
        A track name file, by default None

    Returns
    -------
    TrackListing
        The listing with sorted, de-duplicated warnings

    Raises
    ------
    ValidationError
        If the track name file has no usable entries
    """
    reader = DtsReader(Path(input_dir))
    track_metadata = reader.track_metadata()
    track_names = None
    if tracks_path is not None:
        track_names = read_track_names(Path(tracks_path), require_entries=True)

    warnings = []
    if track_names is not None and len(track_names) != len(track_metadata):
        warnings.append(
            f"Track name count ({len(track_names)}) differs from metadata"
            f" entries ({len(track_metadata)})"
        )

    tracks = []
    missing_descriptions = 0
    missing_units = 0
    other_units: Dict[str, int] = {}
    for idx, metadata in enumerate(track_metadata):
        if track_names is not None and idx < len(track_names):
            name = track_names[idx]
        elif metadata.name.strip() != "":
            name = metadata.name.strip()
        else:
            name = f"Track {idx + 1}"

        description = metadata.description.strip()
        if description == "":
            missing_descriptions += 1
        unit = metadata.unit.strip()
        unit_defaulted = unit == ""
        extras: Dict[str, Any] = {
            "unit_defaulted": unit_defaulted,
            "description_present": description != "",
        }
        if unit_defaulted:
            missing_units += 1
            unit = DEFAULT_UNIT
        elif unit.lower() == DEFAULT_UNIT:
            unit = DEFAULT_UNIT
        else:
            other_units[unit] = other_units.get(unit, 0) + 1
            extras["raw_unit"] = unit
        sensitivity = metadata.sensitivity
        if sensitivity is not None and not math.isfinite(sensitivity):
            sensitivity = None
        serial = metadata.serial_number.strip()

        tracks.append(
            ListedTrack(
                channel=idx + 1,
                name=name,
                description=description,
                sampling_rate_hz=_round_rate(metadata.sampling_rate),
                sensitivity=sensitivity,
                serial=serial if serial != "" else None,
                unit=unit,
                extras=extras,
            )
        )

    if missing_descriptions > 0:
        warnings.append(_count_message(missing_descriptions, "missing descriptions"))
    if missing_units > 0:
        message = f"missing units, defaulted to '{DEFAULT_UNIT}'"
        warnings.append(_count_message(missing_units, message))
    if len(other_units) > 0:
        details = ", ".join(f"{unit} ({n})" for unit, n in sorted(other_units.items()))
        message = f"used units other than '{DEFAULT_UNIT}': {details}"
        warnings.append(_count_message(sum(other_units.values()), message))
    for warning in warnings:
        logger.warning(warning)
    return TrackListing(
        source=str(input_dir),
        count=len(tracks),
        tracks=tracks,
        warnings=sorted(set(warnings)),
    )
