"""
Track names

Track names label the channels in the UFF output. They come from a plain text
file with names separated by commas or new lines, in channel order.
"""
from typing import List
from pathlib import Path
import re

from dts_uff.errors import ValidationError

TRACK_SEPARATORS = r"[,\r\n]"


def split_track_names(text: str) -> List[str]:
    """
    Split track name text on commas and line breaks

    Parameters
    ----------
    text : str
        The track name text

    Returns
    -------
    List[str]
        Stripped, non-empty names in order

    Examples
    --------
    >>> split_track_names("Acc X, Acc Y\\r\\n\\nAcc Z,")
    ['Acc X', 'Acc Y', 'Acc Z']
    """
    names = [x.strip() for x in re.split(TRACK_SEPARATORS, text)]
    return [x for x in names if x != ""]


def read_track_names(path: Path, require_entries: bool = False) -> List[str]:
    """
    Read track names from a file

    Parameters
    ----------
    path : Path
        The track name file
    require_entries : bool, optional
        Raise if the file has no names, by default False

    Returns
    -------
    List[str]
        The track names in order

    Raises
    ------
    ValidationError
        If require_entries and the file has no usable names
    """
    names = split_track_names(Path(path).read_text(encoding="utf-8-sig"))
    if require_entries and len(names) == 0:
        raise ValidationError(
            "Track name file did not contain any usable entries", str(path)
        )
    return names


def parse_track_selection(value: str) -> List[str]:
    """
    Parse a comma separated list of requested track names

    Parameters
    ----------
    value : str
        The comma separated names

    Returns
    -------
    List[str]
        The requested names in order

    Raises
    ------
    ValidationError
        If no names are given
    """
    names = [x.strip() for x in value.split(",")]
    names = [x for x in names if x != ""]
    if len(names) == 0:
        raise ValidationError("At least one track name must be provided", value)
    return names
