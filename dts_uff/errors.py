"""
Errors raised while reading DTS data and writing UFF files

Errors for bad input files carry the path of the offending file and errors for
bad user input carry the offending value, both are included in the message.
"""
from typing import Any, Optional
from pathlib import Path


class DtsUffError(Exception):
    """Base class for all errors raised by dts_uff"""


class FormatError(DtsUffError):
    """Use when a DTS file does not have the expected format"""

    def __init__(self, path: Path, message: Optional[str] = None):
        self.path = path
        self.message = message

    def __str__(self) -> str:
        outstr = f"Failed to read DTS data from {self.path}."
        if self.message is not None:
            outstr += f" {self.message}."
        return outstr


class ChannelHeaderError(FormatError):
    """Use when the binary header of a .chn file cannot be decoded"""

    def __str__(self) -> str:
        outstr = f"Failed to read channel header from {self.path}."
        if self.message is not None:
            outstr += f" {self.message}."
        return outstr


class MetadataReadError(FormatError):
    """Use when the XML metadata cannot be read or does not match the data"""

    def __str__(self) -> str:
        outstr = f"Failed to read metadata from {self.path}."
        if self.message is not None:
            outstr += f" {self.message}."
        return outstr


class ValidationError(DtsUffError):
    """Use when a user supplied value is invalid"""

    def __init__(self, message: str, value: Any = None):
        self.message = message
        self.value = value

    def __str__(self) -> str:
        if self.value is None:
            return self.message
        return f"{self.message} (got {self.value!r})"


class TrackIndexError(DtsUffError, IndexError):
    """Use when a track index is beyond the number of channels"""

    def __init__(self, index: int, n_chans: int):
        self.index = index
        self.n_chans = n_chans

    def __str__(self) -> str:
        return f"Track index {self.index} is out of bounds for {self.n_chans} channels"


class ConcurrencyError(DtsUffError):
    """Use when a background task could not be run, as opposed to failing"""

    def __init__(self, message: str):
        self.message = message

    def __str__(self) -> str:
        return f"Background task failed: {self.message}"
