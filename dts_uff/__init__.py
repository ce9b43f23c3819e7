"""
A package for converting DTS vibration and shock recordings into Universal
File Format (UFF) Dataset Type 58 files.

A DTS export is a directory with one XML metadata file (.dts) and one binary
sample file (.chn) per recorded channel. The package treats the conversion in
three parts:

- Reading DTS data, which means decoding the binary channel headers, resolving
  the channel metadata from the XML and applying calibration to give samples
  in engineering units
- Writing calibrated channels as UFF Type 58 datasets, either ASCII or the
  binary 58b variant
- Orchestrating the conversion of a whole directory, with optional track
  filtering and sample slicing, into a single UFF file
"""
from importlib.metadata import version, PackageNotFoundError

__name__ = "dts_uff"
try:
    __version__ = version("dts-uff")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "unknown"
