"""
Fixed width number formatting for UFF records

UFF records are fixed width text. Floating point values are written in
scientific notation, right justified in their field, with a two digit exponent
unless the magnitude of the exponent is 100 or more, in which case three digits
are used. This is the C printf %e convention, which the legacy UFF writers use
and which Python's %-formatting follows.
"""
from typing import Iterator, Sequence

DATA_PRECISION = 11
"""Digits after the decimal point for data values"""
DATA_WIDTH = 20
"""Field width for data values"""
HEADER_PRECISION = 4
"""Digits after the decimal point for header values"""
HEADER_WIDTH = 13
"""Field width for header values"""


def format_scientific(value: float, precision: int, width: int) -> str:
    """
    Format a value in scientific notation in a fixed width field

    Parameters
    ----------
    value : float
        The value to format
    precision : int
        Number of digits after the decimal point, the mantissa has one more
        significant digit before the point
    width : int
        The field width, the value is padded on the left with spaces

    Returns
    -------
    str
        The formatted value, for example '   1.00000000000e+00' for 1.0 with a
        precision of 11 and a width of 20

    Examples
    --------
    >>> format_scientific(-1.5e-7, 4, 13)
    '  -1.5000e-07'
    >>> format_scientific(2.0e150, 4, 13)
    '  2.0000e+150'
    """
    return "%*.*e" % (width, precision, float(value))


def format_lines(
    values: Sequence[float],
    per_line: int,
    precision: int = DATA_PRECISION,
    width: int = DATA_WIDTH,
) -> Iterator[str]:
    """
    Format values as lines of fixed width fields

    Parameters
    ----------
    values : Sequence[float]
        The values
    per_line : int
        Number of values on each line, the last line may have fewer
    precision : int, optional
        Digits after the decimal point, by default DATA_PRECISION
    width : int, optional
        The field width, by default DATA_WIDTH

    Yields
    ------
    Iterator[str]
        One line of formatted values at a time, without a line ending
    """
    fmt = "%%%d.%de" % (width, precision)
    for start in range(0, len(values), per_line):
        chunk = values[start : start + per_line]
        yield "".join(fmt % float(x) for x in chunk)
