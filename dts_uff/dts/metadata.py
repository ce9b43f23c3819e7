"""
Reading channel metadata from the DTS XML file

The .dts file is an XML document describing the recording. Channels are
AnalogInputChanel elements (the spelling is that of the DTS software) nested
inside Module elements, which may themselves be nested. The channel attributes
needed for calibration and identification are read here and the nesting is
flattened into a single list.

The order of the channels in the document is not the order of the .chn files.
The authoritative order is given by the AbsoluteDisplayOrder attribute, which
spans all modules.

Some DTS exports have two XML documents concatenated in one file. Only the
content before the second XML declaration is parsed.
"""
from loguru import logger
from typing import List, Optional, Tuple
from enum import Enum
from pathlib import Path
from xml.etree.ElementTree import Element  # noqa: S405
import codecs
import math
import re
import defusedxml.ElementTree as ET
from defusedxml import DefusedXmlException
from pydantic import BaseModel

from dts_uff.errors import MetadataReadError

MODULE_TAG = "Module"
CHANNEL_TAGS = ("AnalogInputChanel", "AnalogInputChannel")
XML_DECLARATION = "<?xml"
BOMS: List[Tuple[bytes, str]] = [
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
]
UINT32_MAX = 0xFFFFFFFF


class ZeroMethod(Enum):
    """The reference ADC level used to compute the calibration offset"""

    USE_PRE_CAL_ZERO = "UsePreCalZero"
    AVERAGE_OVER_TIME = "AverageOverTime"
    NONE = "None"

    @classmethod
    def from_attribute(cls, value: Optional[str]) -> "ZeroMethod":
        """Any value other than the two known methods means no zeroing"""
        if value == cls.USE_PRE_CAL_ZERO.value:
            return cls.USE_PRE_CAL_ZERO
        if value == cls.AVERAGE_OVER_TIME.value:
            return cls.AVERAGE_OVER_TIME
        return cls.NONE


class ChannelMetadata(BaseModel):
    """Calibration and identity attributes of a single channel"""

    proportional_to_excitation: bool = False
    is_inverted: bool = False
    measured_excitation_voltage: Optional[float] = None
    """Measured excitation, None if absent"""
    factory_excitation_voltage: Optional[float] = None
    """Factory excitation, None if absent"""
    initial_eu: float = 0.0
    zero_method: ZeroMethod = ZeroMethod.NONE
    unit: str = ""
    description: str = ""
    serial_number: str = ""
    name: Optional[str] = None
    sensitivity: Optional[float] = None
    """Sensitivity in mV/EU"""
    display_order: int = 0
    """Absolute display order across all modules"""
    module_start_sample: float = 0.0
    """StartRecordSampleNumber of the enclosing module"""
    time_of_first_sample: Optional[float] = None


def decode_xml_bytes(raw: bytes, path: Path) -> str:
    """
    Decode the bytes of a .dts file to text

    A byte order mark takes precedence. Without one, the text is UTF-16 if one
    of the first two bytes is zero (the position giving the endianness) and
    UTF-8 otherwise.

    Parameters
    ----------
    raw : bytes
        The file contents
    path : Path
        The file path, used in error messages

    Returns
    -------
    str
        The decoded text

    Raises
    ------
    MetadataReadError
        If the bytes could not be decoded
    """
    if len(raw) == 0:
        return ""
    for bom, encoding in BOMS:
        if raw.startswith(bom):
            try:
                return raw[len(bom) :].decode(encoding)
            except UnicodeDecodeError:
                raise MetadataReadError(
                    path, f"Invalid characters for {encoding} byte order mark"
                )
    # ASCII markup in UTF-16 has a zero byte in every character
    encoding = "utf-8"
    if len(raw) > 1 and raw[1] == 0:
        encoding = "utf-16-le"
    elif len(raw) > 1 and raw[0] == 0:
        encoding = "utf-16-be"
    try:
        return raw.decode(encoding)
    except UnicodeDecodeError:
        raise MetadataReadError(path, "Unable to determine encoding of XML")


def remove_duplicate_prolog(text: str) -> str:
    """
    Keep only the content before a second XML declaration

    Parameters
    ----------
    text : str
        The XML text

    Returns
    -------
    str
        The text truncated at the second declaration, if there is one
    """
    first = text.find(XML_DECLARATION)
    if first < 0:
        return text
    second = text.find(XML_DECLARATION, first + len(XML_DECLARATION))
    if second < 0:
        return text
    logger.warning("Found a second XML declaration, ignoring content after it")
    return text[:second]


def _local_name(tag: str) -> str:
    """Tag name without any namespace"""
    return tag.rsplit("}", 1)[-1]


def _parse_float(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    try:
        return float(value.strip())
    except ValueError:
        return math.nan


def _parse_optional_float(value: Optional[str]) -> Optional[float]:
    parsed = _parse_float(value, math.nan)
    return None if math.isnan(parsed) else parsed


def _parse_bool(value: Optional[str]) -> bool:
    return value is not None and value.lower() == "true"


def _parse_display_order(value: Optional[str]) -> int:
    if value is None or re.fullmatch(r"\+?[0-9]+", value) is None:
        return 0
    order = int(value)
    return order if order <= UINT32_MAX else 0


def read_channel_element(element: Element, module_start: float) -> ChannelMetadata:
    """
    Read the attributes of a channel element

    Parameters
    ----------
    element : Element
        The AnalogInputChanel element
    module_start : float
        StartRecordSampleNumber of the enclosing module

    Returns
    -------
    ChannelMetadata
        The channel metadata
    """
    attrib = element.attrib
    return ChannelMetadata(
        proportional_to_excitation=_parse_bool(attrib.get("ProportionalToExcitation")),
        is_inverted=_parse_bool(attrib.get("IsInverted")),
        measured_excitation_voltage=_parse_optional_float(
            attrib.get("MeasuredExcitationVoltage")
        ),
        factory_excitation_voltage=_parse_optional_float(
            attrib.get("FactoryExcitationVoltage")
        ),
        initial_eu=_parse_float(attrib.get("InitialEu"), 0.0),
        zero_method=ZeroMethod.from_attribute(attrib.get("ZeroMethod")),
        unit=attrib.get("Eu", ""),
        description=attrib.get("Description", ""),
        serial_number=attrib.get("SerialNumber", ""),
        name=attrib.get("Name"),
        sensitivity=_parse_optional_float(attrib.get("Sensitivity")),
        display_order=_parse_display_order(attrib.get("AbsoluteDisplayOrder")),
        module_start_sample=module_start,
        time_of_first_sample=_parse_optional_float(attrib.get("TimeOfFirstSample")),
    )


def _collect_channels(
    element: Element, module_start: float, channels: List[ChannelMetadata]
) -> None:
    """Walk the tree in document order, tracking the innermost module"""
    name = _local_name(element.tag)
    if name in CHANNEL_TAGS:
        channels.append(read_channel_element(element, module_start))
        return
    if name == MODULE_TAG:
        module_start = _parse_float(element.get("StartRecordSampleNumber"), 0.0)
    for child in element:
        _collect_channels(child, module_start, channels)


def parse_dts_metadata(text: str, path: Path) -> List[ChannelMetadata]:
    """
    Parse channel metadata from DTS XML text, in document order

    Parameters
    ----------
    text : str
        The XML text
    path : Path
        The path of the .dts file, used in error messages

    Returns
    -------
    List[ChannelMetadata]
        Metadata for each channel element, in document order

    Raises
    ------
    MetadataReadError
        If the XML could not be parsed
    """
    text = remove_duplicate_prolog(text).lstrip("\ufeff")
    # the text is already decoded, an encoding declaration would contradict it
    text = re.sub(r"^\s*<\?xml[^>]*\?>", "", text)
    if text.strip() == "":
        return []
    try:
        root = ET.fromstring(text)
    except (ET.ParseError, DefusedXmlException) as e:
        raise MetadataReadError(path, f"Failed to parse XML: {e}")
    channels: List[ChannelMetadata] = []
    _collect_channels(root, 0.0, channels)
    return channels


def read_dts_metadata(path: Path) -> List[ChannelMetadata]:
    """
    Read channel metadata from a .dts file

    The channels are returned sorted by their absolute display order, which is
    the order of the .chn files. The sort is stable, so channels sharing a
    display order keep their document order.

    Parameters
    ----------
    path : Path
        Path to the .dts file

    Returns
    -------
    List[ChannelMetadata]
        Channel metadata sorted by display order
    """
    text = decode_xml_bytes(path.read_bytes(), path)
    channels = parse_dts_metadata(text, path)
    logger.debug(f"Found {len(channels)} channel elements in {path.name}")
    return sorted(channels, key=lambda x: x.display_order)
