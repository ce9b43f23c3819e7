r"""
Calibration of raw DTS ADC samples to engineering units

The raw data in .chn files are signed 16 bit ADC counts. These are converted
to engineering units using the scale factors from the channel header and the
excitation and zeroing settings from the channel metadata,

.. math::

    scale = \frac{scale_{mV}}{scale_{EU} \cdot excitation}

    data = adc \cdot scale + offset

where scale_mV is negated for inverted channels and the offset depends on the
zero method:

- UsePreCalZero: -pre_test_zero_level_adc * scale + initial_eu
- AverageOverTime: -data_zero_level_adc * scale + initial_eu
- None: initial_eu

All arithmetic is done in double precision with the divisions in exactly the
order above, the result is narrowed to single precision at the very end. This
matches the reference output of the DTS tools bit for bit, so the order of the
operations must not be changed.
"""
from typing import NamedTuple
import numpy as np

from dts_uff.dts.header import ChannelHeader
from dts_uff.dts.metadata import ChannelMetadata, ZeroMethod


class Calibration(NamedTuple):
    """Scale and offset applied to ADC counts"""

    scale: np.float64
    offset: np.float64


def get_excitation(metadata: ChannelMetadata) -> np.float64:
    """
    Get the excitation voltage used to normalise the sensitivity

    Channels that are not proportional to excitation use an excitation of 1.
    Otherwise the factory excitation is used, falling back to the measured
    excitation if the factory one is absent. If both are absent the result is
    NaN, as with the DTS tools.

    Parameters
    ----------
    metadata : ChannelMetadata
        The channel metadata

    Returns
    -------
    np.float64
        The excitation voltage
    """
    if not metadata.proportional_to_excitation:
        return np.float64(1.0)
    if metadata.factory_excitation_voltage is None:
        if metadata.measured_excitation_voltage is None:
            return np.float64(np.nan)
        return np.float64(metadata.measured_excitation_voltage)
    return np.float64(metadata.factory_excitation_voltage)


def get_calibration(header: ChannelHeader, metadata: ChannelMetadata) -> Calibration:
    """
    Get the scale and offset for a channel

    Parameters
    ----------
    header : ChannelHeader
        The channel header with the scale factors and zero levels
    metadata : ChannelMetadata
        The channel metadata

    Returns
    -------
    Calibration
        The scale and offset
    """
    scale_mv = np.float64(header.scale_factor_mv)
    if metadata.is_inverted:
        scale_mv = -scale_mv
    scale_eu = np.float64(header.scale_factor_eu)
    excitation = get_excitation(metadata)
    initial_eu = np.float64(metadata.initial_eu)

    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        if metadata.zero_method == ZeroMethod.USE_PRE_CAL_ZERO:
            zero_adc = -np.float64(header.pre_test_zero_level_adc)
            offset = (zero_adc * scale_mv / scale_eu / excitation) + initial_eu
        elif metadata.zero_method == ZeroMethod.AVERAGE_OVER_TIME:
            zero_adc = -np.float64(header.data_zero_level_adc)
            offset = (zero_adc * scale_mv / scale_eu / excitation) + initial_eu
        else:
            offset = initial_eu
        scale = scale_mv / scale_eu / excitation
    return Calibration(scale=scale, offset=offset)


def calibrate(
    adc: np.ndarray, header: ChannelHeader, metadata: ChannelMetadata
) -> np.ndarray:
    """
    Calibrate ADC counts to engineering units

    Parameters
    ----------
    adc : np.ndarray
        The raw ADC counts
    header : ChannelHeader
        The channel header
    metadata : ChannelMetadata
        The channel metadata

    Returns
    -------
    np.ndarray
        Single precision samples in engineering units
    """
    calibration = get_calibration(header, metadata)
    with np.errstate(invalid="ignore", over="ignore"):
        data = adc.astype(np.float64) * calibration.scale + calibration.offset
        return data.astype(np.float32)


def calibrate_sample(
    adc: int, header: ChannelHeader, metadata: ChannelMetadata
) -> np.float32:
    """Calibrate a single ADC count, see calibrate"""
    return calibrate(np.array([adc], dtype=np.int16), header, metadata)[0]
