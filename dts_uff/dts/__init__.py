"""
Subpackage for reading DTS test folders, including:

- Decoding of the .chn binary headers
- Reading channel metadata from the .dts XML file
- Calibration of ADC counts to engineering units
"""
from dts_uff.dts.header import ChannelHeader, read_chn_header  # noqa
from dts_uff.dts.metadata import ChannelMetadata, ZeroMethod  # noqa
from dts_uff.dts.calibration import calibrate  # noqa
from dts_uff.dts.reader import DtsReader, ChannelData, TrackMetadata  # noqa
