"""
Subpackage for writing Universal File Format Dataset Type 58 files, ASCII and
binary 58b
"""
from dts_uff.uff.formatting import format_scientific  # noqa
from dts_uff.uff.dataset58 import Uff58Format, ByteOrder  # noqa
from dts_uff.uff.dataset58 import write_uff58, write_uff58_ascii, write_uff58b  # noqa
from dts_uff.uff.dataset58 import write_uff58_file  # noqa
