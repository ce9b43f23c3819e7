"""
Configuration for conversions

Settings can be given directly or read from the environment, including from a
.env file in the working directory:

- DTS_UFF_MAX_WORKERS: number of threads extracting channels
- DTS_UFF_QUEUE_SIZE: maximum number of channels extracted but not yet written
- DTS_UFF_BYTE_ORDER: 'little' or 'big', the byte order of binary datasets
"""
from loguru import logger
from typing import Any, Dict, Optional
import os
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, field_validator

from dts_uff.uff.dataset58 import ByteOrder

ENV_PREFIX = "DTS_UFF_"


class ConversionConfig(BaseModel):
    """Tunable settings of a conversion"""

    max_workers: int = Field(default_factory=lambda: os.cpu_count() or 1, ge=1)
    """Number of threads extracting channels"""
    queue_size: Optional[int] = Field(default=None, ge=1)
    """Channels in flight at once, defaults to twice max_workers"""
    byte_order: ByteOrder = ByteOrder.LITTLE
    """Byte order of binary 58b datasets"""
    metadata_extension: str = ".dts"
    data_extension: str = ".chn"

    @field_validator("byte_order", mode="before")
    @classmethod
    def parse_byte_order(cls, value: Any) -> Any:
        """Allow the byte order to be given by name"""
        if not isinstance(value, str):
            return value
        try:
            return ByteOrder[value.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown byte order '{value}', expected little or big")

    def get_queue_size(self) -> int:
        """Get the number of channels that may be in flight at once"""
        if self.queue_size is None:
            return 2 * self.max_workers
        return self.queue_size

    @classmethod
    def from_env(cls, **overrides: Any) -> "ConversionConfig":
        """
        Get configuration from environment variables

        Parameters
        ----------
        overrides : Any
            Values taking precedence over the environment, None values are
            ignored

        Returns
        -------
        ConversionConfig
            The configuration
        """
        load_dotenv(find_dotenv(usecwd=True))
        values: Dict[str, Any] = {}
        for field in ("max_workers", "queue_size", "byte_order"):
            env_value = os.getenv(ENV_PREFIX + field.upper())
            if env_value is not None and env_value.strip() != "":
                values[field] = env_value.strip()
        values.update({k: v for k, v in overrides.items() if v is not None})
        config = cls(**values)
        logger.debug(f"Conversion configuration {config}")
        return config
