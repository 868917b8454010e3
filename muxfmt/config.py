"""
Utils for managing codec configuration.
"""

import logging
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

DEFAULT_MAX_FRAME_SIZE = 256 * 1024
"""
Largest packet accepted by the mux server
"""

class ConfigError(Exception):
    """
    The given configuration is invalid
    """

class CodecConfig(BaseModel):
    """
    Options of a codec instance

    Attributes:
        strict_bool: reject encoded booleans other than 0 and 1 instead of
            reading any non-zero value as True
        human_readable: flag advertised to integrations that dispatch on it.
            Has no effect on the bytes produced or accepted.
        check_options: check that options are only used at the end of
            messages before encoding or decoding
        max_frame_size: largest payload length accepted when reading packets
    """
    model_config = ConfigDict(frozen=True, extra='forbid')

    strict_bool: bool = False
    human_readable: bool = False
    check_options: bool = False
    max_frame_size: int = Field(DEFAULT_MAX_FRAME_SIZE, gt=0, le=2**32 - 1)

DEFAULT_CONFIG = CodecConfig()

def load_config(config: Mapping | CodecConfig | None = None) -> CodecConfig:
    """
    Parse the configuration from the given input.

    Accepts an already built config, a mapping of options, or None for
    defaults.
    """
    if config is None:
        return DEFAULT_CONFIG
    if isinstance(config, CodecConfig):
        return config
    try:
        setup = CodecConfig.model_validate(dict(config))
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc
    logging.debug('Codec configuration: %s', setup)
    return setup
