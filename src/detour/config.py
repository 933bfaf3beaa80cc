"""
Configuration: the logging setup used by entrypoints, and controller defaults
"""

import os

from pydantic import BaseModel, Field

loglevel = os.environ.get("DETOUR_LOGLEVEL", "INFO").upper()

logging_config = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "default": {
            "level": loglevel,
            "formatter": "default",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
        },
    },
    "loggers": {
        "detour": {
            "handlers": ["default"],
            "level": loglevel,
            "propagate": False,
        },
    },
}


class ControllerConfig(BaseModel):
    default_num_retries: int = Field(
        0,
        ge=0,
        description="retry budget of a new request when the find call does not give one",
    )
    halt_speed: float = Field(
        0.0,
        description="max speed reported in drive data while a search is running",
    )
