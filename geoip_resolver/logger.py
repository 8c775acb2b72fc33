from logging import config, getLevelName, getLogger

from geoip_resolver import settings

LOGGER_NAME = "geoip"
LOG_LEVEL = getLevelName(settings.LOG_LEVEL)

log_config = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "()": "uvicorn.logging.DefaultFormatter",
            "fmt": "%(levelprefix)s %(asctime)s - %(name)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
            "use_colors": True,
        },
    },
    "handlers": {
        "default": {
            "formatter": "default",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
        },
    },
    "loggers": {
        LOGGER_NAME: {"handlers": ["default"], "level": LOG_LEVEL, "propagate": False},
    },
}

config.dictConfig(log_config)

# Get the "geoip" logger
logger = getLogger(LOGGER_NAME)
