# config/settings/local.py
from .base import *  # noqa

DEBUG = os.getenv("DJANGO_DEBUG", "1") == "1"

LOGGING["loggers"]["ovr_core"]["level"] = os.getenv("LOG_LEVEL", "DEBUG").upper()
