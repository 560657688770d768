import logging
import os
from datetime import datetime, timedelta

import pytz

from definitions import LOGS_DIR

logger = logging.getLogger(__name__)


class ColoredFormatter(logging.Formatter):
    COLORS = {
        "DEBUG": "\033[38;5;244m",  # gray
        "INFO": "\033[38;5;120m",  # soft mint green
        "WARNING": "\033[38;5;221m",  # warm yellow
        "ERROR": "\033[38;5;196m",  # bright red
        "CRITICAL": "\033[1;38;5;196;48;5;232m",  # bold bright red on dark bg
    }
    RESET = "\033[0m"

    def format(self, record):
        level = record.levelname
        if level in self.COLORS:
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{self.COLORS[level]}{level}{self.RESET}"
        return super().format(record)


def setup_logging(config, console=False, debug=False):
    """
    Sets up the logging configuration based on provided settings.

    Args:
        config (dict): The configuration dictionary containing script settings.
        console (bool): If True, log to console instead of a file.
        debug (bool): If True, set the logging level to DEBUG; otherwise, INFO.
    """
    script_cfg = config.get("script", {}) or {}
    log_file_name_base = script_cfg.get("log_file_name", "mirrorbot")
    log_file_name_time = datetime.now().strftime("%Y%m%d%H%M%S")
    log_file_path = os.path.join(LOGS_DIR, f"{log_file_name_base}-{log_file_name_time}.log")

    logger_level = logging.DEBUG if debug else logging.INFO

    log_format = "%(asctime)s [%(name)s.%(funcName)s:%(lineno)d] %(levelname)s - %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    handlers = []
    if console:
        handler = logging.StreamHandler()
        handler.setFormatter(ColoredFormatter(log_format, datefmt=date_format))
        handlers.append(handler)
    else:
        os.makedirs(LOGS_DIR, exist_ok=True)
        handler = logging.FileHandler(log_file_path, encoding="utf-8")
        handler.setFormatter(logging.Formatter(log_format, date_format))
        handlers.append(handler)

    logging.basicConfig(
        level=logger_level,
        format=log_format,
        datefmt=date_format,
        handlers=handlers,
        force=True,
    )

    # atproto's httpx client is chatty at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logger.info("Logging initialized.")
    if console:
        logger.info("Logging to console.")
    else:
        logger.info(f"Logging to file: {log_file_path}")


def log_startup_info(args, config):
    """
    Log startup information, including arguments and configuration details.

    Args:
        args (Namespace): The parsed arguments.
        config (dict): The configuration dictionary.
    """
    logger.info("#" * 80)
    logger.info("New instance of the Mirror Bot started.")
    logger.info("TIME: %s", datetime.now())
    logger.info("Startup Parameters:")

    for arg, value in vars(args).items():
        logger.info(f"  ARG - {arg}: {value}")

    logger.info("Social Media Configurations:")
    socials_config = config.get("socials", {}) or {}
    for platform, enabled in socials_config.items():
        logger.info(f"  SOCIAL - {platform}: {enabled}")

    logger.info("#" * 80)


def local_timezone(config):
    """The configured display timezone (script.timezone), defaulting to UTC."""
    tz_name = (config.get("script", {}) or {}).get("timezone") or "UTC"
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        logger.warning("Unknown timezone %r in config; using UTC.", tz_name)
        return pytz.utc


def format_local(dt: datetime, tz) -> str:
    """Format an aware (or naive UTC) datetime in `tz`."""
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    return dt.astimezone(tz).strftime("%Y-%m-%d %H:%M:%S %Z")


def next_run_time(interval_seconds: float, tz, now: datetime | None = None) -> str:
    now = now or datetime.now(pytz.utc)
    return format_local(now + timedelta(seconds=interval_seconds), tz)
