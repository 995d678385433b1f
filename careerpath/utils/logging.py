import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import date
from pathlib import Path

from loguru import logger

from careerpath.utils.context import get_request_id

_PROJECT_ROOT = Path(__file__).resolve().parents[2]
_CONFIG_PATH = _PROJECT_ROOT / "logging_config.json"

# Log records emitted outside a request (startup, beat, workers)
DEFAULT_REQUEST_ID = "app"

# Third-party loggers routed into loguru
INTERCEPTED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi", "celery")


class InterceptHandler(logging.Handler):
    """Forwards stdlib log records to loguru, tagged with the current request id."""

    def emit(self, record: logging.LogRecord):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk out of the logging module so loguru reports the real caller
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.bind(request_id=get_request_id() or DEFAULT_REQUEST_ID).opt(
            depth=depth, exception=record.exc_info
        ).log(level, record.getMessage())


@dataclass
class LoggingProfile:
    log_dir: Path
    filename: str
    level: str
    rotation: str
    retention: str
    console_format: str
    file_format: str
    use_json_logs: bool = False

    @classmethod
    def load(cls, config_path: Path, environment: str) -> "LoggingProfile":
        with open(config_path) as config_file:
            config = json.load(config_file)
        section = config.get(environment, config["logger"])

        log_dir = Path(section["log_dir"])
        if not log_dir.is_absolute():
            log_dir = _PROJECT_ROOT / log_dir

        return cls(
            log_dir=log_dir,
            filename=f"{date.today():%Y-%m-%d}-{section['filename']}",
            level=os.getenv("LOG_LEVEL", section["level"]).upper(),
            rotation=section["rotation"],
            retention=section["retention"],
            console_format=section["console_format"],
            file_format=section["file_format"],
            use_json_logs=section.get("use_json_logs", False),
        )

    def file_sink_options(self) -> dict:
        options = {
            "rotation": self.rotation,
            "retention": self.retention,
            "enqueue": True,
            "backtrace": True,
            "level": self.level,
            "colorize": False,
        }
        if self.use_json_logs:
            options["serialize"] = True
        else:
            options["format"] = self.file_format
        return options


def configure_logging(profile: LoggingProfile):
    """Install the console and file sinks and route stdlib logging through loguru."""
    logger.remove()
    logger.configure(extra={"request_id": DEFAULT_REQUEST_ID})

    logger.add(
        sys.stdout,
        enqueue=True,
        backtrace=True,
        level=profile.level,
        format=profile.console_format,
        colorize=True,
    )
    logger.add(str(profile.log_dir / profile.filename), **profile.file_sink_options())

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in INTERCEPTED_LOGGERS:
        logging.getLogger(name).handlers = [InterceptHandler()]

    # SQL echo is routed through loguru but kept quiet unless DB_ECHO is set
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return logger


_environment = "production" if os.getenv("ENVIRONMENT") == "production" else "logger"
custom_logger = configure_logging(LoggingProfile.load(_CONFIG_PATH, _environment))


def get_logger():
    """Logger bound to the current request id."""
    return custom_logger.bind(request_id=get_request_id() or DEFAULT_REQUEST_ID)
