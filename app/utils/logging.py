import logging
import sys
from pathlib import Path
from loguru import logger
import json
from datetime import date

from app.config.settings import settings
from app.utils.context import get_request_id

PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Standard-library loggers rerouted through loguru
INTERCEPTED_LOGGERS = (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "celery",
    "sqlalchemy.engine",
)


def _inject_request_id(record):
    """Prefer the id of the request being served over the one bound at import."""
    request_id = get_request_id()
    if request_id:
        record["extra"]["request_id"] = request_id


class InterceptHandler(logging.Handler):
    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = logging.getLevelName(record.levelno)

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


class CustomizeLogger:
    @classmethod
    def make_logger(cls, config_path: Path, environment: str = "logger"):
        config = cls.load_logging_config(config_path)
        logging_config = config.get(environment, config["logger"])
        filename = f"{date.today():%Y-%m-%d}-{logging_config['filename']}"

        return cls.customize_logging(
            log_file=PROJECT_ROOT / logging_config["log_dir"] / filename,
            level=(settings.LOG_LEVEL or logging_config["level"]).upper(),
            rotation=logging_config.get("rotation"),
            retention=logging_config.get("retention"),
            console_format=logging_config["console_format"],
            file_format=logging_config["file_format"],
            use_json_logs=logging_config.get("use_json_logs", False),
        )

    @classmethod
    def customize_logging(
        cls,
        log_file: Path,
        level: str,
        rotation: str,
        retention: str,
        console_format: str,
        file_format: str,
        use_json_logs: bool = False,
    ):
        logger.remove()
        logger.configure(extra={"request_id": "app"}, patcher=_inject_request_id)

        logger.add(
            sys.stdout,
            enqueue=True,
            backtrace=True,
            level=level,
            format=console_format,
            colorize=True,
        )

        file_sink = dict(
            rotation=rotation,
            retention=retention,
            enqueue=True,
            backtrace=True,
            level=level,
            colorize=False,
        )
        if use_json_logs:
            file_sink["serialize"] = True
        else:
            file_sink["format"] = file_format
        logger.add(str(log_file), **file_sink)

        cls._setup_intercept_handlers()

        return logger

    @staticmethod
    def _setup_intercept_handlers():
        logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

        for log_name in INTERCEPTED_LOGGERS:
            _logger = logging.getLogger(log_name)
            _logger.handlers = [InterceptHandler()]
            _logger.propagate = False

        # Engine echo is off; only warnings from the pool reach the sinks
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    @staticmethod
    def load_logging_config(config_path: Path):
        with open(config_path) as config_file:
            return json.load(config_file)


config_path = Path(settings.LOG_CONFIG_PATH)
if not config_path.is_absolute():
    config_path = PROJECT_ROOT / config_path
environment = "production" if settings.ENVIRONMENT == "production" else "logger"
custom_logger = CustomizeLogger.make_logger(config_path, environment)


def get_logger():
    """Logger bound to the current request id, or ``app`` outside a request."""
    return custom_logger.bind(request_id=get_request_id() or "app")
