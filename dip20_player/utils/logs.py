import logging
import logging.config
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

import structlog

DEFAULT_LOG_LEVELS = {"": "WARNING", "dip20_player": "DEBUG"}


def construct_log_file_name(sub_command: str, data_path: Path, scenario_name: str = None) -> Path:
    timestamp = f"{datetime.now():%Y-%m-%dT%H:%M:%S}"
    directory = data_path.joinpath("logs")
    if scenario_name:
        directory = directory.joinpath(scenario_name)
        file_name = f"dip20-player-{sub_command}_{scenario_name}_{timestamp}.log"
    else:
        file_name = f"dip20-player-{sub_command}_{timestamp}.log"
    return directory.joinpath(file_name)


def configure_logging(
    logger_level_config: Optional[Dict[str, str]] = None,
    log_file: Optional[Path] = None,
    console_level: str = "WARNING",
) -> None:
    """Route structlog through the stdlib logging machinery.

    Everything at or above the configured logger levels is written to
    `log_file` (if given) as ``key=value`` lines; the console only receives
    records at `console_level` and above, since progress is printed separately.
    """
    logger_level_config = {**DEFAULT_LOG_LEVELS, **(logger_level_config or {})}

    shared_processors = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S.%f"),
    ]

    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "level": console_level,
            "formatter": "colorized",
        }
    }
    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers["debug-file"] = {
            "class": "logging.FileHandler",
            "filename": str(log_file),
            "level": "DEBUG",
            "formatter": "plain",
            "encoding": "utf-8",
        }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "plain": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "processor": structlog.processors.KeyValueRenderer(
                        key_order=["timestamp", "level", "logger", "event"]
                    ),
                    "foreign_pre_chain": shared_processors,
                },
                "colorized": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "processor": structlog.dev.ConsoleRenderer(),
                    "foreign_pre_chain": shared_processors,
                },
            },
            "handlers": handlers,
            "loggers": {
                name: {"handlers": list(handlers), "level": level, "propagate": False}
                for name, level in logger_level_config.items()
            },
        }
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
