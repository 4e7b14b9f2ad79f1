# Copyright 2023 Jared Hendrickson
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Structured logging for the cfssl_sidekick service."""
import datetime
import json
import logging
import logging.config
import sys


# Constants and Variables
LOGGER_NAME = "cfssl_sidekick"
RESERVED_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """Formats each record as a single JSON object, including any context fields passed through `extra`."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": datetime.datetime.fromtimestamp(record.created, datetime.timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "msg": record.getMessage(),
        }

        # Anything which isn't a standard record attribute was supplied as context
        for key, value in vars(record).items():
            if key not in RESERVED_ATTRS and not key.startswith("_"):
                entry[key] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logger(verbose: bool = False) -> logging.Logger:
    """
    Configures and returns the service logger.

    Args:
        verbose (bool): Enable debug level logging.

    Returns:
        logging.Logger: The configured `cfssl_sidekick` logger.
    """
    level = "DEBUG" if verbose else "INFO"
    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": JSONFormatter,
            },
        },
        "handlers": {
            "console": {
                "level": level,
                "class": "logging.StreamHandler",
                "formatter": "json",
                "stream": sys.stdout,
            }
        },
        "loggers": {
            LOGGER_NAME: {
                "level": level,
                "handlers": ["console"],
                "propagate": False,
            }
        }
    }

    logging.config.dictConfig(logging_config)
    logger = logging.getLogger(LOGGER_NAME)
    logger.debug("logging is set up and ready")

    return logger
