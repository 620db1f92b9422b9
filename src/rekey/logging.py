"""
Copyright 2026 Inmanta

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.

Contact: code@inmanta.com
"""

import logging
import logging.config
import os
import sys
from typing import Optional, TextIO

import colorlog
import yaml
from colorlog.formatter import LogColors

from rekey import config, const

LOGGER = logging.getLogger(__name__)


def _is_on_tty() -> bool:
    return (hasattr(sys.stdout, "isatty") and sys.stdout.isatty()) or const.ENVIRON_FORCE_TTY in os.environ


"""
This dictionary maps the verbosity levels of the CLI to the corresponding Python log levels
"""
log_levels = {
    "0": logging.ERROR,
    "1": logging.WARNING,
    "2": logging.INFO,
    "3": logging.DEBUG,
    "4": 3,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
    "TRACE": 3,
}

logging.addLevelName(3, "TRACE")


def convert_log_level(log_level: str, cli: bool = False) -> int:
    """
    Convert the given rekey log level to the corresponding Python log level.

    :param log_level: A verbosity level (0-4) or a level name
    :param cli: True if the logs will be outputted to the CLI.
    :return: python log level
    """
    # maximum of 4 v's
    if log_level.isdigit() and int(log_level) > 4:
        log_level = "4"
    # The minimal log level on the CLI is always WARNING
    if cli and (log_level == "ERROR" or (log_level.isdigit() and int(log_level) < 1)):
        log_level = "WARNING"
    return log_levels[log_level]


def get_default_colors() -> LogColors:
    return {
        "TRACE": "cyan",
        "DEBUG": "cyan",
        "INFO": "green",
        "WARNING": "yellow",
        "ERROR": "red",
        "CRITICAL": "red",
    }


class MultiLineFormatter(colorlog.ColoredFormatter):
    """
    Formatter for multi-line log records: continuation lines are indented to the width of the header.
    """

    def __init__(
        self,
        fmt: Optional[str] = None,
        *,
        log_colors: Optional[LogColors] = None,
        reset: bool = True,
        no_color: bool = False,
    ):
        super().__init__(fmt, log_colors=log_colors, reset=reset, no_color=no_color)
        self.fmt = fmt

    def get_header_length(self, record: logging.LogRecord) -> int:
        """
        Get the header length of a given log record, without color codes.
        """
        formatter = colorlog.ColoredFormatter(
            fmt=self.fmt,
            log_colors=self.log_colors,
            reset=False,
            no_color=True,
        )
        header = formatter.format(
            logging.LogRecord(
                record.name,
                record.levelno,
                record.pathname,
                record.lineno,
                "",
                (),
                None,
            )
        )
        return len(header)

    def format(self, record: logging.LogRecord) -> str:
        indent: str = " " * self.get_header_length(record)
        head, *tail = super().format(record).splitlines(True)
        return head + "".join(indent + line for line in tail)


class LoggingConfigFromFile:
    """
    A logging config in Python's dictConfig format, stored in a YAML file.
    """

    def __init__(self, file_name: str) -> None:
        self.file_name = os.path.abspath(file_name)

    def read_logging_config(self) -> dict[str, object]:
        try:
            with open(self.file_name, "r") as fh:
                logging_config_as_str = fh.read()
        except FileNotFoundError:
            raise Exception(f"Logging config file {self.file_name} doesn't exist.")
        except Exception:
            raise Exception(f"Failed to read logging config file from {self.file_name}.")

        try:
            result = yaml.safe_load(logging_config_as_str)
        except Exception:
            raise Exception(f"Failed to parse logging config file from {self.file_name} as yaml.")
        if not isinstance(result, dict):
            raise Exception(f"Logging config file {self.file_name} doesn't contain a dictionary.")
        return result


class RekeyLoggerConfig:
    """
    The entry-point for configuring the Python logging framework.

    Call `get_instance` first, it installs a handler on the given stream so the CLI can log while parsing its options.
    Then call `apply_options` to apply the verbosity or the logging config requested by the user.
    """

    _instance: Optional["RekeyLoggerConfig"] = None

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream if stream is not None else sys.stdout
        self._handler: logging.Handler = self._create_stream_handler(self._stream, logging.INFO)
        logging.root.addHandler(self._handler)
        logging.root.setLevel(logging.INFO)

    @classmethod
    def get_instance(cls, stream: Optional[TextIO] = None) -> "RekeyLoggerConfig":
        """
        This method should be used to obtain an instance of this class, because this class is a singleton.

        :param stream: The stream to send log messages to. Default is standard output (sys.stdout)
        """
        if stream is None:
            stream = sys.stdout
        if cls._instance:
            handler = cls._instance._handler
            if isinstance(handler, logging.StreamHandler) and handler.stream != stream:
                raise Exception("Instance already exists with a different stream")
        else:
            cls._instance = cls(stream)
        return cls._instance

    @classmethod
    def clean_instance(cls) -> None:
        """
        Remove the handler installed by this class and forget the singleton.
        """
        if cls._instance is not None:
            logging.root.removeHandler(cls._instance._handler)
            cls._instance._handler.close()
        cls._instance = None

    def get_handler(self) -> logging.Handler:
        return self._handler

    def _create_stream_handler(self, stream: TextIO, level: int) -> logging.StreamHandler:
        if _is_on_tty():
            log_format = "%(log_color)s%(name)-25s%(levelname)-8s%(reset)s%(blue)s%(message)s"
        else:
            log_format = "%(name)-25s%(levelname)-8s%(message)s"
        formatter = MultiLineFormatter(
            log_format,
            reset=True,
            log_colors=get_default_colors(),
            no_color=not _is_on_tty(),
        )
        handler = logging.StreamHandler(stream=stream)
        handler.setLevel(level)
        handler.setFormatter(formatter)
        return handler

    def apply_options(self, verbose: int = 0, logging_config: Optional[str] = None) -> None:
        """
        Configure logging for the CLI.

        :param verbose: The number of -v flags given on the CLI.
        :param logging_config: The path to a YAML dictConfig file. Defaults to the config.logging-config option. When set,
            it replaces the default handler.
        """
        if logging_config is None:
            logging_config = config.logging_config.get()
        if logging_config is not None:
            dict_config = LoggingConfigFromFile(logging_config).read_logging_config()
            logging.root.removeHandler(self._handler)
            logging.config.dictConfig(dict_config)
            LOGGER.debug("Applied logging config from %s", logging_config)
            return

        level = convert_log_level(str(verbose), cli=True)
        logging.root.removeHandler(self._handler)
        self._handler = self._create_stream_handler(self._stream, level)
        logging.root.addHandler(self._handler)
        logging.root.setLevel(min(level, logging.INFO))
