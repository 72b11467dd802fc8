"""
Centralized Logging Configuration
=================================

Provides a unified logging setup for the synthesis pipeline with colored
console output and a rotating log file.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from colorama import Fore, Style, init

from designsynth.paths import LOGS_DIR

init(autoreset=True)


class ColoredSmartFormatter(logging.Formatter):
    """Formatter with color coding and shortened logger names."""

    def __init__(self, include_function: bool = False, use_colors: bool = True):
        self.include_function = include_function
        self.use_colors = use_colors
        super().__init__()

        self.level_colors = {
            logging.DEBUG: Fore.CYAN,
            logging.INFO: Fore.GREEN,
            logging.WARNING: Fore.YELLOW,
            logging.ERROR: Fore.RED,
            logging.CRITICAL: Fore.RED + Style.BRIGHT
        }

        # Pipeline stages get their own colors
        self.service_colors = {
            'scaffolding': Fore.BLUE,
            'code_merger': Fore.MAGENTA,
            'model_inference': Fore.CYAN,
            'crud': Fore.YELLOW,
            'packager': Fore.GREEN,
            'verifier': Fore.RED,
            'api_client': Fore.MAGENTA,
        }

    def format(self, record: logging.LogRecord) -> str:
        timestamp = self.formatTime(record, '%H:%M:%S')
        level = record.levelname
        name = self._clean_logger_name(record.name)
        message = record.getMessage()

        if self.use_colors:
            level_color = self.level_colors.get(record.levelno, "")
            service_color = self._get_service_color(name)
            colored_level = f"{level_color}{level:8}{Style.RESET_ALL}"
            colored_name = f"{service_color}{name:20}{Style.RESET_ALL}"
        else:
            colored_level = f"{level:8}"
            colored_name = f"{name:20}"

        line = f"[{timestamp}] {colored_level} {colored_name}"
        if self.include_function and record.levelno >= logging.WARNING:
            location = f"{record.funcName}:{record.lineno}"
            if self.use_colors:
                location = f"{Fore.WHITE}{Style.DIM}[{location}]{Style.RESET_ALL}"
            else:
                location = f"[{location}]"
            line = f"{line} {location}"

        line = f"{line} {message}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line

    def _clean_logger_name(self, name: str) -> str:
        """Clean and shorten logger names for readability."""
        replacements = {
            'designsynth.services.synthesis.': 'synth.',
            'designsynth.services.': 'svc.',
            'designsynth.utils.': 'util.',
            'designsynth.': '',
        }

        for old, new in replacements.items():
            if name.startswith(old):
                name = new + name[len(old):]
                break

        if len(name) > 20:
            name = name[:17] + "..."

        return name

    def _get_service_color(self, service_name: str) -> str:
        """Get color for service based on name patterns."""
        name_lower = service_name.lower()
        for service, color in self.service_colors.items():
            if service in name_lower:
                return color
        return Fore.WHITE


class LoggingConfig:
    """Centralized logging configuration for the application."""

    def __init__(self, app_name: str = "designsynth", log_dir: Optional[Path] = None):
        self.app_name = app_name
        self.log_dir = Path(log_dir or LOGS_DIR)
        self.log_level = self._get_log_level()
        self.is_development = os.environ.get('DESIGNSYNTH_ENV', 'development') == 'development'

    def setup_logging(self, log_to_file: bool = True) -> logging.Logger:
        """Setup centralized logging configuration.

        Only handlers previously attached by this class are replaced, so
        pytest's caplog handler stays installed and setup is idempotent.
        """
        root_logger = logging.getLogger()
        for handler in list(root_logger.handlers):
            if getattr(handler, "_designsynth", False):
                root_logger.removeHandler(handler)
        root_logger.setLevel(self.log_level)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(self.log_level)
        console_handler.setFormatter(ColoredSmartFormatter(
            include_function=self.is_development,
            use_colors=True,
        ))
        console_handler._designsynth = True  # type: ignore[attr-defined]
        root_logger.addHandler(console_handler)

        if log_to_file:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                self.log_dir / f"{self.app_name}.log",
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(ColoredSmartFormatter(include_function=True, use_colors=False))
            file_handler._designsynth = True  # type: ignore[attr-defined]
            root_logger.addHandler(file_handler)

        self._configure_specific_loggers()

        app_logger = logging.getLogger(self.app_name)
        app_logger.info(f"Logging configured - Level: {logging.getLevelName(self.log_level)}")
        return app_logger

    def _get_log_level(self) -> int:
        """Get log level from environment or default."""
        level_str = os.environ.get('LOG_LEVEL', 'INFO').upper()
        return getattr(logging, level_str, logging.INFO)

    def _configure_specific_loggers(self):
        """Quiet down chatty third-party loggers."""
        for noisy in ('aiohttp.access', 'aiohttp.client', 'asyncio'):
            logging.getLogger(noisy).setLevel(logging.WARNING)


_logging_config: Optional[LoggingConfig] = None


def get_logging_config() -> LoggingConfig:
    """Get shared logging configuration instance."""
    global _logging_config
    if _logging_config is None:
        _logging_config = LoggingConfig()
    return _logging_config


def setup_application_logging(log_to_file: bool = True) -> logging.Logger:
    """Setup application logging - call this once at startup."""
    return get_logging_config().setup_logging(log_to_file=log_to_file)
