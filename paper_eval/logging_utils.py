"""Logging setup for paper_eval - console and optional file logging."""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class EvalLoggingSetup:
    """Configure console and file logging for an evaluation run."""

    def __init__(self, config=None, log_dir: Optional[str] = "logs", console_level: str = "INFO"):
        self.config = config
        self.console_level = getattr(logging, str(console_level).upper(), logging.INFO)
        self.log_filepath: Optional[Path] = None

        if log_dir:
            self.log_dir = Path(log_dir)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.log_filepath = self.log_dir / f"paper_eval_{timestamp}.log"

        self.setup_python_logging()

    def setup_python_logging(self):
        """Setup Python standard logging to console and, unless disabled, a file."""
        disable_file_logging = os.environ.get('DISABLE_FILE_LOGGING', '').lower() in ('1', 'true', 'yes')

        formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)
        root_logger.handlers.clear()

        # stderr keeps stdout clean for JSON output
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(self.console_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        logger = logging.getLogger('paper_eval.logging')
        if self.log_filepath is None or disable_file_logging:
            self.log_filepath = None
            logger.debug("File logging disabled")
            return

        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self.log_filepath, mode='w', encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            logger.info(f"Logging initialized - log file: {self.log_filepath}")
        except OSError as e:
            logger.warning(f"File logging disabled due to error: {e}")
            self.log_filepath = None

    def log_config(self):
        """Log the active scoring weights and thresholds."""
        logger = logging.getLogger('paper_eval.config')
        if self.config is None:
            logger.info("No evaluation configuration loaded")
            return
        logger.info("=== Configuration ===")
        for field_type, weights in self.config.similarity_weights.items():
            logger.info(f"Similarity weights [{field_type}]: {weights}")
        for field_type, weights in self.config.quality_weights.items():
            logger.info(f"Quality weights [{field_type}]: {weights}")
        for name, domain in self.config.domains.items():
            logger.info(
                f"Domain {name}: accuracy={domain.accuracy_weight} quality={domain.quality_weight} "
                f"fields={', '.join(domain.fields) or 'any'}"
            )
        aggregation = self.config.aggregation
        logger.info(
            f"Buckets: high>={aggregation.high_threshold} partial>={aggregation.partial_threshold}; "
            f"moving average window {aggregation.moving_average_window}"
        )
        logger.info("=== End Configuration ===")

    def get_log_filepath(self) -> Optional[Path]:
        return self.log_filepath


def setup_logging(config=None, log_dir: Optional[str] = "logs", console_level: str = "INFO") -> EvalLoggingSetup:
    """Setup logging for a paper_eval run."""
    return EvalLoggingSetup(config, log_dir, console_level)
