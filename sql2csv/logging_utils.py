# sql2csv/logging_utils.py
"""
Logging utilities for export runs.

Provides logging setup for scheduled exports that write timestamped log files
like sql2csv_YYYYMMDD_HHMMSS.log, plus the live progress line shown while
rows are being read.
"""

import logging
import sys
from pathlib import Path
from datetime import datetime, timedelta
from typing import Optional, Tuple, List, TextIO

logger = logging.getLogger(__name__)

# Module-level state for error tracking
_error_handler: Optional['ErrorCountHandler'] = None
_main_log_path: Optional[str] = None
_error_log_path: Optional[str] = None
_split_errors: bool = False


class ErrorCountHandler(logging.Handler):
    """Counts ERROR and CRITICAL level messages and lazily creates the error log."""

    def __init__(self, error_log_path: Optional[str] = None, formatter: Optional[logging.Formatter] = None):
        super().__init__()
        self.error_count = 0
        self.error_log_path = error_log_path
        self.formatter = formatter
        self._error_file_handler = None

    def emit(self, record):
        """Count errors and create the error log file on the first one."""
        if record.levelno >= logging.ERROR:
            self.error_count += 1

            if self.error_log_path and self._error_file_handler is None:
                try:
                    self._error_file_handler = logging.FileHandler(self.error_log_path, encoding='utf-8')
                    self._error_file_handler.setLevel(logging.ERROR)
                    if self.formatter:
                        self._error_file_handler.setFormatter(self.formatter)
                    logging.getLogger().addHandler(self._error_file_handler)
                    logger.debug(f"Created error log file: {self.error_log_path}")
                except Exception as e:
                    logger.warning(f"Failed to create error log file: {e}")


def setup_logging(
    script_name: Optional[str] = None,
    log_dir: Optional[str] = None,
    level: Optional[str] = None,
    split_errors: Optional[bool] = None,
    console: Optional[bool] = None,
    stream: Optional[TextIO] = None
) -> Tuple[Optional[str], Optional[str]]:
    """
    Configure logging for an export run.

    Creates log files with pattern: {script_name}_{datetime}.log
    Optionally creates separate error log: {script_name}_{datetime}_error.log
    With an empty log directory nothing is written to disk and only the
    console handler is installed.

    Args:
        script_name: Base name for log files (defaults to script filename without extension)
        log_dir: Directory for log files (defaults to config setting or './logs', '' for none)
        level: Logging level string - DEBUG, INFO, WARNING, ERROR (defaults to config or 'INFO')
        split_errors: Create separate error log file (defaults to config or True)
        console: Also log to the console (defaults to config or True)
        stream: Console stream (defaults to stderr so stdout stays free for progress)

    Returns:
        Tuple of (log_file_path or None, error_log_path or None)

    Example
    -------
    ::
        import sql2csv

        # uses defaults from config
        sql2csv.setup_logging('nightly_posts')

        # console only, verbose
        sql2csv.setup_logging('adhoc', log_dir='', level='DEBUG')

    Note:
        To customize filename patterns, set 'logging.filename_format' in sql2csv.yml:
        - '%Y%m%d_%H%M%S' - One log per run with date and time (default)
        - '%Y%m%d' - One log per day
        - '' - Single rolling log file
    """
    from .config import get_setting

    if script_name is None:
        script_name = Path(sys.argv[0]).stem or 'sql2csv'

    logging_config = get_setting('logging', {})

    if log_dir is None:
        log_dir = logging_config.get('directory', './logs')
    level = level or logging_config.get('level', 'INFO')
    split_errors = split_errors if split_errors is not None else logging_config.get('split_errors', True)
    console = console if console is not None else logging_config.get('console', True)

    log_format = logging_config.get('format', '%(asctime)s [%(levelname)s] %(name)s: %(message)s')
    timestamp_format = logging_config.get('timestamp_format', '%Y-%m-%d %H:%M:%S')
    filename_format = logging_config.get('filename_format', '%Y%m%d_%H%M%S')

    log_file = None
    error_file = None
    if log_dir:
        log_dir_path = Path(log_dir)
        log_dir_path.mkdir(parents=True, exist_ok=True)

        if filename_format:
            timestamp = datetime.now().strftime(filename_format)
            log_file = log_dir_path / f"{script_name}_{timestamp}.log"
            error_file = log_dir_path / f"{script_name}_{timestamp}_error.log" if split_errors else None
        else:
            log_file = log_dir_path / f"{script_name}.log"
            error_file = log_dir_path / f"{script_name}_error.log" if split_errors else None

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()

    formatter = logging.Formatter(log_format, datefmt=timestamp_format)

    global _error_handler
    _error_handler = ErrorCountHandler(
        error_log_path=str(error_file) if error_file else None,
        formatter=formatter
    )
    _error_handler.setLevel(logging.ERROR)
    root_logger.addHandler(_error_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(stream or sys.stderr)
        console_handler.setLevel(getattr(logging, level.upper()))
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if log_file:
        logging.info(f"Logging initialized: {log_file}")
    if error_file:
        logging.info(f"Error log will be created at: {error_file} (if errors occur)")

    global _main_log_path, _error_log_path, _split_errors
    _main_log_path = str(log_file) if log_file else None
    _error_log_path = str(error_file) if error_file else None
    _split_errors = bool(split_errors and error_file)

    return _main_log_path, _error_log_path


def errors_logged() -> Optional[str]:
    """
    Check if any ERROR or CRITICAL messages were logged during this run.

    Returns
    -------
    str or None
        Path to the error log (split_errors) or main log when errors were
        logged. None if no errors were logged, setup_logging() was not called,
        or logging goes to the console only.

    Example
    -------
    ::

        sql2csv.setup_logging('nightly_posts')
        result = sql2csv.to_csv(cursor, 'posts.csv')
        error_log = sql2csv.errors_logged()
        if error_log:
            print(f"Errors detected! See: {error_log}")
    """
    if _error_handler is None:
        logger.warning("errors_logged() called but setup_logging() was not called")
        return None

    if _error_handler.error_count == 0:
        return None

    if _split_errors and _error_log_path:
        return _error_log_path
    return _main_log_path


def cleanup_old_logs(
    log_dir: Optional[str] = None,
    retention_days: Optional[int] = None,
    pattern: str = "*.log",
    dry_run: bool = False
) -> List[str]:
    """
    Remove log files older than retention period.

    Args:
        log_dir: Directory to clean (defaults to config setting or './logs')
        retention_days: Keep logs newer than this many days (defaults to config or 30)
        pattern: Glob pattern for log files (default: ``'*.log'``)
        dry_run: If True, only report what would be deleted

    Returns:
        List of deleted (or would-be-deleted if dry_run) file paths
    """
    from .config import get_setting

    logging_config = get_setting('logging', {})

    log_dir = log_dir or logging_config.get('directory') or './logs'
    retention_days = retention_days or logging_config.get('retention_days', 30)

    log_dir_path = Path(log_dir)
    if not log_dir_path.exists():
        logger.warning(f"Log directory does not exist: {log_dir_path}")
        return []

    cutoff = datetime.now() - timedelta(days=retention_days)
    deleted = []

    for log_file in log_dir_path.glob(pattern):
        if not log_file.is_file():
            continue

        file_mtime = datetime.fromtimestamp(log_file.stat().st_mtime)
        if file_mtime < cutoff:
            if dry_run:
                logger.info(f"Would delete: {log_file}")
            else:
                try:
                    log_file.unlink()
                    logger.info(f"Deleted old log: {log_file}")
                except OSError as e:
                    logger.warning(f"Failed to delete {log_file}: {e}")
                    continue
            deleted.append(str(log_file))

    if not dry_run and deleted:
        logger.info(f"Cleaned up {len(deleted)} old log files")

    return deleted


class ProgressReporter:
    """
    Live "Read N rows" counter for an interactive terminal.

    The line is rewritten in place with a carriage return every ``interval``
    rows. Nothing is written when the stream is not a terminal, so redirected
    output and log files stay clean.

    Parameters
    ----------
    stream : TextIO, optional
        Defaults to sys.stdout
    interval : int, optional
        Rows between updates. Defaults to settings['progress_interval'] (50)
    enabled : bool, optional
        Force reporting on or off; by default on only when the stream is a TTY

    Example
    -------
    ::

        progress = ProgressReporter()
        result = to_csv(cursor, 'posts.csv', progress=progress)
    """

    def __init__(self, stream: Optional[TextIO] = None, interval: Optional[int] = None,
                 enabled: Optional[bool] = None):
        from .defaults import settings

        self.stream = stream if stream is not None else sys.stdout
        if interval is None:
            interval = settings.get('progress_interval', 50)
        self.interval = max(int(interval), 1)
        if enabled is None:
            isatty = getattr(self.stream, 'isatty', None)
            enabled = bool(isatty and isatty())
        self.enabled = enabled
        self._shown = False

    def update(self, stats) -> None:
        """Called after every written row."""
        if not self.enabled or stats.rows % self.interval:
            return
        self.stream.write(f"Read {stats.rows} rows          \r")
        self.stream.flush()
        self._shown = True

    def finish(self, stats) -> None:
        """End the progress line so later output starts on a fresh line."""
        if self._shown:
            self.stream.write("\n")
            self.stream.flush()
            self._shown = False
