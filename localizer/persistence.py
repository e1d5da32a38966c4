"""Run-wide state and the shutdown flush shared by normal exit and signal handlers."""
import logging
import shutil
import signal
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from localizer.cache_store import CacheRecord
from localizer.json_io import write_json_file
from localizer.messages import Messages

logger = logging.getLogger(__name__)

# Exit status after a termination signal
SIGNAL_EXIT_CODE = 1


@dataclass
class AppState:
    """
    Everything the shutdown routine needs, for one run.

    ``files_to_write`` maps a file path to the live object that will be
    serialized at shutdown, so later in-memory mutations are picked up.
    """
    messages: Messages = field(default_factory=Messages)
    files_to_write: Dict[str, Union[Dict[str, Any], CacheRecord]] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    tmp_dir: Optional[str] = None
    shut_down: bool = False
    # Set while shutdown is writing files; a signal then only records exit_requested
    flushing: bool = False
    exit_requested: bool = False

    def mark_dirty(self, path: str, data: Union[Dict[str, Any], CacheRecord]) -> None:
        if path not in self.files_to_write:
            logger.debug(f"Noting write-on-quit needed for {path}...")
            self.files_to_write[path] = data


def flush_pending_files(app_state: AppState) -> int:
    """Write every pending file once; a failure on one file does not stop the rest."""
    written = 0
    for path, data in list(app_state.files_to_write.items()):
        if isinstance(data, CacheRecord):
            data = data.to_dict()
        if write_json_file(path, data):
            written += 1
    return written


def remove_tmp_dir(tmp_dir: Optional[str]) -> None:
    if not tmp_dir:
        return
    try:
        shutil.rmtree(tmp_dir)
        logger.debug(f"Removed temporary directory '{tmp_dir}'")
    except FileNotFoundError:
        pass
    except OSError as clean_exc:
        logger.error(f"Error cleaning up temporary directory '{tmp_dir}': {clean_exc}")


def shutdown(app_state: AppState, kill: bool = False) -> None:
    """
    Flush pending files, report errors and remove the temp dir.

    Safe to call more than once: only the first call writes anything. With
    ``kill`` set the process then exits with a non-zero status. A kill that
    arrives while a flush is running is deferred until that flush returns.

    Args:
        app_state: The run's state.
        kill: True when called from a termination signal handler.

    Raises:
        SystemExit: When ``kill`` is set, or a kill was deferred during the flush.
    """
    if app_state.flushing:
        if kill:
            logger.debug("Termination requested during flush; exiting once it completes")
            app_state.exit_requested = True
        return

    if not app_state.shut_down:
        app_state.flushing = True
        app_state.shut_down = True
        try:
            if kill:
                logger.info(app_state.messages.get('msg-forcing-shutdown'))

            if app_state.errors:
                logger.error(app_state.messages.format('msg-encountered-errors', errors='\n'.join(app_state.errors)))

            written = flush_pending_files(app_state)
            logger.debug(f"Wrote {written} files to disk.")

            remove_tmp_dir(app_state.tmp_dir)
        finally:
            app_state.flushing = False

    if kill or app_state.exit_requested:
        raise SystemExit(SIGNAL_EXIT_CODE)


def register_signal_handlers(app_state: AppState) -> Dict[int, Any]:
    """
    Run ``shutdown(app_state, kill=True)`` on SIGINT and SIGTERM.

    Python runs signal handlers on the main thread between bytecodes, so the
    flush sees a consistent state: no task mutates tables while it runs.

    Returns:
        The previous handlers, keyed by signal number.
    """
    def handle_signal(signum, frame):
        logger.debug(f"Received signal {signum}")
        shutdown(app_state, kill=True)

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, handle_signal)
    return previous


def restore_signal_handlers(previous: Dict[int, Any]) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)
