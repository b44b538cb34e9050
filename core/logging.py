"""
Logging configuration for the collaborative playlist using eliot.

Both the API server and the sync client log structured eliot messages. The
stdout destination renders them as one readable line each; an optional log
file receives the raw JSON messages for machine parsing.
"""

import eliot
import logging
import sys
from eliot import log_message, start_action, write_traceback
from eliot.stdlib import EliotHandler
from pathlib import Path

_configured = False


class HumanReadableDestination:
    """Destination that formats eliot messages as single readable lines."""

    def __init__(self, file):
        self.file = file

    def __call__(self, message):
        # Action start/finish bookkeeping carries no message_type
        if not message.get("message_type"):
            return

        msg_type = message["message_type"]
        description = message.get("description", "")

        if msg_type == "api_request":
            output = f"[API] {message.get('method', '')} {message.get('path', '')}".rstrip()
            if "status" in message:
                output += f" -> {message['status']}"
        elif msg_type == "playlist_operation":
            output = f"[PLAYLIST] {message.get('operation', '')}"
            if message.get("item_id"):
                output += f" {message['item_id']}"
        elif msg_type == "sync_event":
            output = f"[SYNC] {message.get('event', '')}"
            if description:
                output += f": {description}"
        elif msg_type == "error_occurred":
            output = f"[ERROR] {message.get('error_type', '')}: {message.get('error_message', '')}"
        elif description:
            output = description
        elif "message" in message:
            output = message["message"]
        else:
            return

        if output and output.strip():
            self.file.write(output + "\n")
            self.file.flush()


def setup_logging(log_level: str = "INFO", log_file: str | None = None) -> None:
    """
    Set up eliot logging for the application.

    Safe to call more than once; destinations are only added the first time.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path to write JSON logs to (always logs to stdout as well)
    """
    global _configured
    if _configured:
        return
    _configured = True

    eliot.add_destinations(HumanReadableDestination(sys.stdout))

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        eliot.to_file(open(log_path, "a"))

    # Route stdlib logging (uvicorn, requests) through eliot
    logger = logging.getLogger()
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    logger.addHandler(EliotHandler())

    log_message(
        message_type="logging_setup", log_level=log_level, log_file=log_file or "stdout", message="Eliot logging configured"
    )


def log_api_request(method: str, path: str, **context):
    """
    Log API requests with context.

    Args:
        method: HTTP method
        path: Request path
        **context: Additional context data (status, item ids, ...)
    """
    log_message(message_type="api_request", method=method, path=path, **context)


def log_playlist_operation(operation: str, **context):
    """
    Log playlist mutations with context.

    Args:
        operation: Mutation name (add, remove, vote, move, play)
        **context: Additional context data
    """
    log_message(message_type="playlist_operation", operation=operation, **context)


def log_sync_event(event: str, **context):
    """
    Log client synchronization events (status changes, replays, resyncs).

    Args:
        event: Short event name
        **context: Additional context data
    """
    log_message(message_type="sync_event", event=event, **context)


def log_error(error: Exception, **context):
    """
    Log errors with full context and traceback.

    Args:
        error: Exception that occurred
        **context: Additional context data
    """
    write_traceback(exc_info=(type(error), error, error.__traceback__))
    log_message(message_type="error_occurred", error_message=str(error), error_type=type(error).__name__, **context)


__all__ = [
    "setup_logging",
    "start_action",
    "log_api_request",
    "log_playlist_operation",
    "log_sync_event",
    "log_error",
]
