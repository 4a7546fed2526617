# utils/logger.py

import datetime
import traceback
from typing import Optional
import os
import sys
import config # LOG_DIRECTORY

LOG_DIRECTORY = config.LOG_DIRECTORY
ENGINE_LOG_FILE = os.path.join(LOG_DIRECTORY, "engine.log")
FAULT_LOG_FILE = os.path.join(LOG_DIRECTORY, "fault.log")

try:
    os.makedirs(LOG_DIRECTORY, exist_ok=True)
except OSError as e:
    # Console logging keeps working without the directory.
    sys.stderr.write(f"CRITICAL LOGGER SETUP ERROR: Could not create log directory: {e}\n")

def _write_traceback(exc_info, file=None):
    if exc_info is True:
        traceback.print_exc(file=file)
    elif isinstance(exc_info, tuple) and len(exc_info) == 3:
        traceback.print_exception(*exc_info, file=file)
    elif isinstance(exc_info, BaseException):
        traceback.print_exception(type(exc_info), exc_info, exc_info.__traceback__, file=file)

def log(message: str, level: str = "INFO", source: Optional[str] = None, **kwargs):
    """
    Prints a log line to the console and appends it to a log file chosen by severity:
    - INFO, DEBUG, WARN/WARNING, TRACE go to logs/engine.log.
    - ERROR, CRITICAL go to logs/fault.log.
    Pass exc_info=True (or an exception / exc tuple) to include a traceback.
    """
    timestamp = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    level_upper = level.upper()

    parts = [f"[{timestamp}]", f"[{level_upper}]"]
    if source:
        parts.append(f"[{source}]")
    parts.append(f"- {message}")
    formatted_message = " ".join(parts)

    print(formatted_message)

    target_file_path = None
    if level_upper in ("ERROR", "CRITICAL"):
        target_file_path = FAULT_LOG_FILE
    elif level_upper in ("INFO", "DEBUG", "WARN", "WARNING", "TRACE"):
        target_file_path = ENGINE_LOG_FILE

    exc_info = kwargs.get("exc_info", False)

    if target_file_path:
        try:
            with open(target_file_path, "a", encoding="utf-8") as f:
                f.write(formatted_message + "\n")
                if exc_info:
                    _write_traceback(exc_info, file=f)
        except Exception as e:
            # Write straight to stderr to avoid recursing into log().
            sys.stderr.write(f"[{timestamp}] [LOGGER_FILE_WRITE_ERROR] - Failed to write to log file {target_file_path}: {e}\n")

    if exc_info:
        _write_traceback(exc_info)
