import os
import datetime
import threading
import json

from yap.modules.config import config


class Logger:
    LEVELS = {
        "debug": 10,
        "info": 20,
        "success": 25,
        "warning": 30,
        "error": 40,
    }

    LOG_COLORS = {
        "DEBUG": "\033[90m",    # grey
        "INFO": "\033[94m",     # blue
        "SUCCESS": "\033[92m",  # green
        "WARNING": "\033[93m",  # yellow
        "ERROR": "\033[91m",    # red
        "RESET": "\033[0m"
    }

    # one lock for every logger: parallel workers log from many components
    _lock = threading.Lock()
    _level_override = None

    def __init__(self, name="yap"):
        self.name = name
        self.log_file = os.path.expanduser(
            config.get("logging", "log_file", fallback="~/.local/state/yap/yap.log"))
        self.color_output = config.getboolean("logging", "color_output", fallback=True)
        self.log_to_file = config.getboolean("logging", "log_to_file", fallback=False)
        self.log_to_console = config.getboolean("logging", "log_to_console", fallback=True)
        self.use_utc = config.getboolean("logging", "timestamp_utc", fallback=False)
        self.log_format = config.get("logging", "log_format", fallback="text").lower()
        self.max_log_size_kb = config.getint("logging", "max_log_size_kb", fallback=0)

        level_str = config.get("logging", "level", fallback="info").lower()
        self.min_level = self.LEVELS.get(level_str, 20)

        if self.log_to_file:
            self._ensure_dir(self.log_file)

    @classmethod
    def set_level(cls, level):
        """Force a level on every logger (``--verbose`` switches to debug)."""
        cls._level_override = cls.LEVELS.get(level.lower()) if level else None

    def _ensure_dir(self, filepath):
        dirpath = os.path.dirname(filepath)
        try:
            os.makedirs(dirpath, exist_ok=True)
        except OSError as e:
            print(f"Logger: failed to create log directory {dirpath}: {e}")

    def _get_timestamp(self):
        if self.use_utc:
            now = datetime.datetime.now(datetime.timezone.utc)
        else:
            now = datetime.datetime.now()
        return now.strftime("%Y-%m-%d %H:%M:%S")

    def _rotate_if_needed(self, filepath):
        if self.max_log_size_kb <= 0:
            return
        if os.path.exists(filepath) and os.path.getsize(filepath) > self.max_log_size_kb * 1024:
            rotated = filepath + ".1"
            try:
                if os.path.exists(rotated):
                    os.remove(rotated)
                os.rename(filepath, rotated)
            except OSError as e:
                print(f"Logger: failed to rotate log {filepath}: {e}")

    def _write_file(self, filepath, message):
        if not self.log_to_file:
            return
        self._rotate_if_needed(filepath)
        try:
            with open(filepath, "a", encoding="utf-8") as f:
                f.write(message + "\n")
        except OSError as e:
            print(f"Logger: failed to write log file {filepath}: {e}")

    def _format_text(self, level, message, fields):
        timestamp = self._get_timestamp()
        line = f"[{timestamp}] [{self.name}] [{level}] {message}"
        if fields:
            line += " " + " ".join(f"{k}={v}" for k, v in fields.items())
        return line

    def _format_json(self, level, message, fields):
        record = {
            "timestamp": self._get_timestamp(),
            "logger": self.name,
            "level": level,
            "message": message
        }
        record.update({k: v if isinstance(v, (int, float, bool)) else str(v) for k, v in fields.items()})
        return json.dumps(record)

    def _format_message(self, level, message, fields):
        if self.log_format == "json":
            return self._format_json(level, message, fields)
        return self._format_text(level, message, fields)

    def _log_to_console(self, formatted, level):
        if not self.log_to_console:
            return
        if self.color_output and self.log_format == "text":
            color = self.LOG_COLORS.get(level.upper(), "")
            reset = self.LOG_COLORS.get("RESET", "")
            print(f"{color}{formatted}{reset}", flush=True)
        else:
            print(formatted, flush=True)

    def _should_log(self, level):
        threshold = self._level_override if self._level_override is not None else self.min_level
        return self.LEVELS.get(level.lower(), 0) >= threshold

    def log(self, level, message, **fields):
        level = level.upper()
        if not self._should_log(level):
            return

        formatted = self._format_message(level, message, fields)
        with self._lock:
            self._log_to_console(formatted, level)
            self._write_file(self.log_file, formatted)

    def debug(self, message, **fields):
        self.log("DEBUG", message, **fields)

    def info(self, message, **fields):
        self.log("INFO", message, **fields)

    def success(self, message, **fields):
        self.log("SUCCESS", message, **fields)

    def warning(self, message, **fields):
        self.log("WARNING", message, **fields)

    def error(self, message, **fields):
        self.log("ERROR", message, **fields)
