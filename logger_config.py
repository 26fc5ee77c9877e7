import logging
import sys
import os
import json
from logging.handlers import RotatingFileHandler

class JsonFormatter(logging.Formatter):
    def format(self, record):
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.levelno >= logging.ERROR:
            log_record["module"] = record.module
            log_record["line"] = record.lineno
            if record.exc_info:
                log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record)

def setup_logging(log_filename="logs/app.jsonl", debug_mode=False, max_size_mb=10, backup_count=5):
    log_folder = os.path.dirname(log_filename)
    if log_folder:
        os.makedirs(log_folder, exist_ok=True)

    logger = logging.getLogger()

    # Drop handlers from a previous setup
    if logger.hasHandlers():
        logger.handlers.clear()

    logger.setLevel(logging.DEBUG if debug_mode else logging.INFO)

    # 1. File handler, one JSON object per line
    file_handler = RotatingFileHandler(
        log_filename,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding='utf-8'
    )
    file_handler.setFormatter(JsonFormatter(datefmt='%Y-%m-%d %H:%M:%S'))

    # 2. Console handler
    console_formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(name)s: %(message)s', datefmt='%H:%M:%S')
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(console_formatter)
    console_handler.setLevel(logging.INFO)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    lib_level = logging.DEBUG if debug_mode else logging.WARNING
    for lib in ["libtorrent", "asyncio", "prompt_toolkit"]:
        logging.getLogger(lib).setLevel(lib_level)

    if debug_mode:
        print(f"🔧 DEBUG MODE: ENABLED (Log: {log_filename}, Max: {max_size_mb}MB x {backup_count})")

    return logger
