"""
Logging utilities for MitoAssembler.
Sets up multi-level logging to console and a run log file.
"""

import logging
import sys
import multiprocessing
from pathlib import Path
from logging.handlers import QueueHandler, QueueListener

def setup_logging(log_file: Path):
    """
    Setup logging to both stdout (INFO) and the given log file (DEBUG), truncating any earlier log.
    Supports multiprocessing via a QueueListener.

    :param log_file: Path of the run log; its directory is created if needed.
    :return: A tuple (queue, listener). The queue can be passed to workers for logging.
    """
    log_file.parent.mkdir(parents=True, exist_ok=True)

    # Timestamps, log levels and module names on every line
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    # Console handler (INFO)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)

    # File handler (DEBUG)
    file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    # Queue for multiprocessing
    queue = multiprocessing.Manager().Queue(-1)

    # Listener in the main process
    listener = QueueListener(queue, console_handler, file_handler, respect_handler_level=True)
    listener.start()

    # Configure root logger in main process to use the queue
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    # Remove existing handlers
    for h in root.handlers[:]:
        root.removeHandler(h)
    root.addHandler(QueueHandler(queue))

    root.info(f"Logging initialized. Log file: {log_file}")

    return queue, listener

def worker_configurer(queue):
    """
    Configure a worker process to log to the central queue.
    """
    h = QueueHandler(queue)
    root = logging.getLogger()
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(h)
    root.setLevel(logging.DEBUG)
