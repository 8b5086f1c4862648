import logging
import os

LOGGER_NAME = "DiscordDisk"


def setup_enhanced_logging(name=LOGGER_NAME, log_file=None):
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(logging.DEBUG)
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
        )
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)
        if log_file is None:
            log_file = os.getenv("LOG_FILE", "discorddisk.log")
        if log_file:
            try:
                file_handler = logging.FileHandler(log_file)
                file_handler.setLevel(logging.DEBUG)
                file_handler.setFormatter(formatter)
                logger.addHandler(file_handler)
            except OSError as e:
                logger.warning(f"File logging disabled ({log_file}): {e}")
    return logger


def set_level(level):
    """Apply a level name like 'DEBUG' to the logger and its console handler."""
    logger.setLevel(level)
    for handler in logger.handlers:
        if not isinstance(handler, logging.FileHandler):
            handler.setLevel(level)


logger = setup_enhanced_logging()
