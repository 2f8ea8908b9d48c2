import logging

from .. import config

# Root logger for the controller
logger = logging.getLogger("diagram_controller")

formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
handler = logging.StreamHandler()
handler.setFormatter(formatter)
logger.addHandler(handler)
logger.setLevel(config.LOG_LEVEL.upper())


def get_logger(name=None):
    if name:
        return logging.getLogger(f"diagram_controller.{name}")
    return logger
