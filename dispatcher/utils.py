import logging

LOGGER_NAME = 'sandbox'


def logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)
