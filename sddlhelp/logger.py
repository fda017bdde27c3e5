#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# File name          : logger.py

import logging


LOGGER_NAME = "sddlhelp"


class Logger(object):
    """
    Console logging for the sddlhelp logger. Messages are printed bare, warnings and above by default.
    """

    def __init__(self, level="WARNING", stream=None):
        self.logger = logging.getLogger(LOGGER_NAME)
        # Avoid stacking handlers when several Logger objects are created
        for handler in list(self.logger.handlers):
            if getattr(handler, "_sddlhelp_console", False):
                self.logger.removeHandler(handler)
        console_handler = logging.StreamHandler(stream)
        console_handler._sddlhelp_console = True
        log_console_format = logging.Formatter('[%(levelname)s] %(message)s')
        console_handler.setFormatter(log_console_format)
        self.logger.addHandler(console_handler)
        self.logger.propagate = False
        self.SetLoggingLevel(level)

    def getLogger(self, LoggerName=LOGGER_NAME):
        return logging.getLogger(LoggerName)

    def GetLoggingLevel(self):
        return logging.getLevelName(self.logger.getEffectiveLevel())

    def SetLoggingLevel(self, LoggingLevel):
        if LoggingLevel in ['DEBUG', 'INFO', 'WARNING', 'ERROR']:
            self.logger.setLevel(logging.getLevelName(LoggingLevel))
        else:
            self.logger.error('Unsupported logging level: %s' % LoggingLevel)
