#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# File name          : exceptions.py


class SddlHelpError(Exception):
    """Base class of every error raised by sddlhelp."""
    pass


class InvalidSIDFormat(SddlHelpError):
    pass


class InvalidGUIDFormat(SddlHelpError):
    pass


class AceDecodeError(SddlHelpError):
    """
    Raised when an ACE record cannot be decoded: truncated record, declared AceSize
    smaller than the fixed part, or an object ACE whose presence flags are not one of
    the four valid combinations.
    """

    def __init__(self, message, ace_type=None):
        super(AceDecodeError, self).__init__(message)
        self.ace_type = ace_type


class InvalidACL(SddlHelpError):
    pass


class InvalidSecurityDescriptor(SddlHelpError):
    pass


class SDDLConversionError(SddlHelpError):
    pass
