#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# File name          : permissions.py

from collections import namedtuple
from types import MappingProxyType

from sddlhelp.constants import *


UNRECOGNIZED_OBJECT_TYPE = "unrecognized object type"


PermissionVocabulary = namedtuple("PermissionVocabulary", ["tag", "aggregate", "generic", "specific", "standard"])
PermissionVocabulary.__doc__ = """
Named permission tables for one kind of securable object.

Each table is an ordered tuple of (mask, name) pairs:
    aggregate : composite masks matched only when the whole access mask equals them exactly
    generic   : GENERIC_* rights
    specific  : object-specific rights (the low 16 bits)
    standard  : DELETE, READ_CONTROL, WRITE_DAC, ...
"""


## Shared tables

GENERIC_RIGHTS = (
    (GENERIC_READ, "GENERIC_READ"),
    (GENERIC_WRITE, "GENERIC_WRITE"),
    (GENERIC_EXECUTE, "GENERIC_EXECUTE"),
    (GENERIC_ALL, "GENERIC_ALL"),
)

STANDARD_RIGHTS = (
    (DELETE, "DELETE"),
    (READ_CONTROL, "READ_CONTROL"),
    (WRITE_DAC, "WRITE_DAC"),
    (WRITE_OWNER, "WRITE_OWNER"),
    (SYNCHRONIZE, "SYNCHRONIZE"),
    (ACCESS_SYSTEM_SECURITY, "ACCESS_SYSTEM_SECURITY"),
    (MAXIMUM_ALLOWED, "MAXIMUM_ALLOWED"),
)

# Used as the specific table of the "standard" object type
STANDARD_AND_GENERIC_RIGHTS = (
    (DELETE, "DELETE"),
    (READ_CONTROL, "READ_CONTROL"),
    (WRITE_DAC, "WRITE_DAC"),
    (WRITE_OWNER, "WRITE_OWNER"),
    (SYNCHRONIZE, "SYNCHRONIZE"),
    (STANDARD_RIGHTS_REQUIRED, "STANDARD_RIGHTS_REQUIRED"),
    (ACCESS_SYSTEM_SECURITY, "ACCESS_SYSTEM_SECURITY"),
    (MAXIMUM_ALLOWED, "MAXIMUM_ALLOWED"),
) + GENERIC_RIGHTS


## Files, directories, pipes

FILE_SPECIFIC = (
    (FILE_READ_DATA, "FILE_READ_DATA"),
    (FILE_WRITE_DATA, "FILE_WRITE_DATA"),
    (FILE_APPEND_DATA, "FILE_APPEND_DATA"),
    (FILE_READ_EA, "FILE_READ_EA"),
    (FILE_WRITE_EA, "FILE_WRITE_EA"),
    (FILE_EXECUTE, "FILE_EXECUTE"),
    (FILE_READ_ATTRIBUTES, "FILE_READ_ATTRIBUTES"),
    (FILE_WRITE_ATTRIBUTES, "FILE_WRITE_ATTRIBUTES"),
)

DIRECTORY_SPECIFIC = (
    (FILE_LIST_DIRECTORY, "FILE_LIST_DIRECTORY"),
    (FILE_ADD_FILE, "FILE_ADD_FILE"),
    (FILE_ADD_SUBDIRECTORY, "FILE_ADD_SUBDIRECTORY"),
    (FILE_READ_EA, "FILE_READ_EA"),
    (FILE_WRITE_EA, "FILE_WRITE_EA"),
    (FILE_TRAVERSE, "FILE_TRAVERSE"),
    (FILE_DELETE_CHILD, "FILE_DELETE_CHILD"),
    (FILE_READ_ATTRIBUTES, "FILE_READ_ATTRIBUTES"),
    (FILE_WRITE_ATTRIBUTES, "FILE_WRITE_ATTRIBUTES"),
)

PIPE_SPECIFIC = (
    (FILE_READ_DATA, "FILE_READ_DATA"),
    (FILE_WRITE_DATA, "FILE_WRITE_DATA"),
    (FILE_CREATE_PIPE_INSTANCE, "FILE_CREATE_PIPE_INSTANCE"),
    (FILE_READ_ATTRIBUTES, "FILE_READ_ATTRIBUTES"),
    (FILE_WRITE_ATTRIBUTES, "FILE_WRITE_ATTRIBUTES"),
)

FILE_AGGREGATE = (
    (FILE_ALL_ACCESS, "FILE_ALL_ACCESS"),
    (FILE_GENERIC_READ, "FILE_GENERIC_READ"),
    (FILE_GENERIC_WRITE, "FILE_GENERIC_WRITE"),
    (FILE_GENERIC_EXECUTE, "FILE_GENERIC_EXECUTE"),
)


## Registry keys

KEY_SPECIFIC = (
    (KEY_QUERY_VALUE, "KEY_QUERY_VALUE"),
    (KEY_SET_VALUE, "KEY_SET_VALUE"),
    (KEY_CREATE_SUB_KEY, "KEY_CREATE_SUB_KEY"),
    (KEY_ENUMERATE_SUB_KEYS, "KEY_ENUMERATE_SUB_KEYS"),
    (KEY_NOTIFY, "KEY_NOTIFY"),
    (KEY_CREATE_LINK, "KEY_CREATE_LINK"),
    (KEY_WOW64_32KEY, "KEY_WOW64_32KEY"),
    (KEY_WOW64_64KEY, "KEY_WOW64_64KEY"),
)

# KEY_READ and KEY_EXECUTE share a value, KEY_READ is listed first and wins
KEY_AGGREGATE = (
    (KEY_READ, "KEY_READ"),
    (KEY_WRITE, "KEY_WRITE"),
    (KEY_EXECUTE, "KEY_EXECUTE"),
    (KEY_ALL_ACCESS, "KEY_ALL_ACCESS"),
)


## Services and the service control manager

SERVICE_SPECIFIC = (
    (SERVICE_QUERY_CONFIG, "SERVICE_QUERY_CONFIG"),
    (SERVICE_CHANGE_CONFIG, "SERVICE_CHANGE_CONFIG"),
    (SERVICE_QUERY_STATUS, "SERVICE_QUERY_STATUS"),
    (SERVICE_ENUMERATE_DEPENDENTS, "SERVICE_ENUMERATE_DEPENDENTS"),
    (SERVICE_START, "SERVICE_START"),
    (SERVICE_STOP, "SERVICE_STOP"),
    (SERVICE_PAUSE_CONTINUE, "SERVICE_PAUSE_CONTINUE"),
    (SERVICE_INTERROGATE, "SERVICE_INTERROGATE"),
    (SERVICE_USER_DEFINED_CONTROL, "SERVICE_USER_DEFINED_CONTROL"),
)

SERVICE_AGGREGATE = (
    (SERVICE_ALL_ACCESS, "SERVICE_ALL_ACCESS"),
)

SCM_SPECIFIC = (
    (SC_MANAGER_CONNECT, "SC_MANAGER_CONNECT"),
    (SC_MANAGER_CREATE_SERVICE, "SC_MANAGER_CREATE_SERVICE"),
    (SC_MANAGER_ENUMERATE_SERVICE, "SC_MANAGER_ENUMERATE_SERVICE"),
    (SC_MANAGER_LOCK, "SC_MANAGER_LOCK"),
    (SC_MANAGER_QUERY_LOCK_STATUS, "SC_MANAGER_QUERY_LOCK_STATUS"),
    (SC_MANAGER_MODIFY_BOOT_CONFIG, "SC_MANAGER_MODIFY_BOOT_CONFIG"),
)

SCM_AGGREGATE = (
    (SC_MANAGER_ALL_ACCESS, "SC_MANAGER_ALL_ACCESS"),
)


## Processes and threads

PROCESS_SPECIFIC = (
    (PROCESS_TERMINATE, "PROCESS_TERMINATE"),
    (PROCESS_CREATE_THREAD, "PROCESS_CREATE_THREAD"),
    (PROCESS_SET_SESSIONID, "PROCESS_SET_SESSIONID"),
    (PROCESS_VM_OPERATION, "PROCESS_VM_OPERATION"),
    (PROCESS_VM_READ, "PROCESS_VM_READ"),
    (PROCESS_VM_WRITE, "PROCESS_VM_WRITE"),
    (PROCESS_DUP_HANDLE, "PROCESS_DUP_HANDLE"),
    (PROCESS_CREATE_PROCESS, "PROCESS_CREATE_PROCESS"),
    (PROCESS_SET_QUOTA, "PROCESS_SET_QUOTA"),
    (PROCESS_SET_INFORMATION, "PROCESS_SET_INFORMATION"),
    (PROCESS_QUERY_INFORMATION, "PROCESS_QUERY_INFORMATION"),
    (PROCESS_SUSPEND_RESUME, "PROCESS_SUSPEND_RESUME"),
    (PROCESS_QUERY_LIMITED_INFORMATION, "PROCESS_QUERY_LIMITED_INFORMATION"),
    (PROCESS_SET_LIMITED_INFORMATION, "PROCESS_SET_LIMITED_INFORMATION"),
)

PROCESS_AGGREGATE = (
    (PROCESS_ALL_ACCESS, "PROCESS_ALL_ACCESS"),
)

THREAD_SPECIFIC = (
    (THREAD_TERMINATE, "THREAD_TERMINATE"),
    (THREAD_SUSPEND_RESUME, "THREAD_SUSPEND_RESUME"),
    (THREAD_GET_CONTEXT, "THREAD_GET_CONTEXT"),
    (THREAD_SET_CONTEXT, "THREAD_SET_CONTEXT"),
    (THREAD_QUERY_INFORMATION, "THREAD_QUERY_INFORMATION"),
    (THREAD_SET_INFORMATION, "THREAD_SET_INFORMATION"),
    (THREAD_SET_THREAD_TOKEN, "THREAD_SET_THREAD_TOKEN"),
    (THREAD_IMPERSONATE, "THREAD_IMPERSONATE"),
    (THREAD_DIRECT_IMPERSONATION, "THREAD_DIRECT_IMPERSONATION"),
    (THREAD_SET_LIMITED_INFORMATION, "THREAD_SET_LIMITED_INFORMATION"),
    (THREAD_QUERY_LIMITED_INFORMATION, "THREAD_QUERY_LIMITED_INFORMATION"),
    (THREAD_RESUME, "THREAD_RESUME"),
)

THREAD_AGGREGATE = (
    (THREAD_ALL_ACCESS, "THREAD_ALL_ACCESS"),
)


## Network shares

SHARE_SPECIFIC = (
    (SRVSVC_SHARE_CONNECT, "SRVSVC_SHARE_CONNECT"),
    (SRVSVC_PAUSED_SHARE_CONNECT, "SRVSVC_PAUSED_SHARE_CONNECT"),
)

SHARE_AGGREGATE = (
    (SRVSVC_SHARE_CONNECT_ALL_ACCESS, "SRVSVC_SHARE_CONNECT_ALL_ACCESS"),
)


## COM

COM_SPECIFIC = (
    (COM_RIGHTS_EXECUTE, "COM_RIGHTS_EXECUTE"),
    (COM_RIGHTS_EXECUTE_LOCAL, "COM_RIGHTS_EXECUTE_LOCAL"),
    (COM_RIGHTS_EXECUTE_REMOTE, "COM_RIGHTS_EXECUTE_REMOTE"),
    (COM_RIGHTS_ACTIVATE_LOCAL, "COM_RIGHTS_ACTIVATE_LOCAL"),
    (COM_RIGHTS_ACTIVATE_REMOTE, "COM_RIGHTS_ACTIVATE_REMOTE"),
)


## Window stations and desktops

WINSTA_SPECIFIC = (
    (WINSTA_ENUMDESKTOPS, "WINSTA_ENUMDESKTOPS"),
    (WINSTA_READATTRIBUTES, "WINSTA_READATTRIBUTES"),
    (WINSTA_ACCESSCLIPBOARD, "WINSTA_ACCESSCLIPBOARD"),
    (WINSTA_CREATEDESKTOP, "WINSTA_CREATEDESKTOP"),
    (WINSTA_WRITEATTRIBUTES, "WINSTA_WRITEATTRIBUTES"),
    (WINSTA_ACCESSGLOBALATOMS, "WINSTA_ACCESSGLOBALATOMS"),
    (WINSTA_EXITWINDOWS, "WINSTA_EXITWINDOWS"),
    (WINSTA_ENUMERATE, "WINSTA_ENUMERATE"),
    (WINSTA_READSCREEN, "WINSTA_READSCREEN"),
)

WINSTA_AGGREGATE = (
    (WINSTA_ALL_ACCESS, "WINSTA_ALL_ACCESS"),
)

DESKTOP_SPECIFIC = (
    (DESKTOP_READOBJECTS, "DESKTOP_READOBJECTS"),
    (DESKTOP_CREATEWINDOW, "DESKTOP_CREATEWINDOW"),
    (DESKTOP_CREATEMENU, "DESKTOP_CREATEMENU"),
    (DESKTOP_HOOKCONTROL, "DESKTOP_HOOKCONTROL"),
    (DESKTOP_JOURNALRECORD, "DESKTOP_JOURNALRECORD"),
    (DESKTOP_JOURNALPLAYBACK, "DESKTOP_JOURNALPLAYBACK"),
    (DESKTOP_ENUMERATE, "DESKTOP_ENUMERATE"),
    (DESKTOP_WRITEOBJECTS, "DESKTOP_WRITEOBJECTS"),
    (DESKTOP_SWITCHDESKTOP, "DESKTOP_SWITCHDESKTOP"),
)


## Sections and file mappings

SECTION_SPECIFIC = (
    (SECTION_QUERY, "SECTION_QUERY"),
    (SECTION_MAP_WRITE, "SECTION_MAP_WRITE"),
    (SECTION_MAP_READ, "SECTION_MAP_READ"),
    (SECTION_MAP_EXECUTE, "SECTION_MAP_EXECUTE"),
    (SECTION_EXTEND_SIZE, "SECTION_EXTEND_SIZE"),
    (SECTION_MAP_EXECUTE_EXPLICIT, "SECTION_MAP_EXECUTE_EXPLICIT"),
)

SECTION_AGGREGATE = (
    (SECTION_ALL_ACCESS, "SECTION_ALL_ACCESS"),
)

FILEMAP_SPECIFIC = (
    (FILE_MAP_WRITE, "FILE_MAP_WRITE"),
    (FILE_MAP_READ, "FILE_MAP_READ"),
    (FILE_MAP_EXECUTE, "FILE_MAP_EXECUTE"),
    (FILE_MAP_COPY, "FILE_MAP_COPY"),
    (FILE_MAP_RESERVE, "FILE_MAP_RESERVE"),
    (FILE_MAP_TARGETS_INVALID, "FILE_MAP_TARGETS_INVALID"),
    (FILE_MAP_LARGE_PAGES, "FILE_MAP_LARGE_PAGES"),
)

FILEMAP_AGGREGATE = (
    (FILE_MAP_ALL_ACCESS, "FILE_MAP_ALL_ACCESS"),
)


## Event logs

EVT_SPECIFIC = (
    (EVT_READ_ACCESS, "EVT_READ_ACCESS"),
    (EVT_WRITE_ACCESS, "EVT_WRITE_ACCESS"),
    (EVT_CLEAR_ACCESS, "EVT_CLEAR_ACCESS"),
)

EVT_AGGREGATE = (
    (EVT_ALL_ACCESS, "EVT_ALL_ACCESS"),
)


## Tokens

TOKEN_SPECIFIC = (
    (TOKEN_ASSIGN_PRIMARY, "TOKEN_ASSIGN_PRIMARY"),
    (TOKEN_DUPLICATE, "TOKEN_DUPLICATE"),
    (TOKEN_IMPERSONATE, "TOKEN_IMPERSONATE"),
    (TOKEN_QUERY, "TOKEN_QUERY"),
    (TOKEN_QUERY_SOURCE, "TOKEN_QUERY_SOURCE"),
    (TOKEN_ADJUST_PRIVILEGES, "TOKEN_ADJUST_PRIVILEGES"),
    (TOKEN_ADJUST_GROUPS, "TOKEN_ADJUST_GROUPS"),
    (TOKEN_ADJUST_DEFAULT, "TOKEN_ADJUST_DEFAULT"),
    (TOKEN_ADJUST_SESSIONID, "TOKEN_ADJUST_SESSIONID"),
)

TOKEN_AGGREGATE = (
    (TOKEN_ALL_ACCESS, "TOKEN_ALL_ACCESS"),
    (TOKEN_READ, "TOKEN_READ"),
    (TOKEN_WRITE, "TOKEN_WRITE"),
    (TOKEN_EXECUTE, "TOKEN_EXECUTE"),
    (TOKEN_TRUST_CONSTRAINT_MASK, "TOKEN_TRUST_CONSTRAINT_MASK"),
    (TOKEN_ACCESS_PSEUDO_HANDLE_WIN8, "TOKEN_ACCESS_PSEUDO_HANDLE_WIN8"),
)


## Directory service objects

NTDS_SPECIFIC = (
    (ADS_RIGHT_DS_CREATE_CHILD, "ADS_RIGHT_DS_CREATE_CHILD"),
    (ADS_RIGHT_DS_DELETE_CHILD, "ADS_RIGHT_DS_DELETE_CHILD"),
    (ADS_RIGHT_ACTRL_DS_LIST, "ADS_RIGHT_ACTRL_DS_LIST"),
    (ADS_RIGHT_DS_SELF, "ADS_RIGHT_DS_SELF"),
    (ADS_RIGHT_DS_READ_PROP, "ADS_RIGHT_DS_READ_PROP"),
    (ADS_RIGHT_DS_WRITE_PROP, "ADS_RIGHT_DS_WRITE_PROP"),
    (ADS_RIGHT_DS_DELETE_TREE, "ADS_RIGHT_DS_DELETE_TREE"),
    (ADS_RIGHT_DS_LIST_OBJECT, "ADS_RIGHT_DS_LIST_OBJECT"),
    (ADS_RIGHT_DS_CONTROL_ACCESS, "ADS_RIGHT_DS_CONTROL_ACCESS"),
    (ADS_RIGHT_DELETE, "ADS_RIGHT_DELETE"),
    (ADS_RIGHT_READ_CONTROL, "ADS_RIGHT_READ_CONTROL"),
    (ADS_RIGHT_WRITE_DAC, "ADS_RIGHT_WRITE_DAC"),
    (ADS_RIGHT_WRITE_OWNER, "ADS_RIGHT_WRITE_OWNER"),
    (ADS_RIGHT_SYNCHRONIZE, "ADS_RIGHT_SYNCHRONIZE"),
    (ADS_RIGHT_ACCESS_SYSTEM_SECURITY, "ADS_RIGHT_ACCESS_SYSTEM_SECURITY"),
    (ADS_RIGHT_GENERIC_READ, "ADS_RIGHT_GENERIC_READ"),
    (ADS_RIGHT_GENERIC_WRITE, "ADS_RIGHT_GENERIC_WRITE"),
    (ADS_RIGHT_GENERIC_EXECUTE, "ADS_RIGHT_GENERIC_EXECUTE"),
    (ADS_RIGHT_GENERIC_ALL, "ADS_RIGHT_GENERIC_ALL"),
)


def _vocabulary(tag, specific, aggregate=()):
    return PermissionVocabulary(
        tag=tag,
        aggregate=aggregate,
        generic=GENERIC_RIGHTS,
        specific=specific,
        standard=STANDARD_RIGHTS
    )


VOCABULARIES = MappingProxyType({
    "file": _vocabulary("file", FILE_SPECIFIC, FILE_AGGREGATE),
    "dir": _vocabulary("dir", DIRECTORY_SPECIFIC, FILE_AGGREGATE),
    "pipe": _vocabulary("pipe", PIPE_SPECIFIC, FILE_AGGREGATE),
    "key": _vocabulary("key", KEY_SPECIFIC, KEY_AGGREGATE),
    "share": _vocabulary("share", SHARE_SPECIFIC, SHARE_AGGREGATE),
    "process": _vocabulary("process", PROCESS_SPECIFIC, PROCESS_AGGREGATE),
    "thread": _vocabulary("thread", THREAD_SPECIFIC, THREAD_AGGREGATE),
    "service": _vocabulary("service", SERVICE_SPECIFIC, SERVICE_AGGREGATE),
    "scm": _vocabulary("scm", SCM_SPECIFIC, SCM_AGGREGATE),
    "com": _vocabulary("com", COM_SPECIFIC),
    "winsta": _vocabulary("winsta", WINSTA_SPECIFIC, WINSTA_AGGREGATE),
    "desktop": _vocabulary("desktop", DESKTOP_SPECIFIC),
    "section": _vocabulary("section", SECTION_SPECIFIC, SECTION_AGGREGATE),
    "filemap": _vocabulary("filemap", FILEMAP_SPECIFIC, FILEMAP_AGGREGATE),
    "evt": _vocabulary("evt", EVT_SPECIFIC, EVT_AGGREGATE),
    "token": _vocabulary("token", TOKEN_SPECIFIC, TOKEN_AGGREGATE),
    "ntds": _vocabulary("ntds", NTDS_SPECIFIC),
    "standard": _vocabulary("standard", STANDARD_AND_GENERIC_RIGHTS),
})

OBJECT_TYPE_DESCRIPTIONS = MappingProxyType({
    "file": "File",
    "dir": "Directory",
    "pipe": "Named pipe",
    "key": "Registry key",
    "share": "Network share",
    "process": "Process",
    "thread": "Thread",
    "service": "Service",
    "scm": "Service control manager",
    "com": "COM object",
    "winsta": "Window station",
    "desktop": "Desktop",
    "section": "Section",
    "filemap": "File mapping",
    "evt": "Event log",
    "token": "Access token",
    "ntds": "Active Directory object",
    "standard": "Standard and generic rights only",
})


def lookup(tag):
    """
    Returns the PermissionVocabulary registered under tag, compared case-insensitively, or None.
    """
    if not isinstance(tag, str):
        return None
    return VOCABULARIES.get(tag.lower(), None)


def resolve_permissions(mask, tag):
    """
    Translates a 32-bit access mask into permission names specific to an object type.

    The mask is first compared against the aggregate rights of the object type: an exact match
    gives that single name. Otherwise the generic, then the specific, then the standard rights
    are walked in order, and every right whose bits are all still present in the mask is named
    and its bits removed from the mask.

    Args:
        mask (int): The access mask.
        tag (str): The object type, for example "file", "key" or "ntds".

    Returns:
        tuple: (names, residual) where residual holds the bits no name accounted for. An unknown
               object type gives (["unrecognized object type"], mask).
    """
    mask = int(mask) & 0xffffffff

    vocabulary = lookup(tag)
    if vocabulary is None:
        return [UNRECOGNIZED_OBJECT_TYPE], mask

    for __mask, __name in vocabulary.aggregate:
        if mask == __mask:
            return [__name], 0

    names = []
    remaining = mask
    for table in (vocabulary.generic, vocabulary.specific, vocabulary.standard):
        for __mask, __name in table:
            if (remaining & __mask) == __mask:
                names.append(__name)
                remaining &= ~__mask

    return names, remaining
