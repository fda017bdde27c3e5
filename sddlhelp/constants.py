#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# File name          : constants.py

from enum import Enum, IntEnum, IntFlag


## Access mask bits shared by every securable object
# Source: https://learn.microsoft.com/en-us/openspecs/windows_protocols/ms-dtyp/7a53f60e-e730-4dfe-bbe9-b21b62eb790b

DELETE = 0x00010000
READ_CONTROL = 0x00020000
WRITE_DAC = 0x00040000
WRITE_OWNER = 0x00080000
SYNCHRONIZE = 0x00100000
STANDARD_RIGHTS_REQUIRED = 0x000F0000
STANDARD_RIGHTS_READ = READ_CONTROL
STANDARD_RIGHTS_WRITE = READ_CONTROL
STANDARD_RIGHTS_EXECUTE = READ_CONTROL
STANDARD_RIGHTS_ALL = 0x001F0000
SPECIFIC_RIGHTS_ALL = 0x0000FFFF
ACCESS_SYSTEM_SECURITY = 0x01000000
MAXIMUM_ALLOWED = 0x02000000

GENERIC_ALL = 0x10000000
GENERIC_EXECUTE = 0x20000000
GENERIC_WRITE = 0x40000000
GENERIC_READ = 0x80000000

## Files, directories and named pipes
# Source: https://learn.microsoft.com/en-us/windows/win32/fileio/file-access-rights-constants

FILE_READ_DATA = 0x0001
FILE_LIST_DIRECTORY = 0x0001
FILE_WRITE_DATA = 0x0002
FILE_ADD_FILE = 0x0002
FILE_APPEND_DATA = 0x0004
FILE_ADD_SUBDIRECTORY = 0x0004
FILE_CREATE_PIPE_INSTANCE = 0x0004
FILE_READ_EA = 0x0008
FILE_WRITE_EA = 0x0010
FILE_EXECUTE = 0x0020
FILE_TRAVERSE = 0x0020
FILE_DELETE_CHILD = 0x0040
FILE_READ_ATTRIBUTES = 0x0080
FILE_WRITE_ATTRIBUTES = 0x0100

FILE_ALL_ACCESS = STANDARD_RIGHTS_REQUIRED | SYNCHRONIZE | 0x1FF
FILE_GENERIC_READ = STANDARD_RIGHTS_READ | FILE_READ_DATA | FILE_READ_ATTRIBUTES | FILE_READ_EA | SYNCHRONIZE
FILE_GENERIC_WRITE = STANDARD_RIGHTS_WRITE | FILE_WRITE_DATA | FILE_WRITE_ATTRIBUTES | FILE_WRITE_EA | FILE_APPEND_DATA | SYNCHRONIZE
FILE_GENERIC_EXECUTE = STANDARD_RIGHTS_EXECUTE | FILE_READ_ATTRIBUTES | FILE_EXECUTE | SYNCHRONIZE

## Registry keys
# Source: https://learn.microsoft.com/en-us/windows/win32/sysinfo/registry-key-security-and-access-rights

KEY_QUERY_VALUE = 0x0001
KEY_SET_VALUE = 0x0002
KEY_CREATE_SUB_KEY = 0x0004
KEY_ENUMERATE_SUB_KEYS = 0x0008
KEY_NOTIFY = 0x0010
KEY_CREATE_LINK = 0x0020
KEY_WOW64_64KEY = 0x0100
KEY_WOW64_32KEY = 0x0200

KEY_READ = (STANDARD_RIGHTS_READ | KEY_QUERY_VALUE | KEY_ENUMERATE_SUB_KEYS | KEY_NOTIFY) & ~SYNCHRONIZE
KEY_WRITE = (STANDARD_RIGHTS_WRITE | KEY_SET_VALUE | KEY_CREATE_SUB_KEY) & ~SYNCHRONIZE
KEY_EXECUTE = KEY_READ & ~SYNCHRONIZE
KEY_ALL_ACCESS = (STANDARD_RIGHTS_ALL | KEY_QUERY_VALUE | KEY_SET_VALUE | KEY_CREATE_SUB_KEY | KEY_ENUMERATE_SUB_KEYS | KEY_NOTIFY | KEY_CREATE_LINK) & ~SYNCHRONIZE

## Services and the service control manager
# Source: https://learn.microsoft.com/en-us/windows/win32/services/service-security-and-access-rights

SERVICE_QUERY_CONFIG = 0x0001
SERVICE_CHANGE_CONFIG = 0x0002
SERVICE_QUERY_STATUS = 0x0004
SERVICE_ENUMERATE_DEPENDENTS = 0x0008
SERVICE_START = 0x0010
SERVICE_STOP = 0x0020
SERVICE_PAUSE_CONTINUE = 0x0040
SERVICE_INTERROGATE = 0x0080
SERVICE_USER_DEFINED_CONTROL = 0x0100
SERVICE_ALL_ACCESS = STANDARD_RIGHTS_REQUIRED | 0x01FF

SC_MANAGER_CONNECT = 0x0001
SC_MANAGER_CREATE_SERVICE = 0x0002
SC_MANAGER_ENUMERATE_SERVICE = 0x0004
SC_MANAGER_LOCK = 0x0008
SC_MANAGER_QUERY_LOCK_STATUS = 0x0010
SC_MANAGER_MODIFY_BOOT_CONFIG = 0x0020
SC_MANAGER_ALL_ACCESS = STANDARD_RIGHTS_REQUIRED | 0x003F

## Processes and threads
# Source: https://learn.microsoft.com/en-us/windows/win32/procthread/process-security-and-access-rights

PROCESS_TERMINATE = 0x0001
PROCESS_CREATE_THREAD = 0x0002
PROCESS_SET_SESSIONID = 0x0004
PROCESS_VM_OPERATION = 0x0008
PROCESS_VM_READ = 0x0010
PROCESS_VM_WRITE = 0x0020
PROCESS_DUP_HANDLE = 0x0040
PROCESS_CREATE_PROCESS = 0x0080
PROCESS_SET_QUOTA = 0x0100
PROCESS_SET_INFORMATION = 0x0200
PROCESS_QUERY_INFORMATION = 0x0400
PROCESS_SUSPEND_RESUME = 0x0800
PROCESS_QUERY_LIMITED_INFORMATION = 0x1000
PROCESS_SET_LIMITED_INFORMATION = 0x2000
PROCESS_ALL_ACCESS = STANDARD_RIGHTS_REQUIRED | SYNCHRONIZE | 0xFFFF

THREAD_TERMINATE = 0x0001
THREAD_SUSPEND_RESUME = 0x0002
THREAD_GET_CONTEXT = 0x0008
THREAD_SET_CONTEXT = 0x0010
THREAD_SET_INFORMATION = 0x0020
THREAD_QUERY_INFORMATION = 0x0040
THREAD_SET_THREAD_TOKEN = 0x0080
THREAD_IMPERSONATE = 0x0100
THREAD_DIRECT_IMPERSONATION = 0x0200
THREAD_SET_LIMITED_INFORMATION = 0x0400
THREAD_QUERY_LIMITED_INFORMATION = 0x0800
THREAD_RESUME = 0x1000
THREAD_ALL_ACCESS = STANDARD_RIGHTS_REQUIRED | SYNCHRONIZE | 0xFFFF

## Network shares (srvsvc)

SRVSVC_SHARE_CONNECT = 0x0001
SRVSVC_PAUSED_SHARE_CONNECT = 0x0002
SRVSVC_SHARE_CONNECT_ALL_ACCESS = STANDARD_RIGHTS_REQUIRED | SRVSVC_SHARE_CONNECT | SRVSVC_PAUSED_SHARE_CONNECT

## COM launch and access permissions

COM_RIGHTS_EXECUTE = 0x0001
COM_RIGHTS_EXECUTE_LOCAL = 0x0002
COM_RIGHTS_EXECUTE_REMOTE = 0x0004
COM_RIGHTS_ACTIVATE_LOCAL = 0x0008
COM_RIGHTS_ACTIVATE_REMOTE = 0x0010

## Window stations and desktops
# Source: https://learn.microsoft.com/en-us/windows/win32/winstation/window-station-security-and-access-rights

WINSTA_ENUMDESKTOPS = 0x0001
WINSTA_READATTRIBUTES = 0x0002
WINSTA_ACCESSCLIPBOARD = 0x0004
WINSTA_CREATEDESKTOP = 0x0008
WINSTA_WRITEATTRIBUTES = 0x0010
WINSTA_ACCESSGLOBALATOMS = 0x0020
WINSTA_EXITWINDOWS = 0x0040
WINSTA_ENUMERATE = 0x0100
WINSTA_READSCREEN = 0x0200
WINSTA_ALL_ACCESS = 0x037F

DESKTOP_READOBJECTS = 0x0001
DESKTOP_CREATEWINDOW = 0x0002
DESKTOP_CREATEMENU = 0x0004
DESKTOP_HOOKCONTROL = 0x0008
DESKTOP_JOURNALRECORD = 0x0010
DESKTOP_JOURNALPLAYBACK = 0x0020
DESKTOP_ENUMERATE = 0x0040
DESKTOP_WRITEOBJECTS = 0x0080
DESKTOP_SWITCHDESKTOP = 0x0100

## Sections and file mappings
# Source: https://learn.microsoft.com/en-us/windows/win32/memory/file-mapping-security-and-access-rights

SECTION_QUERY = 0x0001
SECTION_MAP_WRITE = 0x0002
SECTION_MAP_READ = 0x0004
SECTION_MAP_EXECUTE = 0x0008
SECTION_EXTEND_SIZE = 0x0010
SECTION_MAP_EXECUTE_EXPLICIT = 0x0020
SECTION_ALL_ACCESS = STANDARD_RIGHTS_REQUIRED | SECTION_QUERY | SECTION_MAP_WRITE | SECTION_MAP_READ | SECTION_MAP_EXECUTE | SECTION_EXTEND_SIZE

FILE_MAP_COPY = 0x00000001
FILE_MAP_WRITE = SECTION_MAP_WRITE
FILE_MAP_READ = SECTION_MAP_READ
FILE_MAP_EXECUTE = SECTION_MAP_EXECUTE_EXPLICIT
FILE_MAP_LARGE_PAGES = 0x20000000
FILE_MAP_TARGETS_INVALID = 0x40000000
FILE_MAP_RESERVE = 0x80000000
FILE_MAP_ALL_ACCESS = SECTION_ALL_ACCESS

## Event log channels
# Source: https://learn.microsoft.com/en-us/windows/win32/api/winevt/ne-winevt-evt_channel_config_property_id

EVT_READ_ACCESS = 0x1
EVT_WRITE_ACCESS = 0x2
EVT_CLEAR_ACCESS = 0x4
EVT_ALL_ACCESS = 0x7

## Access tokens
# Source: https://learn.microsoft.com/en-us/windows/win32/secauthz/access-rights-for-access-token-objects

TOKEN_ASSIGN_PRIMARY = 0x0001
TOKEN_DUPLICATE = 0x0002
TOKEN_IMPERSONATE = 0x0004
TOKEN_QUERY = 0x0008
TOKEN_QUERY_SOURCE = 0x0010
TOKEN_ADJUST_PRIVILEGES = 0x0020
TOKEN_ADJUST_GROUPS = 0x0040
TOKEN_ADJUST_DEFAULT = 0x0080
TOKEN_ADJUST_SESSIONID = 0x0100
TOKEN_ALL_ACCESS = (
    STANDARD_RIGHTS_REQUIRED | TOKEN_ASSIGN_PRIMARY | TOKEN_DUPLICATE | TOKEN_IMPERSONATE | TOKEN_QUERY
    | TOKEN_QUERY_SOURCE | TOKEN_ADJUST_PRIVILEGES | TOKEN_ADJUST_GROUPS | TOKEN_ADJUST_DEFAULT | TOKEN_ADJUST_SESSIONID
)
TOKEN_READ = STANDARD_RIGHTS_READ | TOKEN_QUERY
TOKEN_WRITE = STANDARD_RIGHTS_WRITE | TOKEN_ADJUST_PRIVILEGES | TOKEN_ADJUST_GROUPS | TOKEN_ADJUST_DEFAULT
TOKEN_EXECUTE = STANDARD_RIGHTS_EXECUTE
TOKEN_TRUST_CONSTRAINT_MASK = STANDARD_RIGHTS_READ | TOKEN_QUERY | TOKEN_QUERY_SOURCE
TOKEN_ACCESS_PSEUDO_HANDLE_WIN8 = TOKEN_QUERY | TOKEN_QUERY_SOURCE

## Directory service objects
# Source: https://learn.microsoft.com/en-us/windows/win32/api/iads/ne-iads-ads_rights_enum

ADS_RIGHT_DS_CREATE_CHILD = 0x00000001
ADS_RIGHT_DS_DELETE_CHILD = 0x00000002
ADS_RIGHT_ACTRL_DS_LIST = 0x00000004
ADS_RIGHT_DS_SELF = 0x00000008
ADS_RIGHT_DS_READ_PROP = 0x00000010
ADS_RIGHT_DS_WRITE_PROP = 0x00000020
ADS_RIGHT_DS_DELETE_TREE = 0x00000040
ADS_RIGHT_DS_LIST_OBJECT = 0x00000080
ADS_RIGHT_DS_CONTROL_ACCESS = 0x00000100
ADS_RIGHT_DELETE = DELETE
ADS_RIGHT_READ_CONTROL = READ_CONTROL
ADS_RIGHT_WRITE_DAC = WRITE_DAC
ADS_RIGHT_WRITE_OWNER = WRITE_OWNER
ADS_RIGHT_SYNCHRONIZE = SYNCHRONIZE
ADS_RIGHT_ACCESS_SYSTEM_SECURITY = ACCESS_SYSTEM_SECURITY
ADS_RIGHT_GENERIC_READ = GENERIC_READ
ADS_RIGHT_GENERIC_WRITE = GENERIC_WRITE
ADS_RIGHT_GENERIC_EXECUTE = GENERIC_EXECUTE
ADS_RIGHT_GENERIC_ALL = GENERIC_ALL

## Mandatory label policy bits
# Source: https://learn.microsoft.com/en-us/windows/win32/api/winnt/ns-winnt-system_mandatory_label_ace

SYSTEM_MANDATORY_LABEL_NO_WRITE_UP = 0x1
SYSTEM_MANDATORY_LABEL_NO_READ_UP = 0x2
SYSTEM_MANDATORY_LABEL_NO_EXECUTE_UP = 0x4


## Structures flags and enums

class SecurityDescriptorControl(IntFlag):
    """
    SECURITY_DESCRIPTOR_CONTROL bits.

    https://learn.microsoft.com/en-us/openspecs/windows_protocols/ms-dtyp/7d4dac05-9cef-4563-a058-f108abecce1d
    """
    SE_OWNER_DEFAULTED = 0x0001
    SE_GROUP_DEFAULTED = 0x0002
    SE_DACL_PRESENT = 0x0004
    SE_DACL_DEFAULTED = 0x0008
    SE_SACL_PRESENT = 0x0010
    SE_SACL_DEFAULTED = 0x0020
    SE_DACL_UNTRUSTED = 0x0040
    SE_SERVER_SECURITY = 0x0080
    SE_DACL_AUTO_INHERIT_REQ = 0x0100
    SE_SACL_AUTO_INHERIT_REQ = 0x0200
    SE_DACL_AUTO_INHERITED = 0x0400
    SE_SACL_AUTO_INHERITED = 0x0800
    SE_DACL_PROTECTED = 0x1000
    SE_SACL_PROTECTED = 0x2000
    SE_RM_CONTROL_VALID = 0x4000
    SE_SELF_RELATIVE = 0x8000


class AccessControlEntry_Flags(IntFlag):
    OBJECT_INHERIT_ACE = 0x01  # Noncontainer child objects inherit the ACE as an effective ACE.
    CONTAINER_INHERIT_ACE = 0x02  # Child objects that are containers, such as directories, inherit the ACE as an effective ACE.
    NO_PROPAGATE_INHERIT_ACE = 0x04  # Inherited copies of the ACE get OBJECT_INHERIT_ACE and CONTAINER_INHERIT_ACE cleared.
    INHERIT_ONLY_ACE = 0x08  # Does not control access to the object to which it is attached.
    INHERITED_ACE = 0x10  # The ACE was inherited.
    SUCCESSFUL_ACCESS_ACE_FLAG = 0x40  # Audit successful access attempts (SACL only).
    FAILED_ACCESS_ACE_FLAG = 0x80  # Audit failed access attempts (SACL only).


class AccessControlEntry_Type(IntEnum):
    ACCESS_ALLOWED_ACE_TYPE = 0x00
    ACCESS_DENIED_ACE_TYPE = 0x01
    SYSTEM_AUDIT_ACE_TYPE = 0x02
    SYSTEM_ALARM_ACE_TYPE = 0x03  # Reserved for future use.
    ACCESS_ALLOWED_COMPOUND_ACE_TYPE = 0x04  # Reserved for future use.
    ACCESS_ALLOWED_OBJECT_ACE_TYPE = 0x05
    ACCESS_DENIED_OBJECT_ACE_TYPE = 0x06
    SYSTEM_AUDIT_OBJECT_ACE_TYPE = 0x07
    SYSTEM_ALARM_OBJECT_ACE_TYPE = 0x08  # Reserved for future use.
    ACCESS_ALLOWED_CALLBACK_ACE_TYPE = 0x09
    ACCESS_DENIED_CALLBACK_ACE_TYPE = 0x0A
    ACCESS_ALLOWED_CALLBACK_OBJECT_ACE_TYPE = 0x0B
    ACCESS_DENIED_CALLBACK_OBJECT_ACE_TYPE = 0x0C
    SYSTEM_AUDIT_CALLBACK_ACE_TYPE = 0x0D
    SYSTEM_ALARM_CALLBACK_ACE_TYPE = 0x0E  # Reserved for future use.
    SYSTEM_AUDIT_CALLBACK_OBJECT_ACE_TYPE = 0x0F
    SYSTEM_ALARM_CALLBACK_OBJECT_ACE_TYPE = 0x10  # Reserved for future use.
    SYSTEM_MANDATORY_LABEL_ACE_TYPE = 0x11


class AccessControlObjectTypeFlags(IntFlag):
    """
    A set of bit flags that indicate whether the ObjectType and InheritedObjectType members are present.

    https://learn.microsoft.com/en-us/windows/win32/api/winnt/ns-winnt-access_allowed_object_ace
    """
    NONE = 0x00000000  # Neither ObjectType nor InheritedObjectType are valid.
    ACE_OBJECT_TYPE_PRESENT = 0x00000001  # ObjectType is valid.
    ACE_INHERITED_OBJECT_TYPE_PRESENT = 0x00000002  # InheritedObjectType is valid.


class AccessControlList_Revision(Enum):
    ACL_REVISION = 0x02
    ACL_REVISION_DS = 0x04


# Ordered (flag, name) tables used by the renderer
CONTROL_FLAG_NAMES = (
    (SecurityDescriptorControl.SE_OWNER_DEFAULTED, "SE_OWNER_DEFAULTED"),
    (SecurityDescriptorControl.SE_GROUP_DEFAULTED, "SE_GROUP_DEFAULTED"),
    (SecurityDescriptorControl.SE_DACL_PRESENT, "SE_DACL_PRESENT"),
    (SecurityDescriptorControl.SE_DACL_DEFAULTED, "SE_DACL_DEFAULTED"),
    (SecurityDescriptorControl.SE_SACL_PRESENT, "SE_SACL_PRESENT"),
    (SecurityDescriptorControl.SE_SACL_DEFAULTED, "SE_SACL_DEFAULTED"),
    (SecurityDescriptorControl.SE_DACL_UNTRUSTED, "SE_DACL_UNTRUSTED"),
    (SecurityDescriptorControl.SE_SERVER_SECURITY, "SE_SERVER_SECURITY"),
    (SecurityDescriptorControl.SE_DACL_AUTO_INHERIT_REQ, "SE_DACL_AUTO_INHERIT_REQ"),
    (SecurityDescriptorControl.SE_SACL_AUTO_INHERIT_REQ, "SE_SACL_AUTO_INHERIT_REQ"),
    (SecurityDescriptorControl.SE_DACL_AUTO_INHERITED, "SE_DACL_AUTO_INHERITED"),
    (SecurityDescriptorControl.SE_SACL_AUTO_INHERITED, "SE_SACL_AUTO_INHERITED"),
    (SecurityDescriptorControl.SE_DACL_PROTECTED, "SE_DACL_PROTECTED"),
    (SecurityDescriptorControl.SE_SACL_PROTECTED, "SE_SACL_PROTECTED"),
    (SecurityDescriptorControl.SE_RM_CONTROL_VALID, "SE_RM_CONTROL_VALID"),
    (SecurityDescriptorControl.SE_SELF_RELATIVE, "SE_SELF_RELATIVE"),
)

ACE_FLAG_NAMES = (
    (AccessControlEntry_Flags.CONTAINER_INHERIT_ACE, "CONTAINER_INHERIT_ACE"),
    (AccessControlEntry_Flags.FAILED_ACCESS_ACE_FLAG, "FAILED_ACCESS_ACE_FLAG"),
    (AccessControlEntry_Flags.INHERIT_ONLY_ACE, "INHERIT_ONLY_ACE"),
    (AccessControlEntry_Flags.INHERITED_ACE, "INHERITED_ACE"),
    (AccessControlEntry_Flags.NO_PROPAGATE_INHERIT_ACE, "NO_PROPAGATE_INHERIT_ACE"),
    (AccessControlEntry_Flags.OBJECT_INHERIT_ACE, "OBJECT_INHERIT_ACE"),
    (AccessControlEntry_Flags.SUCCESSFUL_ACCESS_ACE_FLAG, "SUCCESSFUL_ACCESS_ACE_FLAG"),
)


def flag_names(table, value):
    """Returns the names of every entry of an ordered (flag, name) table whose bits are all set in value."""
    return [name for flag, name in table if (int(flag) & value) == int(flag)]
