#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# File name          : __init__.py

VERSION = "1.0"

from sddlhelp.ace import AccessControlEntry, decode_ace, encode_ace, locate_trustee
from sddlhelp.acl import AccessControlList, DiscretionaryAccessControlList, SystemAccessControlList
from sddlhelp.descriptor import AclState, NTSecurityDescriptor
from sddlhelp.exceptions import *
from sddlhelp.guid import GUID
from sddlhelp.permissions import lookup, resolve_permissions
from sddlhelp.render import DescriptorRenderer, render_descriptor, render_sddl
from sddlhelp.sid import SID
