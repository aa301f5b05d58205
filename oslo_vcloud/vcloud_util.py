# Copyright (c) 2014 VMware, Inc.
# All Rights Reserved.
#
#    Licensed under the Apache License, Version 2.0 (the "License"); you may
#    not use this file except in compliance with the License. You may obtain
#    a copy of the License at
#
#         http://www.apache.org/licenses/LICENSE-2.0
#
#    Unless required by applicable law or agreed to in writing, software
#    distributed under the License is distributed on an "AS IS" BASIS, WITHOUT
#    WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the
#    License for the specific language governing permissions and limitations
#    under the License.

"""
The vCloud Director API utility module.
"""

import logging
import re

from lxml import etree
import netaddr

from oslo_vcloud._i18n import _
from oslo_vcloud import constants
from oslo_vcloud import exceptions

LOG = logging.getLogger(__name__)

NSMAP = {'vcloud': constants.XML_NAMESPACE_VCLOUD,
         'ovf': constants.XML_NAMESPACE_OVF,
         'xsi': constants.XML_NAMESPACE_XSI}

_UUID_RE = re.compile(
    r'[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}')
_BARE_UUID_RE = re.compile(r'^[\w-]+:[\w-]+:[\w-]+:([a-f0-9]{8}-[a-f0-9]{4}-'
                           r'[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12})$')
_HREF_UUID_RE = re.compile(r'^https?://.+/(' + _UUID_RE.pattern + r').*$')
_HREF_UUID_AT_END_RE = re.compile(r'^https?://.+/(' + _UUID_RE.pattern +
                                  r')$')


def build_base_url(scheme, host, port):
    proto_str = '%s://' % scheme
    host_str = '[%s]' % host if netaddr.valid_ipv6(host) else host
    port_str = '' if port is None else ':%d' % port
    return proto_str + host_str + port_str


def extract_uuid(text):
    """Returns the last UUID found in an ID or an HREF, or ''."""
    if not text:
        return ''
    found = _UUID_RE.findall(text)
    if found:
        return found[-1]
    return ''


def equal_ids(wanted, found_id, found_href):
    """Compares the UUID of a wanted ID with the one of a found entity.

    The found entity is identified by its ID, or by its HREF when the ID
    is empty.
    """
    wanted_uuid = extract_uuid(wanted)
    if not wanted_uuid:
        return False
    if found_id:
        return wanted_uuid == extract_uuid(found_id)
    return wanted_uuid == extract_uuid(found_href)


def get_bare_entity_uuid(entity_id):
    """Returns the bare UUID of an ID like urn:vcloud:catalog:<uuid>."""
    match = _BARE_UUID_RE.match(entity_id or '')
    if not match:
        raise exceptions.VCloudException(
            _("error extracting ID from '%s'") % entity_id)
    return match.group(1)


def get_uuid_from_href(href, id_at_end=True):
    """Returns the UUID of an HREF.

    :param id_at_end: whether the UUID must be the last part of the HREF
    """
    pattern = _HREF_UUID_AT_END_RE if id_at_end else _HREF_UUID_RE
    match = pattern.match(href or '')
    if not match:
        raise exceptions.VCloudException(
            _("error extracting UUID from '%s'") % href)
    return match.group(1)


def vcloud_tag(name):
    return '{%s}%s' % (constants.XML_NAMESPACE_VCLOUD, name)


def local_name(element):
    return etree.QName(element).localname


def parse_xml(content):
    """Parses a response body into an lxml element; None if empty."""
    if not content:
        return None
    if isinstance(content, str):
        content = content.encode('utf-8')
    parser = etree.XMLParser(resolve_entities=False, no_network=True,
                             remove_blank_text=True)
    return etree.fromstring(content, parser=parser)


def to_xml(payload):
    """Serializes a payload with an XML declaration header."""
    if payload is None:
        return None
    if isinstance(payload, bytes):
        payload = payload.decode('utf-8')
    if isinstance(payload, str):
        if payload.startswith('<?xml'):
            return payload.encode('utf-8')
        return ('<?xml version="1.0" encoding="UTF-8"?>\n' +
                payload).encode('utf-8')
    return etree.tostring(payload, xml_declaration=True, encoding='UTF-8')


def find_children(element, name):
    """Returns the children of element with the given local name."""
    if element is None:
        return []
    return [child for child in element
            if isinstance(child.tag, str) and local_name(child) == name]


def find_child(element, name):
    children = find_children(element, name)
    return children[0] if children else None


def child_text(element, name, default=''):
    child = find_child(element, name)
    if child is None or child.text is None:
        return default
    return child.text


def get_links(element, rel=None, media_type=None):
    """Returns the Link children matching rel and media type.

    :param element: resource element carrying Link children
    :param rel: relation wanted, any when None
    :param media_type: media type wanted, any when None
    """
    links = []
    for link in find_children(element, 'Link'):
        if rel is not None and link.get('rel') != rel:
            continue
        if media_type is not None and link.get('type') != media_type:
            continue
        links.append(link)
    return links


def find_link_href(element, rel, media_type=None):
    links = get_links(element, rel, media_type)
    if not links:
        return None
    return links[0].get('href')


def get_tasks(element):
    """Returns the Task elements listed in the Tasks child of element."""
    return find_children(find_child(element, 'Tasks'), 'Task')


def get_files(element):
    """Returns the File elements listed in the Files child of element."""
    return find_children(find_child(element, 'Files'), 'File')
