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
Metadata attached to vCloud Director entities.
"""

import collections
import logging
from urllib import parse

from lxml import etree

from oslo_vcloud import constants
from oslo_vcloud import vcloud_util

LOG = logging.getLogger(__name__)

XSI_TYPE = '{%s}type' % constants.XML_NAMESPACE_XSI

MetadataValue = collections.namedtuple('MetadataValue',
                                       ['type', 'value', 'domain'])


def parse_metadata(element):
    """Returns {key: MetadataValue} from a Metadata element."""
    entries = {}
    for entry in vcloud_util.find_children(element, 'MetadataEntry'):
        key = vcloud_util.child_text(entry, 'Key')
        typed_value = vcloud_util.find_child(entry, 'TypedValue')
        if typed_value is None:
            value_type = ''
            value = ''
        else:
            value_type = typed_value.get(XSI_TYPE, '')
            value = vcloud_util.child_text(typed_value, 'Value')
        domain = vcloud_util.child_text(entry, 'Domain')
        entries[key] = MetadataValue(value_type, value, domain)
    return entries


def _metadata_href(href, key=None):
    if key is None:
        return '%s/metadata/' % href.rstrip('/')
    return '%s/metadata/%s' % (href.rstrip('/'), parse.quote(key))


def get_metadata(session, href):
    """Retrieves the metadata of the entity at href."""
    element = session.execute_request(_metadata_href(href), 'GET',
                                      constants.MIME_METADATA,
                                      'error retrieving metadata: %s')
    return parse_metadata(element)


def add_metadata(session, href, key, value):
    """Sets a string metadata value on the entity at href.

    :returns: Task of the update
    """
    root = etree.Element(vcloud_util.vcloud_tag('MetadataValue'),
                         nsmap={None: constants.XML_NAMESPACE_VCLOUD,
                                'xsi': constants.XML_NAMESPACE_XSI})
    typed_value = etree.SubElement(root, vcloud_util.vcloud_tag('TypedValue'))
    typed_value.set(XSI_TYPE, 'MetadataStringValue')
    etree.SubElement(typed_value, vcloud_util.vcloud_tag('Value')).text = value
    LOG.debug("Adding metadata %(key)s to %(href)s.",
              {'key': key, 'href': href})
    return session.execute_task_request(_metadata_href(href, key), 'PUT',
                                        constants.MIME_METADATA_VALUE,
                                        'error adding metadata: %s',
                                        payload=root)


def delete_metadata(session, href, key):
    """Removes a metadata key from the entity at href.

    :returns: Task of the removal
    """
    LOG.debug("Deleting metadata %(key)s from %(href)s.",
              {'key': key, 'href': href})
    return session.execute_task_request(_metadata_href(href, key), 'DELETE',
                                        None, 'error deleting metadata: %s')
