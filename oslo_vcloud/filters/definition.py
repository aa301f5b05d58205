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
Search criteria used by the filter engine.
"""

import collections

from oslo_vcloud._i18n import _
from oslo_vcloud import constants
from oslo_vcloud import exceptions

FILTER_NAME_REGEX = 'name_regex'
FILTER_DATE = 'date'
FILTER_IP = 'ip'
FILTER_LATEST = 'latest'
FILTER_EARLIEST = 'earliest'
FILTER_PARENT = 'parent'
FILTER_PARENT_ID = 'parent_id'

SUPPORTED_FILTERS = [FILTER_NAME_REGEX, FILTER_DATE, FILTER_IP,
                     FILTER_LATEST, FILTER_EARLIEST, FILTER_PARENT,
                     FILTER_PARENT_ID]

# Condition type of the metadata conditions, which are not set through
# add_filter.
CONDITION_METADATA = 'metadata'

SUPPORTED_METADATA_TYPES = ['NONE', 'STRING', 'NUMBER', 'BOOLEAN', 'DATETIME']

SUPPORTED_QUERY_TYPES = [constants.QT_VAPP_TEMPLATE,
                         constants.QT_ADMIN_VAPP_TEMPLATE,
                         constants.QT_EDGE_GATEWAY,
                         constants.QT_ORG_VDC_NETWORK,
                         constants.QT_CATALOG,
                         constants.QT_ADMIN_CATALOG,
                         constants.QT_CATALOG_ITEM,
                         constants.QT_ADMIN_CATALOG_ITEM,
                         constants.QT_MEDIA,
                         constants.QT_ADMIN_MEDIA]

MetadataDef = collections.namedtuple('MetadataDef',
                                     ['key', 'value', 'type', 'is_system'])

MatchResult = collections.namedtuple('MatchResult',
                                     ['name', 'type', 'definition', 'result'])


def validate_metadata_type(value_type):
    if (value_type or '').upper() not in SUPPORTED_METADATA_TYPES:
        raise exceptions.FilterException(
            _("metadata type '%(type)s' not supported (only allowed "
              "%(allowed)s)") % {'type': value_type,
                                 'allowed': SUPPORTED_METADATA_TYPES})


class FilterDef(object):
    """Criteria for a search: plain filters and metadata conditions.

    All the conditions of a FilterDef must match for an item to be
    selected. 'latest' and 'earliest' reduce the result to one item.
    """

    def __init__(self):
        self.filters = {}
        self.metadata = []
        self.use_metadata_api_filter = False

    def __repr__(self):
        return 'FilterDef(filters=%r, metadata=%r)' % (self.filters,
                                                      self.metadata)

    def add_filter(self, key, value):
        if key not in SUPPORTED_FILTERS:
            raise exceptions.FilterException(
                _("filter '%(key)s' not supported (only allowed "
                  "%(allowed)s)") % {'key': key,
                                     'allowed': SUPPORTED_FILTERS})
        self.filters[key] = value
        return self

    def add_metadata_filter(self, key, value, value_type='STRING',
                            is_system=False, use_metadata_api_filter=False):
        """Adds a metadata condition.

        :param value_type: type used when the condition is evaluated by the
                           server (use_metadata_api_filter); otherwise the
                           value is a regular expression
        :param is_system: whether the key is in the SYSTEM domain
        """
        if value_type:
            value_type = value_type.upper()
            validate_metadata_type(value_type)
        self.metadata.append(MetadataDef(key, value, value_type, is_system))
        self.use_metadata_api_filter = use_metadata_api_filter
        return self


def condition_text(criteria):
    """Returns a human-readable form of the criteria."""
    lines = ['criteria:']
    for key, value in sorted(criteria.filters.items()):
        lines.append('\t%s -> %s' % (key, value))
    for md in criteria.metadata:
        lines.append('\tmetadata %s -> %s' % (md.key, md.value))
    return '\n'.join(lines)


def matches_to_text(matches):
    """Returns the match results grouped by item name."""
    grouped = collections.OrderedDict()
    for match in matches:
        grouped.setdefault(match.name, []).append(match)
    lines = []
    for name, item_matches in grouped.items():
        lines.append('%s' % name)
        for match in item_matches:
            lines.append('\t(%s) %s -> %s' % (match.type, match.definition,
                                              match.result))
    return '\n'.join(lines)
