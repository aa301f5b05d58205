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
Building criteria out of existing entities.

These helpers create, for a set of existing items, the criteria that
should find each of them again, which is how searches are verified.
"""

import collections
import datetime
import logging
import re

from oslo_utils import timeutils

from oslo_vcloud import exceptions
from oslo_vcloud.filters import dates
from oslo_vcloud.filters import definition
from oslo_vcloud import metadata

LOG = logging.getLogger(__name__)

# Metadata types as retrieved from the API, mapped to the ones used in
# queries. DATETIME values can't be used in a query filter when they
# contain colons.
RETRIEVED_METADATA_TYPES = {
    'MetadataBooleanValue': 'BOOLEAN',
    'MetadataStringValue': 'STRING',
    'MetadataNumberValue': 'NUMBER',
    'MetadataDateTimeValue': 'STRING',
}

_NUMBER_RE = re.compile(r'^[0-9]+$')
_BOOL_RE = re.compile(r'^(?:true|false)$')

DateItem = collections.namedtuple('DateItem',
                                  ['name', 'date', 'entity', 'entity_type'])

FilterMatch = collections.namedtuple('FilterMatch',
                                     ['criteria', 'expected_name', 'entity',
                                      'entity_type'])


def ip_to_regex(ip):
    """Returns a regex matching the IP without its last element."""
    elements = ip.split('.')
    return '^' + ''.join('%s\\.' % element for element in elements[:-1])


def str_to_regex(text):
    """Returns a regex matching exactly the given text."""
    result = ['^']
    for ch in text:
        if ch == '.':
            result.append('\\.')
        else:
            result.append('[%s]' % re.escape(ch))
    result.append('$')
    return ''.join(result)


def guess_metadata_type(value):
    if _BOOL_RE.match(value):
        return 'BOOLEAN'
    if _NUMBER_RE.match(value):
        return 'NUMBER'
    return 'STRING'


def metadata_to_filter(session, href, criteria=None):
    """Adds the metadata of the entity at href to criteria."""
    if criteria is None:
        criteria = definition.FilterDef()
    try:
        entries = metadata.get_metadata(session, href)
    except exceptions.VCloudDriverException as excep:
        LOG.warning("Metadata of %(href)s not available: %(err)s",
                    {'href': href, 'err': excep})
        return criteria
    for key, entry in entries.items():
        if entry.type:
            value_type = RETRIEVED_METADATA_TYPES.get(entry.type, 'STRING')
        else:
            value_type = guess_metadata_type(entry.value)
        criteria.add_metadata_filter(key, entry.value, value_type,
                                     entry.domain == 'SYSTEM', False)
    return criteria


def query_item_to_filter(item, entity_type):
    """Returns criteria matching item by name and IP, plus its date info."""
    criteria = definition.FilterDef()
    criteria.add_filter(definition.FILTER_NAME_REGEX,
                        str_to_regex(item.get_name()))
    if item.get_ip():
        criteria.add_filter(definition.FILTER_IP, ip_to_regex(item.get_ip()))
    date_info = []
    if item.get_date():
        date_info.append(DateItem(item.get_name(), item.get_date(), item,
                                  entity_type))
    return criteria, date_info


def make_date_filter(items):
    """Creates date criteria from a list of DateItem.

    Every item gets an exact date match. With more than one distinct
    date, 'earliest' and 'latest' criteria are added as well.
    """
    filters = []
    if not items:
        return filters
    entity_type = items[0].entity_type
    if len(items) == 1:
        criteria = definition.FilterDef().add_filter(
            definition.FILTER_DATE, '==' + items[0].date)
        filters.append(FilterMatch(criteria, items[0].name, items[0].entity,
                                   entity_type))
        return filters

    earliest_date = dates.format_date(
        timeutils.utcnow() + datetime.timedelta(days=36500))
    latest_date = '1970-01-01 00:00:00'
    earliest = latest = None
    for item in items:
        if dates.compare_date('>' + latest_date, item.date):
            latest_date = item.date
            latest = item
        if dates.compare_date('<' + earliest_date, item.date):
            earliest_date = item.date
            earliest = item
        exact = definition.FilterDef().add_filter(definition.FILTER_DATE,
                                                  '==' + item.date)
        filters.append(FilterMatch(exact, item.name, item.entity,
                                   item.entity_type))

    if earliest and latest and earliest_date != latest_date:
        early = definition.FilterDef()
        early.add_filter(definition.FILTER_DATE, '<' + latest_date)
        early.add_filter(definition.FILTER_EARLIEST, 'true')
        late = definition.FilterDef()
        late.add_filter(definition.FILTER_DATE, '>' + earliest_date)
        late.add_filter(definition.FILTER_LATEST, 'true')
        filters.append(FilterMatch(early, earliest.name, earliest.entity,
                                   entity_type))
        filters.append(FilterMatch(late, latest.name, latest.entity,
                                   entity_type))
    return filters
