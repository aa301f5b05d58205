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
Search of vCloud Director entities by filter criteria.

The criteria are turned into conditions, the items of the wanted query
type are retrieved and every item matching all the conditions becomes a
candidate. 'latest' and 'earliest' then reduce the candidates to the one
with the most recent or the oldest date.
"""

import datetime
import functools
import logging
import re

from oslo_utils import strutils
from oslo_utils import timeutils

from oslo_vcloud._i18n import _
from oslo_vcloud import exceptions
from oslo_vcloud.filters import conditions
from oslo_vcloud.filters import dates
from oslo_vcloud.filters import definition
from oslo_vcloud.filters import query_items
from oslo_vcloud import query

LOG = logging.getLogger(__name__)

_EPOCH_DATE = '1970-01-01 00:00:00'


def _compile(value):
    try:
        return re.compile(value)
    except re.error as excep:
        raise exceptions.FilterException(
            _("error compiling regular expression '%(re)s' : %(err)s ") %
            {'re': value, 'err': excep}, excep)


def _build_conditions(criteria):
    """Returns the conditions and the latest/earliest flags of criteria."""
    found = []
    search_latest = False
    search_earliest = False
    for key, value in criteria.filters.items():
        # Leftovers of a criteria build-up.
        if value in ('', None):
            continue
        if key == definition.FILTER_NAME_REGEX:
            found.append(conditions.NameCondition(_compile(value)))
        elif key == definition.FILTER_DATE:
            found.append(conditions.DateCondition(value))
        elif key == definition.FILTER_IP:
            found.append(conditions.IpCondition(_compile(value)))
        elif key == definition.FILTER_PARENT:
            found.append(conditions.ParentCondition(value))
        elif key == definition.FILTER_PARENT_ID:
            found.append(conditions.ParentIdCondition(value))
        elif key == definition.FILTER_LATEST:
            search_latest = strutils.bool_from_string(value)
        elif key == definition.FILTER_EARLIEST:
            search_earliest = strutils.bool_from_string(value)
        else:
            raise exceptions.FilterException(
                _("[search_by_filter] filter '%(key)s' not supported (only "
                  "allowed %(allowed)s)") %
                {'key': key, 'allowed': definition.SUPPORTED_FILTERS})
    return found, search_latest, search_earliest


def _select_by_date(candidates, wanted_latest):
    """Returns the candidate with the latest or earliest date.

    :returns: tuple (candidate or None, names of the items without date)
    """
    if wanted_latest:
        reference = _EPOCH_DATE
        op = '>'
    else:
        # Ten years from now: any date found is earlier.
        reference = dates.format_date(
            timeutils.utcnow() + datetime.timedelta(days=3650))
        op = '<'
    selected = None
    empty_dates = []
    for candidate in candidates:
        item_date = candidate.get_date()
        if not item_date:
            empty_dates.append(candidate.get_name())
            continue
        LOG.debug("Comparing %(ref)s to %(date)s.",
                  {'ref': reference, 'date': item_date})
        try:
            found = dates.compare_date('%s %s' % (op, reference), item_date)
        except exceptions.FilterException as excep:
            raise exceptions.FilterException(
                _("[search_by_filter] error comparing dates %(date)s "
                  "%(op)s %(ref)s : %(err)s") %
                {'date': item_date, 'op': op, 'ref': reference,
                 'err': excep}, excep)
        if found:
            reference = item_date
            selected = candidate
    return selected, empty_dates


def search_by_filter(query_by_metadata, query_with_metadata_fields,
                     converter, query_type, criteria=None):
    """Finds the items of query_type that satisfy the criteria.

    :param query_by_metadata: callable(query_type, params,
                              not_encoded_params, metadata_filters,
                              is_system) running a server-side metadata
                              query
    :param query_with_metadata_fields: callable(query_type, params,
                                       not_encoded_params,
                                       metadata_fields, is_system)
    :param converter: callable(query_type, results) returning QueryItems
    :param criteria: FilterDef; None retrieves every item
    :returns: tuple (list of QueryItem, explanation text). An empty list
              is a valid result; the explanation tells why nothing
              matched.
    :raises: FilterException
    """
    if criteria is None:
        criteria = definition.FilterDef()

    explanation = definition.condition_text(criteria)

    found_conditions, search_latest, search_earliest = (
        _build_conditions(criteria))
    if search_latest and search_earliest:
        raise exceptions.FilterException(
            _("only one of '%(earliest)s' or '%(latest)s' can be used for "
              "a set of criteria") %
            {'earliest': definition.FILTER_EARLIEST,
             'latest': definition.FILTER_LATEST})

    metadata_fields = []
    metadata_filters = {}
    is_system = False
    if criteria.metadata:
        for md in criteria.metadata:
            is_system = md.is_system
            if not md.key:
                raise exceptions.FilterException(
                    _("metadata condition without key detected"))
            if md.value in ('', None):
                raise exceptions.FilterException(
                    _("empty value for metadata condition with key "
                      "'%s'") % md.key)
            if criteria.use_metadata_api_filter:
                if not md.type or md.type.upper() == 'NONE':
                    raise exceptions.FilterException(
                        _("requested search by metadata field '%s' must "
                          "provide a valid type") % md.key)
                try:
                    definition.validate_metadata_type(md.type)
                except exceptions.FilterException as excep:
                    raise exceptions.FilterException(
                        _("type '%(type)s' for metadata field '%(key)s' is "
                          "invalid. :%(err)s") %
                        {'type': md.type, 'key': md.key, 'err': excep},
                        excep)
                metadata_filters[md.key] = (md.type, '%s' % md.value)
            else:
                metadata_fields.append(md.key)
                found_conditions.append(conditions.MetadataRegexpCondition(
                    md.key, _compile(md.value)))
    else:
        criteria.use_metadata_api_filter = False

    try:
        if criteria.use_metadata_api_filter:
            results = query_by_metadata(query_type, None, {},
                                        metadata_filters, is_system)
        else:
            results = query_with_metadata_fields(query_type, None, {},
                                                 metadata_fields, is_system)
    except exceptions.VCloudDriverException as excep:
        raise exceptions.FilterException(
            _("[search_by_filter] error retrieving query item list: %s") %
            excep, excep)

    item_list = converter(query_type, results) or []

    matches = []
    candidates = []
    for item in item_list:
        matched = 0
        for condition in found_conditions:
            try:
                result, text = condition.matches(item)
            except exceptions.FilterException as excep:
                raise exceptions.FilterException(
                    _("[search_by_filter] error applying condition "
                      "%(type)s: %(err)s") %
                    {'type': condition.condition_type, 'err': excep},
                    excep)
            matches.append(definition.MatchResult(
                item.get_name(), condition.condition_type, text, result))
            if result:
                matched += 1
        if matched == len(found_conditions):
            candidates.append(item)

    explanation += '\n%s' % definition.matches_to_text(matches)
    LOG.debug("Conditions matching\n%s", explanation)

    if len(candidates) <= 1:
        return candidates, explanation

    if search_latest:
        selected, empty_dates = _select_by_date(candidates, True)
        if selected is None:
            raise exceptions.FilterException(
                _("search for newest item failed. Empty dates found for "
                  "items %s") % empty_dates)
        explanation += '\nlatest item found'
        return [selected], explanation
    if search_earliest:
        selected, empty_dates = _select_by_date(candidates, False)
        if selected is None:
            raise exceptions.FilterException(
                _("search for oldest item failed. Empty dates found for "
                  "items %s") % empty_dates)
        explanation += '\nearliest item found'
        return [selected], explanation
    return candidates, explanation


def search(session, query_type, criteria=None):
    """Runs search_by_filter through the query service of session."""
    return search_by_filter(
        functools.partial(query.query_by_metadata_filter, session),
        functools.partial(query.query_with_metadata_fields, session),
        query_items.result_to_query_items, query_type, criteria)


def get_entity_by_filter(search_func, query_type, label, criteria):
    """Returns the only item matching criteria.

    :param search_func: callable(query_type, criteria), such as the
                        search_by_filter method of an entity
    :param label: entity description used in error messages
    :raises: EntityNotFoundException when nothing matches; FilterException
             when more than one item matches
    """
    if criteria is None:
        raise exceptions.FilterException(_("search criteria not defined"))
    items, explanation = search_func(query_type, criteria)
    if not items:
        raise exceptions.EntityNotFoundException(
            _("no %(label)s found with given criteria (%(err)s)") %
            {'label': label, 'err': exceptions.ENTITY_NOT_FOUND_MESSAGE})
    if len(items) > 1:
        raise exceptions.FilterException(
            _("more than one %(label)s found by given criteria: "
              "%(explanation)s") % {'label': label,
                                     'explanation': explanation})
    return items[0]
