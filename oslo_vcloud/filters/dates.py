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
Loose date parsing and comparison for date filters.

Dates are compared at one-second resolution, in UTC. A date without
time zone is taken as UTC.
"""

import calendar
import datetime
import operator
import re

from oslo_utils import timeutils

from oslo_vcloud._i18n import _
from oslo_vcloud import exceptions

_EXPRESSION_RE = re.compile(r'(>=|<=|==|<|=|>)\s*(.+)')

_OPERATORS = {
    '>': operator.gt,
    '>=': operator.ge,
    '<': operator.lt,
    '<=': operator.le,
    '==': operator.eq,
    '=': operator.eq,
}

# Tried in order when the text is not ISO 8601.
_DATE_FORMATS = (
    '%Y-%m-%d %H:%M:%S',
    '%Y-%m-%d %H:%M:%S.%f',
    '%Y-%m-%d %H:%M',
    '%Y-%m-%d',
    '%Y/%m/%d %H:%M:%S',
    '%Y/%m/%d',
    '%d-%b-%Y',
    '%d %b %Y',
    '%b %d, %Y',
    '%b %d %Y',
    '%m/%d/%Y',
)

DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def parse_date(text):
    """Returns a naive UTC datetime from a loosely formatted date."""
    text = (text or '').strip()
    try:
        return timeutils.normalize_time(timeutils.parse_isotime(text))
    except ValueError:
        pass
    for date_format in _DATE_FORMATS:
        try:
            return datetime.datetime.strptime(text, date_format)
        except ValueError:
            continue
    raise exceptions.FilterException(_("unable to parse date '%s'") % text)


def format_date(value):
    return value.strftime(DATE_FORMAT)


def _to_seconds(value):
    return calendar.timegm(value.utctimetuple())


def compare_date(expression, date):
    """Evaluates a date against an expression like '>= 2020-03-08'.

    :param expression: operator (>, >=, <, <=, ==, =) followed by a date
    :param date: date of the item being evaluated
    :returns: result of 'date <operator> expression date'
    """
    match = _EXPRESSION_RE.search(expression or '')
    if not match:
        raise exceptions.FilterException(
            _("expression not found in '%s'") % expression)
    op, wanted = match.groups()
    wanted_seconds = _to_seconds(parse_date(wanted))
    got_seconds = _to_seconds(parse_date(date))
    return _OPERATORS[op](got_seconds, wanted_seconds)
