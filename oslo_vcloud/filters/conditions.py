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
Conditions evaluated by the filter engine against query items.

Every condition returns the result of the match together with a short
text describing what was compared, used to explain a search.
"""

import abc

from oslo_vcloud._i18n import _
from oslo_vcloud import exceptions
from oslo_vcloud.filters import dates
from oslo_vcloud.filters import definition
from oslo_vcloud import vcloud_util


class Condition(object, metaclass=abc.ABCMeta):

    condition_type = None

    @abc.abstractmethod
    def matches(self, item):
        """Evaluates the condition against a QueryItem.

        :returns: tuple (result, definition)
        """


class NameCondition(Condition):
    condition_type = definition.FILTER_NAME_REGEX

    def __init__(self, regex):
        self.regex = regex

    def matches(self, item):
        name = item.get_name()
        return (self.regex.search(name) is not None,
                '%s =~ %s' % (self.regex.pattern, name))


class IpCondition(Condition):
    condition_type = definition.FILTER_IP

    def __init__(self, regex):
        self.regex = regex

    def matches(self, item):
        ip = item.get_ip()
        if not ip:
            raise exceptions.FilterException(
                _("%(type)s %(name)s doesn't have an IP") %
                {'type': item.get_type(), 'name': item.get_name()})
        return (self.regex.search(ip) is not None,
                '%s =~ %s' % (self.regex.pattern, ip))


class DateCondition(Condition):
    condition_type = definition.FILTER_DATE

    def __init__(self, expression):
        self.expression = expression

    def matches(self, item):
        item_date = item.get_date()
        if not item_date:
            return False, ''
        result = dates.compare_date(self.expression, item_date)
        return result, '%s %s' % (item_date, self.expression)


class ParentCondition(Condition):
    condition_type = definition.FILTER_PARENT

    def __init__(self, parent_name):
        self.parent_name = parent_name

    def matches(self, item):
        parent = item.get_parent_name()
        return (self.parent_name == parent,
                '%s == %s' % (self.parent_name, parent))


class ParentIdCondition(Condition):
    """Compares parent IDs by their UUID, so IDs and HREFs both match."""

    condition_type = definition.FILTER_PARENT_ID

    def __init__(self, parent_id):
        self.parent_id = parent_id

    def matches(self, item):
        wanted = vcloud_util.extract_uuid(self.parent_id)
        found = vcloud_util.extract_uuid(item.get_parent_id())
        return wanted == found, '%s =~ %s' % (wanted, found)


class MetadataRegexpCondition(Condition):
    condition_type = definition.CONDITION_METADATA

    def __init__(self, key, regex):
        self.key = key
        self.regex = regex

    def matches(self, item):
        value = item.get_metadata_value(self.key)
        return (self.regex.search(value) is not None,
                'metadata: %s -> %s' % (self.key, self.regex.pattern))
