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
Base class of the entities read from vCloud Director.
"""

import copy
import logging

from oslo_vcloud._i18n import _
from oslo_vcloud import exceptions
from oslo_vcloud.filters import definition
from oslo_vcloud.filters import engine
from oslo_vcloud import metadata
from oslo_vcloud import vcloud_util

LOG = logging.getLogger(__name__)


class VCloudResource(object):
    """An entity backed by the XML representation returned by the API."""

    refresh_error = 'error refreshing entity: %s'

    def __init__(self, session, element=None):
        self._session = session
        self.element = element

    def __repr__(self):
        return '%s(%r)' % (self.__class__.__name__, self.href)

    def _attr(self, name, default=''):
        if self.element is None:
            return default
        return self.element.get(name, default)

    @property
    def session(self):
        return self._session

    @property
    def name(self):
        return self._attr('name')

    @property
    def href(self):
        return self._attr('href')

    @property
    def id(self):
        return self._attr('id')

    @property
    def type(self):
        return self._attr('type')

    @property
    def description(self):
        return vcloud_util.child_text(self.element, 'Description')

    @property
    def links(self):
        return vcloud_util.get_links(self.element)

    def find_link(self, rel, media_type=None):
        """Returns the href of the first matching link, or None."""
        return vcloud_util.find_link_href(self.element, rel, media_type)

    @property
    def tasks(self):
        return vcloud_util.get_tasks(self.element)

    def refresh(self):
        """Gets a fresh copy of the entity from the server."""
        if self.element is None or not self.href:
            raise exceptions.VCloudException(
                _("cannot refresh, Object is empty or HREF is empty"))
        self.element = self._session.execute_request(self.href, 'GET', None,
                                                     self.refresh_error)
        return self

    def get_metadata(self):
        return metadata.get_metadata(self._session, self.href)

    def add_metadata(self, key, value):
        return metadata.add_metadata(self._session, self.href, key, value)

    def delete_metadata(self, key):
        return metadata.delete_metadata(self._session, self.href, key)

    def _search_with_parent(self, query_type, criteria, filter_key, value):
        """Runs a filter search restricted to the children of an entity.

        The parent condition is added to a copy of criteria.
        """
        if criteria is None:
            criteria = definition.FilterDef()
        else:
            criteria = copy.deepcopy(criteria)
        criteria.add_filter(filter_key, value)
        return engine.search(self._session, query_type, criteria)
