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
Media images stored in catalogs.
"""

import logging

from oslo_vcloud._i18n import _
from oslo_vcloud import constants
from oslo_vcloud import exceptions
from oslo_vcloud.objects import resource
from oslo_vcloud import query

LOG = logging.getLogger(__name__)


class Media(resource.VCloudResource):

    refresh_error = 'error retrieving media: %s'

    def delete(self):
        """Deletes the media.

        :returns: Task of the removal
        """
        LOG.debug("Deleting media: %s.", self.name)
        return self._session.execute_task_request(
            self.href, 'DELETE', None, 'error deleting Media item: %s')


class MediaRecord(resource.VCloudResource):
    """Media found through the query service.

    The element is the MediaRecord of the query; its attributes are
    available through get().
    """

    refresh_error = 'error retrieving media: %s'

    @classmethod
    def from_query_record(cls, session, record):
        return cls(session, record.element)

    def get(self, name, default=''):
        return self._attr(name, default)

    @property
    def catalog_name(self):
        return self._attr('catalogName')

    @property
    def is_iso(self):
        return self._attr('isIso') == 'true'

    @property
    def storage_bytes(self):
        try:
            return int(self._attr('storageB', '0'))
        except ValueError:
            return 0

    def refresh(self):
        if self.element is None:
            raise exceptions.VCloudException(
                _("cannot refresh, Object is empty"))
        if not self.name:
            raise exceptions.VCloudException(
                _("cannot refresh, Name is empty"))
        return super(MediaRecord, self).refresh()

    def delete(self):
        LOG.debug("Deleting media item: %s.", self.name)
        return self._session.execute_task_request(
            self.href, 'DELETE', None, 'error deleting Media item: %s')


def media_query_type(session):
    if session.is_sys_admin:
        return constants.QT_ADMIN_MEDIA
    return constants.QT_MEDIA


def query_media_records(session, filter_text, filter_encoded=False):
    """Returns the MediaRecords matching a query filter.

    :param filter_text: filter with URL-quoted values
    :param filter_encoded: whether the server must decode the values
    """
    params = {'type': media_query_type(session), 'filter': filter_text}
    if filter_encoded:
        params['filterEncoded'] = 'true'
    try:
        results = query.query(session, not_encoded_params=params)
    except exceptions.VCloudDriverException as excep:
        raise exceptions.wrap_exception(excep, 'error querying medias %s')
    return [MediaRecord.from_query_record(session, record)
            for record in results.records]
