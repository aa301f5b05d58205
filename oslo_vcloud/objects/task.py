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

import collections
import logging

from oslo_vcloud._i18n import _
from oslo_vcloud import constants
from oslo_vcloud import exceptions
from oslo_vcloud.objects import resource
from oslo_vcloud import vcloud_util

LOG = logging.getLogger(__name__)

TaskError = collections.namedtuple('TaskError', ['message',
                                                 'major_error_code',
                                                 'minor_error_code'])


class Task(resource.VCloudResource):
    """Server-side asynchronous operation."""

    refresh_error = 'error retrieving task: %s'

    @property
    def status(self):
        return self._attr('status')

    @property
    def operation(self):
        return self._attr('operation')

    @property
    def operation_name(self):
        return self._attr('operationName')

    @property
    def description(self):
        description = vcloud_util.child_text(self.element, 'Description')
        return description or self.operation

    @property
    def progress(self):
        try:
            return int(vcloud_util.child_text(self.element, 'Progress', '0'))
        except ValueError:
            return 0

    @property
    def owner_name(self):
        owner = vcloud_util.find_child(self.element, 'Owner')
        return owner.get('name', '') if owner is not None else ''

    @property
    def owner_href(self):
        owner = vcloud_util.find_child(self.element, 'Owner')
        return owner.get('href', '') if owner is not None else ''

    @property
    def error(self):
        error = vcloud_util.find_child(self.element, 'Error')
        if error is None:
            return TaskError('', 0, '')
        try:
            major_error_code = int(error.get('majorErrorCode', 0))
        except ValueError:
            major_error_code = 0
        return TaskError(error.get('message', ''), major_error_code,
                         error.get('minorErrorCode', ''))

    def is_running(self):
        return self.status in constants.TASK_RUNNING_STATES

    def wait_task_completion(self):
        """Polls the task until it is no longer running."""
        return self._session.wait_for_task(self)

    def wait_inspect_task_completion(self, inspect):
        """Like wait_task_completion, calling inspect(task, count) on polls."""
        return self._session.wait_for_task(self, inspect=inspect)

    def cancel(self):
        if not self.href:
            raise exceptions.VCloudException(
                _("cannot cancel task, HREF is empty"))
        LOG.debug("Cancelling task: %s.", self.href)
        self._session.execute_request_without_response(
            '%s/action/cancel' % self.href, 'POST', None,
            'error cancelling task: %s')
