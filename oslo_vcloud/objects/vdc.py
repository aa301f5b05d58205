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
Virtual data centers: edge gateways, media and NSX-V IP sets.
"""

import logging
from urllib import parse

from oslo_vcloud._i18n import _
from oslo_vcloud import api
from oslo_vcloud import constants
from oslo_vcloud import exceptions
from oslo_vcloud.filters import definition
from oslo_vcloud import image_transfer
from oslo_vcloud.network.nsx.nsxv.api import api as nsxv_api_mod
from oslo_vcloud.network.nsx.nsxv.common import exceptions as nsxv_exc
from oslo_vcloud.objects import edge_gateway
from oslo_vcloud.objects import media as media_obj
from oslo_vcloud.objects import resource
from oslo_vcloud import vcloud_util

LOG = logging.getLogger(__name__)

# Search restricted to a VDC, by ID or by name.
PARENT_FIELD_VDC = 'vdc'
PARENT_FIELD_VDC_NAME = 'vdcName'

# Attempts after a failed edge gateway retrieval.
EDGE_GATEWAY_RETRIES = 3
EDGE_GATEWAY_RETRY_INTERVAL = 0.2


class Vdc(resource.VCloudResource):

    refresh_error = 'error refreshing vDC: %s'

    def __init__(self, session, element=None):
        super(Vdc, self).__init__(session, element)
        self._nsxv_api = None

    @property
    def nsxv_api(self):
        if self._nsxv_api is None:
            self._nsxv_api = nsxv_api_mod.NsxvApi(self._session)
        return self._nsxv_api

    def refresh(self):
        if not self.href:
            raise exceptions.VCloudException(
                _("cannot refresh, Object is empty"))
        return super(Vdc, self).refresh()

    def delete(self, force=False, recursive=False):
        """Starts the removal of the VDC.

        :returns: Task of the removal
        """
        if not self.href:
            raise exceptions.VCloudException(
                _("cannot delete, Object is empty"))
        LOG.debug("Deleting VDC %(name)s; force: %(force)s, recursive: "
                  "%(recursive)s.",
                  {'name': self.name, 'force': force,
                   'recursive': recursive})
        task = self._session.execute_task_request(
            self.href, 'DELETE', None, 'error deleting vdc: %s',
            params={'force': str(force).lower(),
                    'recursive': str(recursive).lower()})
        if task.status == constants.TASK_STATUS_ERROR:
            raise exceptions.VCloudException(
                _("vdc not properly destroyed"))
        return task

    def delete_wait(self, force=False, recursive=False):
        self.delete(force, recursive).wait_task_completion()

    # Edge gateways

    def get_edge_gateway_records(self, refresh=False):
        """Returns the EdgeGatewayRecord elements of the VDC."""
        if refresh:
            self.refresh()
        href = self.find_link(constants.REL_EDGE_GATEWAYS,
                              constants.MIME_QUERY_RECORDS)
        if not href:
            raise exceptions.VCloudException(
                _("no edge gateway query link found in VDC %s") % self.name)
        element = self._session.execute_request(
            href, 'GET', None, 'error querying edge gateways: %s')
        return vcloud_util.find_children(element, 'EdgeGatewayRecord')

    def _edge_gateway_records(self, refresh):
        try:
            return self.get_edge_gateway_records(refresh)
        except exceptions.VCloudDriverException as excep:
            raise exceptions.wrap_exception(
                excep, 'error retrieving edge gateways list: %s')

    def get_edge_gateway_by_href(self, href):
        """Retrieves an edge gateway, retrying a few times on errors.

        Some vCloud Director releases fail now and then to return an
        edge gateway that they return on the next attempt.
        """
        if not href:
            raise exceptions.VCloudException(_("empty edge gateway HREF"))

        @api.RetryDecorator(max_retry_count=EDGE_GATEWAY_RETRIES,
                            inc_sleep_time=EDGE_GATEWAY_RETRY_INTERVAL,
                            max_sleep_time=EDGE_GATEWAY_RETRY_INTERVAL,
                            exceptions=(exceptions.VCloudException,))
        def _get_edge_gateway():
            return self._session.execute_request(
                href, 'GET', None, 'error retrieving edge gateway: %s')

        return edge_gateway.EdgeGateway(self._session, _get_edge_gateway())

    def get_edge_gateway_by_name(self, name, refresh=False):
        for record in self._edge_gateway_records(refresh):
            if record.get('name') == name:
                return self.get_edge_gateway_by_href(record.get('href'))
        raise exceptions.EntityNotFoundException()

    def get_edge_gateway_by_id(self, edge_gateway_id, refresh=False):
        for record in self._edge_gateway_records(refresh):
            if vcloud_util.equal_ids(edge_gateway_id, '',
                                     record.get('href')):
                return self.get_edge_gateway_by_href(record.get('href'))
        raise exceptions.EntityNotFoundException()

    def get_edge_gateway_by_name_or_id(self, identifier, refresh=False):
        return api.get_entity_by_name_or_id(self.get_edge_gateway_by_name,
                                            self.get_edge_gateway_by_id,
                                            identifier, refresh)

    def build_nsxv_network_service_endpoint_url(self, suffix=''):
        """Returns the URL of the NSX-V network services of the server."""
        url = parse.urlsplit(self.href)
        return '%s://%s%s%s' % (url.scheme, url.netloc,
                                nsxv_api_mod.SERVICES_PREFIX, suffix)

    # Media

    def query_media_list(self):
        return media_obj.query_media_records(
            self._session, 'vdc==%s' % parse.quote_plus(self.href))

    def upload_media_image(self, media_name, description, file_path,
                           upload_piece_size=(
                               constants.DEFAULT_UPLOAD_PIECE_SIZE)):
        """Uploads an ISO image as a media of this VDC.

        The media is not listed by any catalog.

        :returns: image_transfer.UploadTask
        """
        if self.element is None:
            raise exceptions.UploadException(
                _("vdc can not be empty or nil"))
        try:
            existing = [record.name for record in self.query_media_list()]
        except exceptions.VCloudDriverException as excep:
            raise exceptions.UploadException(
                _("Checking existing media files failed: %s") % excep,
                excep)
        return image_transfer.upload_media_image(
            self._session, '%s/media' % self.href, media_name, description,
            file_path, upload_piece_size=upload_piece_size,
            existing_names=existing)

    def search_by_filter(self, query_type, parent_field, criteria=None):
        """Runs a filter search on the entities of this VDC.

        :param parent_field: 'vdc' to match the VDC ID or 'vdcName' to
                             match its name
        :returns: tuple (list of QueryItem, explanation)
        """
        if parent_field == PARENT_FIELD_VDC:
            return self._search_with_parent(query_type, criteria,
                                            definition.FILTER_PARENT_ID,
                                            self.id)
        if parent_field == PARENT_FIELD_VDC_NAME:
            return self._search_with_parent(query_type, criteria,
                                            definition.FILTER_PARENT,
                                            self.name)
        raise exceptions.FilterException(
            _("unrecognized filter field '%s'") % parent_field)

    # NSX-V IP sets

    def _ipset_scope(self):
        try:
            return vcloud_util.get_uuid_from_href(self.href)
        except exceptions.VCloudException as excep:
            raise exceptions.wrap_exception(
                excep, 'unable to get vdc ID from HREF: %s')

    @staticmethod
    def _validate_ipset(ipset):
        if not ipset.get('name'):
            raise exceptions.VCloudException(
                _("IP set must have name defined"))
        if not ipset.get('value'):
            raise exceptions.VCloudException(
                _("IP set must IP addresses defined"))

    def get_all_nsxv_ipsets(self):
        """Returns the IP sets of the VDC.

        Each IP set is a dict with objectId, name, value (comma separated
        addresses, ranges and CIDRs) and revision.
        """
        scope = self._ipset_scope()
        try:
            ipsets = self.nsxv_api.get_ipsets(scope)
        except nsxv_exc.NsxvException as excep:
            raise exceptions.wrap_exception(
                excep, 'unable to read IP sets for scope %s: %%s' % scope)
        if not ipsets:
            raise exceptions.EntityNotFoundException()
        return ipsets

    def _find_ipset(self, field, value):
        if not value:
            raise exceptions.VCloudException(
                _("at least name or ID must be provided"))
        LOG.debug("Searching for IP set with %(field)s: %(value)s.",
                  {'field': field, 'value': value})
        for ipset in self.get_all_nsxv_ipsets():
            if ipset.get(field) == value:
                return ipset
        raise exceptions.EntityNotFoundException()

    def get_nsxv_ipset_by_name(self, name):
        return self._find_ipset('name', name)

    def get_nsxv_ipset_by_id(self, ipset_id):
        return self._find_ipset('objectId', ipset_id)

    def get_nsxv_ipset_by_name_or_id(self, identifier):
        return api.get_entity_by_name_or_id(
            lambda name, refresh: self.get_nsxv_ipset_by_name(name),
            lambda ipset_id, refresh: self.get_nsxv_ipset_by_id(ipset_id),
            identifier, True)

    def create_nsxv_ipset(self, ipset):
        """Creates an IP set and returns it as listed by NSX-V."""
        self._validate_ipset(ipset)
        scope = self._ipset_scope()
        try:
            self.nsxv_api.create_ipset(scope, ipset)
        except nsxv_exc.NsxvException as excep:
            raise exceptions.wrap_exception(excep, 'error creating IP set: %s')
        return self.get_nsxv_ipset_by_name(ipset['name'])

    def update_nsxv_ipset(self, ipset):
        """Updates an IP set, sending the revision NSX-V has for it."""
        if not ipset.get('objectId'):
            raise exceptions.VCloudException(
                _("IP set ID must be set for update"))
        self._validate_ipset(ipset)
        ipset_id = ipset['objectId']
        current = self.get_nsxv_ipset_by_id(ipset_id)
        payload = dict(ipset, revision=current.get('revision'))
        try:
            self.nsxv_api.update_ipset(ipset_id, payload)
        except nsxv_exc.NsxvException as excep:
            raise exceptions.wrap_exception(
                excep, 'error while updating IP set with ID %s :%%s' %
                ipset_id)
        return self.get_nsxv_ipset_by_id(ipset_id)

    def delete_nsxv_ipset_by_id(self, ipset_id):
        if not ipset_id:
            raise exceptions.VCloudException(
                _("at least name or ID must be provided"))
        try:
            self.nsxv_api.delete_ipset(ipset_id)
        except nsxv_exc.NsxvException as excep:
            raise exceptions.wrap_exception(
                excep, 'unable to delete IP set with ID %s: %%s' % ipset_id)

    def delete_nsxv_ipset_by_name(self, name):
        ipset = self.get_nsxv_ipset_by_name(name)
        self.delete_nsxv_ipset_by_id(ipset['objectId'])
