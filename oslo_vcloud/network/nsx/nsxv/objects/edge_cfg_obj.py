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

import abc

from oslo_vcloud.network.nsx.nsxv.api import api


class NsxvEdgeCfgObj(object, metaclass=abc.ABCMeta):
    """Global configuration of an edge service.

    The configuration is read whole from the edge; subclasses change
    their own fields only and the rest is sent back untouched.
    """

    ROOT_TAG = None

    def __init__(self, config=None):
        self.config = dict(config or {})

    @abc.abstractmethod
    def get_service_name(self):
        return

    def serializable_payload(self):
        """Returns the configuration to submit, without its version.

        The version is set by the edge; sending an outdated one fails.
        """
        payload = dict(self.config)
        payload.pop('version', None)
        return payload

    @staticmethod
    def get_object(nsxv_api, edge_id, service_name):
        uri = "%s/%s/%s/config/" % (api.URI_PREFIX,
                                    edge_id,
                                    service_name)

        h, v = nsxv_api.do_request(
            api.HTTP_GET,
            uri,
            decode=True)

        return list(v.values())[0] if v else {}

    def submit_to_backend(self, nsxv_api, edge_id):
        uri = "%s/%s/%s/config/" % (api.URI_PREFIX,
                                    edge_id,
                                    self.get_service_name())

        payload = self.serializable_payload()

        if payload:
            return nsxv_api.do_request(
                api.HTTP_PUT,
                uri,
                {self.ROOT_TAG: payload})
