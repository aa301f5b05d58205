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

from oslo_utils import strutils

from oslo_vcloud._i18n import _
from oslo_vcloud.network.nsx.nsxv.common import exceptions
from oslo_vcloud.network.nsx.nsxv.objects import edge_cfg_obj

FIREWALL_ACTIONS = ('accept', 'deny')


class NsxvFirewallConfig(edge_cfg_obj.NsxvEdgeCfgObj):
    """Global firewall switch and default policy of an edge."""

    SERVICE_NAME = 'firewall'
    ROOT_TAG = 'firewall'

    def get_service_name(self):
        return self.SERVICE_NAME

    def _default_policy(self):
        policy = self.config.get('defaultPolicy')
        return policy if isinstance(policy, dict) else {}

    @property
    def enabled(self):
        return strutils.bool_from_string(self.config.get('enabled'))

    @property
    def default_action(self):
        return self._default_policy().get('action', '')

    @property
    def default_logging_enabled(self):
        return strutils.bool_from_string(
            self._default_policy().get('loggingEnabled'))

    def set_params(self, enabled, default_logging_enabled, default_action):
        """Changes the firewall switch and its default policy.

        :returns: False when the configuration already had these values
        """
        if default_action not in FIREWALL_ACTIONS:
            raise exceptions.NsxvGeneralException(
                _("default action must be either 'accept' or 'deny'"))
        if (self.enabled == enabled and
                self.default_logging_enabled == default_logging_enabled and
                self.default_action == default_action):
            return False
        self.config['enabled'] = enabled
        policy = self._default_policy()
        policy['action'] = default_action
        policy['loggingEnabled'] = default_logging_enabled
        self.config['defaultPolicy'] = policy
        return True

    @staticmethod
    def get_firewall_config(nsxv_api, edge_id):
        return NsxvFirewallConfig(edge_cfg_obj.NsxvEdgeCfgObj.get_object(
            nsxv_api, edge_id, NsxvFirewallConfig.SERVICE_NAME))
