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
Edge gateways and the services they run.

The services of a non advanced edge gateway are reconfigured through the
vCloud Director API. Advanced edge gateways expose their firewall, NAT and
load balancer through the NSX-V API, proxied by vCloud Director.
"""

import copy
import functools
import logging
import re
import time

from lxml import etree
from oslo_utils import timeutils

from oslo_vcloud._i18n import _, _LW
from oslo_vcloud import api
from oslo_vcloud import constants
from oslo_vcloud import exceptions
from oslo_vcloud.network.nsx.nsxv.api import api as nsxv_api_mod
from oslo_vcloud.network.nsx.nsxv.common import exceptions as nsxv_exc
from oslo_vcloud.network.nsx.nsxv.objects import firewall
from oslo_vcloud.network.nsx.nsxv.objects import loadbalancer
from oslo_vcloud.objects import resource
from oslo_vcloud import vcloud_util

LOG = logging.getLogger(__name__)

BUSY_ERROR_RE = re.compile(r'is busy completing an operation.$')

DEFAULT_LEASE_TIME = 3600
MAX_LEASE_TIME = 7200


def _service_configuration():
    return etree.Element(
        vcloud_util.vcloud_tag('EdgeGatewayServiceConfiguration'),
        nsmap={None: constants.XML_NAMESPACE_VCLOUD})


def _add_text(parent, tag, value):
    if isinstance(value, bool):
        value = 'true' if value else 'false'
    etree.SubElement(parent, vcloud_util.vcloud_tag(tag)).text = str(value)


def _rules(content, container, tag):
    """Returns the rule dicts listed in a decoded NSX configuration."""
    rules = content.get(container) if isinstance(content, dict) else None
    if not isinstance(rules, dict):
        return []
    return rules.get(tag) or []


def _nsx_call(error_message, func, *args):
    try:
        return func(*args)
    except nsxv_exc.NsxvException as excep:
        raise exceptions.wrap_exception(excep, error_message)


class EdgeGateway(resource.VCloudResource):

    refresh_error = 'error retrieving Edge Gateway: %s'

    def __init__(self, session, element=None):
        super(EdgeGateway, self).__init__(session, element)
        self._nsxv_api = None

    @property
    def nsxv_api(self):
        if self._nsxv_api is None:
            self._nsxv_api = nsxv_api_mod.NsxvApi(self._session)
        return self._nsxv_api

    def refresh(self):
        if self.element is None or not self.href:
            raise exceptions.VCloudException(
                _("cannot refresh, Object is empty"))
        return super(EdgeGateway, self).refresh()

    @property
    def configuration(self):
        return vcloud_util.find_child(self.element, 'Configuration')

    @property
    def service_configuration(self):
        return vcloud_util.find_child(self.configuration,
                                      'EdgeGatewayServiceConfiguration')

    def has_advanced_networking(self):
        return vcloud_util.child_text(
            self.configuration, 'AdvancedNetworkingEnabled') == 'true'

    @property
    def edge_id(self):
        """NSX-V edge ID: the UUID of urn:vcloud:gateway:<uuid>."""
        parts = self.id.split(':')
        if len(parts) != 4 or not parts[3]:
            raise exceptions.VCloudException(
                _("unable to find edge gateway id: %s") % self.id)
        return parts[3]

    def build_proxied_edge_endpoint_url(self, suffix):
        """Returns the URL of an NSX-V edge endpoint.

        :param suffix: path below the edge, like 'firewall/config'
        """
        return '%s%s/%s/%s' % (self._session.host_url, nsxv_api_mod.URI_PREFIX,
                               self.edge_id, suffix)

    def configure_services(self, service_configuration):
        """Sends an EdgeGatewayServiceConfiguration to the edge gateway.

        A gateway busy with another operation is retried every few
        seconds, until the retry timeout of the session expires.

        :returns: Task of the reconfiguration
        """
        href = '%s/action/configureServices' % self.href
        watch = timeutils.StopWatch(duration=self._session.max_retry_timeout)
        watch.start()
        while True:
            try:
                return self._session.execute_task_request(
                    href, 'POST',
                    constants.MIME_EDGE_GATEWAY_SERVICE_CONFIGURATION,
                    'error reconfiguring Edge Gateway: %s',
                    payload=service_configuration)
            except exceptions.VCloudApiException as excep:
                if not BUSY_ERROR_RE.search(excep.message) or watch.expired():
                    raise
                LOG.warning(_LW("Edge gateway %(name)s is busy; retrying in "
                                "%(interval)d seconds."),
                            {'name': self.name,
                             'interval': constants.BUSY_RETRY_INTERVAL})
            time.sleep(constants.BUSY_RETRY_INTERVAL)

    def add_dhcp_pool(self, network_href, network_name, pools):
        """Replaces the DHCP pools of a network on the edge gateway.

        Pools of the other networks are kept.

        :param pools: list of dicts with start_address, end_address and,
                      optionally, default_lease_time and max_lease_time
        :returns: Task of the reconfiguration
        """
        current = vcloud_util.find_child(self.service_configuration,
                                         'GatewayDhcpService')
        existing = vcloud_util.find_children(current, 'Pool')
        config = _service_configuration()
        service = etree.SubElement(
            config, vcloud_util.vcloud_tag('GatewayDhcpService'))
        if not existing:
            _add_text(service, 'IsEnabled', True)
        else:
            _add_text(service, 'IsEnabled',
                      vcloud_util.child_text(current, 'IsEnabled') == 'true')
        for pool in existing:
            network = vcloud_util.find_child(pool, 'Network')
            pool_href = network.get('href', '') if network is not None else ''
            if vcloud_util.equal_ids(network_href, '', pool_href):
                continue
            service.append(copy.deepcopy(pool))
        for data in pools:
            pool = etree.SubElement(service, vcloud_util.vcloud_tag('Pool'))
            _add_text(pool, 'IsEnabled', True)
            network = etree.SubElement(pool, vcloud_util.vcloud_tag('Network'))
            network.set('href', network_href)
            network.set('name', network_name)
            _add_text(pool, 'DefaultLeaseTime',
                      data.get('default_lease_time') or DEFAULT_LEASE_TIME)
            _add_text(pool, 'MaxLeaseTime',
                      data.get('max_lease_time') or MAX_LEASE_TIME)
            _add_text(pool, 'LowIpAddress', data['start_address'])
            _add_text(pool, 'HighIpAddress', data['end_address'])
        LOG.debug("Setting %(count)d DHCP pools for network %(network)s on "
                  "edge gateway %(name)s.",
                  {'count': len(pools), 'network': network_name,
                   'name': self.name})
        return self.configure_services(config)

    def create_firewall_rules(self, default_action, rules):
        """Replaces the firewall rules of a non advanced edge gateway.

        :param rules: FirewallRule elements
        :returns: Task of the reconfiguration
        """
        self.refresh()
        config = _service_configuration()
        service = etree.SubElement(config,
                                   vcloud_util.vcloud_tag('FirewallService'))
        _add_text(service, 'IsEnabled', True)
        _add_text(service, 'DefaultAction', default_action)
        _add_text(service, 'LogDefaultAction', True)
        for rule in rules:
            service.append(copy.deepcopy(rule))
        return self.configure_services(config)

    def delete_async(self, force=False, recursive=False):
        if not self.href:
            raise exceptions.VCloudException(
                _("cannot delete, HREF is missing"))
        LOG.debug("Deleting edge gateway %s.", self.name)
        return self._session.execute_task_request(
            self.href, 'DELETE', None, 'error deleting edge gateway: %s',
            params={'force': str(force).lower(),
                    'recursive': str(recursive).lower()})

    def delete(self, force=False, recursive=False):
        task = self.delete_async(force, recursive)
        if task.status == constants.TASK_STATUS_ERROR:
            raise exceptions.VCloudException(
                api.combined_task_error_message(
                    task, _("edge gateway not properly destroyed")))
        task.wait_task_completion()

    # Load balancer and firewall global configuration

    def get_lb_general_params(self):
        if not self.has_advanced_networking():
            raise exceptions.VCloudException(
                _("only advanced edge gateway supports load balancing"))
        return _nsx_call(
            'unable to read load balancer configuration: %s',
            loadbalancer.NsxvLoadbalancerGeneralParams.get_general_params,
            self.nsxv_api, self.edge_id)

    def update_lb_general_params(self, enabled, acceleration_enabled,
                                 logging_enabled, log_level):
        """Sets the global switches of the load balancer.

        :returns: the configuration read back from the edge
        """
        params = self.get_lb_general_params()
        if params.set_params(enabled, acceleration_enabled, logging_enabled,
                             log_level):
            _nsx_call('error while updating load balancer config: %s',
                      params.submit_to_backend, self.nsxv_api, self.edge_id)
        return self.get_lb_general_params()

    def get_firewall_config(self):
        if not self.has_advanced_networking():
            raise exceptions.VCloudException(
                _("only advanced edge gateway support firewall "
                  "configuration"))
        return _nsx_call('unable to read firewall configuration: %s',
                         firewall.NsxvFirewallConfig.get_firewall_config,
                         self.nsxv_api, self.edge_id)

    def update_firewall_config(self, enabled, default_logging_enabled,
                               default_action):
        config = self.get_firewall_config()
        if config.set_params(enabled, default_logging_enabled,
                             default_action):
            _nsx_call('error while updating firewall configuration: %s',
                      config.submit_to_backend, self.nsxv_api, self.edge_id)
        return self.get_firewall_config()

    # NSX-V firewall rules

    def _check_firewall_rules_support(self):
        if not self.has_advanced_networking():
            raise exceptions.VCloudException(
                _("only advanced edge gateways support firewall rules"))

    def _validate_firewall_rule(self, rule):
        self._check_firewall_rules_support()
        if not rule.get('action'):
            raise exceptions.VCloudException(
                _("firewall rule must have action specified"))

    def get_all_nsxv_firewall_rules(self):
        self._check_firewall_rules_support()
        config = _nsx_call('unable to read firewall rule: %s',
                           self.nsxv_api.get_firewall, self.edge_id)
        rules = _rules(config, 'firewallRules', 'firewallRule')
        if not rules:
            raise exceptions.EntityNotFoundException()
        return rules

    def get_nsxv_firewall_rule_by_id(self, rule_id):
        self._check_firewall_rules_support()
        if not rule_id:
            raise exceptions.VCloudException(
                _("unable to retrieve firewall rule without ID"))
        config = _nsx_call('unable to read firewall rule: %s',
                           self.nsxv_api.get_firewall, self.edge_id)
        LOG.debug("Searching for firewall rule with ID: %s.", rule_id)
        for rule in _rules(config, 'firewallRules', 'firewallRule'):
            if rule.get('id') == rule_id:
                return rule
        raise exceptions.EntityNotFoundException()

    def create_nsxv_firewall_rule(self, rule, above_rule_id=None):
        """Creates a firewall rule, appended or above another rule.

        :param rule: firewallRule dict; its id is set by the edge
        :returns: the rule read back from the edge
        """
        self._validate_firewall_rule(rule)
        if above_rule_id:
            header, _content = _nsx_call(
                'error creating firewall rule: %s',
                self.nsxv_api.add_firewall_rule_above, self.edge_id,
                above_rule_id, rule)
        else:
            header, _content = _nsx_call(
                'error creating firewall rule: %s',
                self.nsxv_api.add_firewall_rule, self.edge_id, rule)
        rule_id = nsxv_api_mod.get_object_id_from_location(
            header.get('location'))
        return self.get_nsxv_firewall_rule_by_id(rule_id)

    def update_nsxv_firewall_rule(self, rule):
        if not rule.get('id'):
            raise exceptions.VCloudException(
                _("firewall rule ID must be set for update"))
        self._validate_firewall_rule(rule)
        _nsx_call('error while updating firewall rule : %s',
                  self.nsxv_api.update_firewall_rule, self.edge_id,
                  rule['id'], rule)
        return self.get_nsxv_firewall_rule_by_id(rule['id'])

    def delete_nsxv_firewall_rule_by_id(self, rule_id):
        self.get_nsxv_firewall_rule_by_id(rule_id)
        _nsx_call('unable to delete firewall rule: %s',
                  self.nsxv_api.delete_firewall_rule, self.edge_id, rule_id)

    # NSX-V NAT rules

    def _check_nat_rules_support(self):
        if not self.has_advanced_networking():
            raise exceptions.VCloudException(
                _("only advanced edge gateways support NAT rules"))

    def _validate_nat_rule(self, rule):
        self._check_nat_rules_support()
        if not rule.get('action'):
            raise exceptions.VCloudException(
                _("NAT rule must have an action"))
        if not rule.get('translatedAddress'):
            raise exceptions.VCloudException(
                _("NAT rule must translated address specified"))

    def get_nsxv_nat_rule_by_id(self, rule_id):
        self._check_nat_rules_support()
        if not rule_id:
            raise exceptions.VCloudException(
                _("unable to retrieve NAT rule without ID"))
        config = _nsx_call('unable to read NAT rule: %s',
                           self.nsxv_api.get_nat_config, self.edge_id)
        for rule in _rules(config, 'natRules', 'natRule'):
            if rule.get('ruleId') == rule_id:
                return rule
        raise exceptions.EntityNotFoundException()

    def create_nsxv_nat_rule(self, rule):
        """Creates a NAT rule.

        The edge lists a new rule a few seconds after accepting it.
        """
        self._validate_nat_rule(rule)
        header, _content = _nsx_call('error creating NAT rule: %s',
                                     self.nsxv_api.add_nat_rule,
                                     self.edge_id, rule)
        rule_id = nsxv_api_mod.get_object_id_from_location(
            header.get('location'))
        time.sleep(constants.NAT_RULE_SETTLE_TIME)
        return self.get_nsxv_nat_rule_by_id(rule_id)

    def update_nsxv_nat_rule(self, rule):
        if not rule.get('ruleId'):
            raise exceptions.VCloudException(
                _("NAT rule must ID must be set for update"))
        self._validate_nat_rule(rule)
        _nsx_call('error while updating NAT rule : %s',
                  self.nsxv_api.update_nat_rule, self.edge_id,
                  rule['ruleId'], rule)
        return self.get_nsxv_nat_rule_by_id(rule['ruleId'])

    def delete_nsxv_nat_rule_by_id(self, rule_id):
        self.get_nsxv_nat_rule_by_id(rule_id)
        _nsx_call('unable to delete nat rule: %s',
                  self.nsxv_api.delete_nat_rule, self.edge_id, rule_id)

    # Load balancer objects

    def _lb_objects(self, resource_name):
        return _nsx_call(
            'unable to read load balancer %s: %%s' %
            loadbalancer.get_label(resource_name),
            self.nsxv_api.get_lb_objects, self.edge_id, resource_name)

    def read_lb_object(self, resource_name, name=None, object_id=None):
        """Finds a load balancer object by ID or by name.

        :param resource_name: one of the resources of nsxv_api_mod.LB_RESOURCES
        """
        label = loadbalancer.get_label(resource_name)
        if not name and not object_id:
            raise exceptions.VCloudException(
                _("to read load balancer %s at least one of `ID`, `Name` "
                  "fields must be specified") % label)
        id_field = loadbalancer.get_id_field(resource_name)
        for lb_object in self._lb_objects(resource_name):
            if object_id and lb_object.get(id_field) == object_id:
                return lb_object
            if name and lb_object.get('name') == name:
                if object_id and lb_object.get(id_field) != object_id:
                    raise exceptions.VCloudException(
                        _("load balancer %(label)s was found by name "
                          "(%(name)s), but its ID (%(found)s) does not "
                          "match specified ID (%(id)s)") %
                        {'label': label, 'name': name,
                         'found': lb_object.get(id_field), 'id': object_id})
                return lb_object
        raise exceptions.VCloudException(
            _("could not find load balancer %(label)s (name: %(name)s, "
              "ID: %(id)s)") % {'label': label, 'name': name or '',
                                'id': object_id or ''})

    def create_lb_object(self, resource_name, lb_object):
        """Creates a load balancer object and reads it back.

        :param lb_object: payload dict or builder with to_payload()
        """
        payload = loadbalancer.to_payload(lb_object)
        loadbalancer.validate_lb_object(resource_name, payload)
        label = loadbalancer.get_label(resource_name)
        header, _content = _nsx_call(
            'error creating load balancer %s: %%s' % label,
            self.nsxv_api.create_lb_object, self.edge_id, resource_name,
            payload)
        location = header.get('location')
        if not location:
            raise exceptions.VCloudException(
                _("unable to retrieve ID for new load balancer %(label)s "
                  "with name %(name)s") % {'label': label,
                                           'name': payload.get('name')})
        object_id = nsxv_api_mod.get_object_id_from_location(location)
        return self.read_lb_object(resource_name, object_id=object_id)

    def update_lb_object(self, resource_name, lb_object):
        """Updates a load balancer object, found by ID or else by name."""
        payload = loadbalancer.to_payload(lb_object)
        loadbalancer.validate_lb_object(resource_name, payload)
        id_field = loadbalancer.get_id_field(resource_name)
        object_id = payload.get(id_field)
        if not object_id:
            object_id = self.read_lb_object(
                resource_name, name=payload.get('name'))[id_field]
        _nsx_call('error while updating load balancer %s: %%s' %
                  loadbalancer.get_label(resource_name),
                  self.nsxv_api.update_lb_object, self.edge_id,
                  resource_name, object_id, payload)
        return self.read_lb_object(resource_name, object_id=object_id)

    def delete_lb_object(self, resource_name, name=None, object_id=None):
        if not object_id:
            object_id = self.read_lb_object(
                resource_name, name=name)[
                    loadbalancer.get_id_field(resource_name)]
        _nsx_call('unable to delete load balancer %s: %%s' %
                  loadbalancer.get_label(resource_name),
                  self.nsxv_api.delete_lb_object, self.edge_id,
                  resource_name, object_id)

    create_lb_service_monitor = functools.partialmethod(
        create_lb_object, nsxv_api_mod.MONITOR_RESOURCE)
    read_lb_service_monitor = functools.partialmethod(
        read_lb_object, nsxv_api_mod.MONITOR_RESOURCE)
    update_lb_service_monitor = functools.partialmethod(
        update_lb_object, nsxv_api_mod.MONITOR_RESOURCE)
    delete_lb_service_monitor = functools.partialmethod(
        delete_lb_object, nsxv_api_mod.MONITOR_RESOURCE)

    create_lb_server_pool = functools.partialmethod(
        create_lb_object, nsxv_api_mod.POOL_RESOURCE)
    read_lb_server_pool = functools.partialmethod(
        read_lb_object, nsxv_api_mod.POOL_RESOURCE)
    update_lb_server_pool = functools.partialmethod(
        update_lb_object, nsxv_api_mod.POOL_RESOURCE)
    delete_lb_server_pool = functools.partialmethod(
        delete_lb_object, nsxv_api_mod.POOL_RESOURCE)

    create_lb_app_profile = functools.partialmethod(
        create_lb_object, nsxv_api_mod.APP_PROFILE_RESOURCE)
    read_lb_app_profile = functools.partialmethod(
        read_lb_object, nsxv_api_mod.APP_PROFILE_RESOURCE)
    update_lb_app_profile = functools.partialmethod(
        update_lb_object, nsxv_api_mod.APP_PROFILE_RESOURCE)
    delete_lb_app_profile = functools.partialmethod(
        delete_lb_object, nsxv_api_mod.APP_PROFILE_RESOURCE)

    create_lb_app_rule = functools.partialmethod(
        create_lb_object, nsxv_api_mod.APP_RULE_RESOURCE)
    read_lb_app_rule = functools.partialmethod(
        read_lb_object, nsxv_api_mod.APP_RULE_RESOURCE)
    update_lb_app_rule = functools.partialmethod(
        update_lb_object, nsxv_api_mod.APP_RULE_RESOURCE)
    delete_lb_app_rule = functools.partialmethod(
        delete_lb_object, nsxv_api_mod.APP_RULE_RESOURCE)

    create_lb_virtual_server = functools.partialmethod(
        create_lb_object, nsxv_api_mod.VIP_RESOURCE)
    read_lb_virtual_server = functools.partialmethod(
        read_lb_object, nsxv_api_mod.VIP_RESOURCE)
    update_lb_virtual_server = functools.partialmethod(
        update_lb_object, nsxv_api_mod.VIP_RESOURCE)
    delete_lb_virtual_server = functools.partialmethod(
        delete_lb_object, nsxv_api_mod.VIP_RESOURCE)
