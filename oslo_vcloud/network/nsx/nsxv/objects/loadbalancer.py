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

import logging

from oslo_utils import strutils

from oslo_vcloud._i18n import _
from oslo_vcloud.network.nsx.nsxv.api import api
from oslo_vcloud.network.nsx.nsxv.common import exceptions
from oslo_vcloud.network.nsx.nsxv.objects import edge_cfg_obj


LOG = logging.getLogger(__name__)


def _to_bool(value):
    return strutils.bool_from_string(value)


class NsxvLoadbalancerGeneralParams(edge_cfg_obj.NsxvEdgeCfgObj):
    """Global switches of the load balancer of an edge.

    Pools, monitors and the other load balancer objects are part of the
    same configuration and are submitted back unchanged.
    """

    SERVICE_NAME = 'loadbalancer'
    ROOT_TAG = 'loadBalancer'

    def get_service_name(self):
        return self.SERVICE_NAME

    @property
    def enabled(self):
        return _to_bool(self.config.get('enabled'))

    @property
    def acceleration_enabled(self):
        return _to_bool(self.config.get('accelerationEnabled'))

    def _logging(self):
        logging_cfg = self.config.get('logging')
        return logging_cfg if isinstance(logging_cfg, dict) else {}

    @property
    def logging_enabled(self):
        return _to_bool(self._logging().get('enable'))

    @property
    def log_level(self):
        return self._logging().get('logLevel', '')

    def set_params(self, enabled, acceleration_enabled, logging_enabled,
                   log_level):
        """Changes the general parameters.

        :returns: False when the parameters already had these values
        """
        if not log_level:
            raise exceptions.NsxvGeneralException(
                _("field Logging.LogLevel must be set to update load "
                  "balancer"))
        if (self.enabled == enabled and
                self.acceleration_enabled == acceleration_enabled and
                self.logging_enabled == logging_enabled and
                self.log_level == log_level):
            return False
        self.config['enabled'] = enabled
        self.config['accelerationEnabled'] = acceleration_enabled
        logging_cfg = self._logging()
        logging_cfg['enable'] = logging_enabled
        logging_cfg['logLevel'] = log_level
        self.config['logging'] = logging_cfg
        return True

    @staticmethod
    def get_general_params(nsxv_api, edge_id):
        return NsxvLoadbalancerGeneralParams(
            edge_cfg_obj.NsxvEdgeCfgObj.get_object(
                nsxv_api, edge_id,
                NsxvLoadbalancerGeneralParams.SERVICE_NAME))


def _require(payload, field, message):
    if payload.get(field) in (None, '', 0, '0'):
        raise exceptions.NsxvGeneralException(message)


def _validate_pool(payload):
    _require(payload, 'name',
             _("load balancer server pool Name cannot be empty"))
    _require(payload, 'algorithm',
             _("load balancer server pool Algorithm cannot be empty"))
    members = payload.get('member') or []
    if isinstance(members, dict):
        members = [members]
    for member in members:
        _require(member, 'condition',
                 _("load balancer server pool Member must have Condition "
                   "set"))


def _validate_monitor(payload):
    _require(payload, 'name', _("load balancer monitor Name cannot be empty"))
    _require(payload, 'timeout',
             _("load balancer monitor Timeout cannot be 0"))
    _require(payload, 'interval',
             _("load balancer monitor Interval cannot be 0"))
    _require(payload, 'maxRetries',
             _("load balancer monitor MaxRetries cannot be 0"))
    _require(payload, 'type', _("load balancer monitor Type cannot be empty"))


def _validate_virtual_server(payload):
    _require(payload, 'name',
             _("load balancer virtual server Name cannot be empty"))
    _require(payload, 'ipAddress',
             _("load balancer virtual server IpAddress cannot be empty"))
    _require(payload, 'protocol',
             _("load balancer virtual server Protocol cannot be empty"))
    _require(payload, 'port',
             _("load balancer virtual server Port cannot be empty"))


def _validate_app_profile(payload):
    _require(payload, 'name',
             _("load balancer application profile Name cannot be empty"))


def _validate_app_rule(payload):
    _require(payload, 'name',
             _("load balancer application rule Name cannot be empty"))


# Label used in messages and validation of each load balancer resource.
LB_OBJECT_KINDS = {
    api.MONITOR_RESOURCE: ('service monitor', _validate_monitor),
    api.POOL_RESOURCE: ('server pool', _validate_pool),
    api.APP_PROFILE_RESOURCE: ('application profile', _validate_app_profile),
    api.APP_RULE_RESOURCE: ('application rule', _validate_app_rule),
    api.VIP_RESOURCE: ('virtual server', _validate_virtual_server),
}


def get_label(resource):
    return LB_OBJECT_KINDS[resource][0]


def get_id_field(resource):
    return api.LB_RESOURCES[resource][1]


def validate_lb_object(resource, payload):
    """Checks the fields required to create or update an object."""
    LB_OBJECT_KINDS[resource][1](payload)


def to_payload(obj):
    """Returns the dict payload of a builder below, or obj itself."""
    if hasattr(obj, 'to_payload'):
        return obj.to_payload()
    return dict(obj)


class NsxvLBAppProfile(object):
    def __init__(
            self,
            name,
            server_ssl_enabled=False,
            ssl_pass_through=False,
            template='TCP',
            insert_xff=False,
            persist=False,
            persist_method='cookie',
            persist_cookie_name='JSESSIONID',
            persist_cookie_mode='insert',
            persist_expire=30):
        self.payload = {
            'name': name,
            'template': template,
            'sslPassthrough': ssl_pass_through,
            'insertXForwardedFor': insert_xff,
            'serverSslEnabled': server_ssl_enabled}
        self.set_persistence(persist, persist_method, persist_cookie_name,
                             persist_cookie_mode, persist_expire)

    def set_persistence(
            self,
            persist=False,
            persist_method='cookie',
            persist_cookie_name='JSESSIONID',
            persist_cookie_mode='insert',
            persist_expire=30):

        if persist:
            self.payload['persistence'] = {
                'method': persist_method,
                'expire': persist_expire
            }
            if persist_method == 'cookie':
                self.payload['persistence']['cookieMode'] = persist_cookie_mode
                self.payload['persistence']['cookieName'] = persist_cookie_name

        else:
            self.payload.pop('persistence', None)

    def to_payload(self):
        return dict(self.payload)


class NsxvLBAppRule(object):
    def __init__(self, name, script):
        self.payload = {
            'name': name,
            'script': script}

    def to_payload(self):
        return dict(self.payload)


class NsxvLBVirtualServer(object):
    def __init__(
            self,
            name,
            ip_address,
            port=80,
            protocol='http',
            enabled=True,
            acceleration_enabled=False,
            connection_limit=0,
            enable_service_insertion=False):
        self.payload = {
            'name': name,
            'enabled': enabled,
            'ipAddress': ip_address,
            'protocol': protocol,
            'port': port,
            'accelerationEnabled': acceleration_enabled,
            'connectionLimit': connection_limit,
            'enableServiceInsertion': enable_service_insertion}

        self.app_rule_ids = []
        self.app_profile_id = None
        self.default_pool_id = None

    def add_app_rule(self, app_rule_id):
        self.app_rule_ids.append(app_rule_id)

    def set_default_pool(self, pool_id):
        self.default_pool_id = pool_id

    def set_app_profile(self, app_profile_id):
        self.app_profile_id = app_profile_id

    def to_payload(self):
        payload = dict(self.payload)
        payload['applicationProfileId'] = self.app_profile_id
        payload['defaultPoolId'] = self.default_pool_id
        if self.app_rule_ids:
            payload['applicationRuleId'] = list(self.app_rule_ids)
        return payload


class NsxvLBMonitor(object):
    def __init__(
            self,
            name,
            interval=10,
            max_retries=3,
            method='GET',
            timeout=15,
            mon_type='http',
            url='/'):
        self.payload = {
            'type': mon_type,
            'interval': interval,
            'timeout': timeout,
            'maxRetries': max_retries,
            'method': method,
            'url': url,
            'name': name}

    def to_payload(self):
        return dict(self.payload)


class NsxvLBPoolMember(object):
    def __init__(
            self,
            name,
            ip_address,
            port,
            monitor_port=None,
            condition='enabled',
            weight=1,
            min_conn=0,
            max_conn=0):

        self.payload = {
            'ipAddress': ip_address,
            'weight': weight,
            'monitorPort': monitor_port,
            'port': port,
            'maxConn': max_conn,
            'minConn': min_conn,
            'condition': condition,
            'name': name}


class NsxvLBPool(object):
    def __init__(
            self,
            name,
            algorithm='round-robin',
            transparent=False):
        self.payload = {
            'name': name,
            'algorithm': algorithm,
            'transparent': transparent}

        self.members = {}
        self.monitor_ids = []

    def add_member(self, member):
        self.members[member.payload['name']] = member

    def del_member(self, name):
        self.members.pop(name, None)

    def add_monitor(self, monitor_id):
        self.monitor_ids.append(monitor_id)

    def to_payload(self):
        payload = dict(self.payload)
        if self.monitor_ids:
            payload['monitorId'] = list(self.monitor_ids)
        payload['member'] = [member.payload for member in
                             self.members.values()]
        return payload
