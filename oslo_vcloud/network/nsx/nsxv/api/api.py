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
import time

from oslo_serialization import jsonutils

from oslo_vcloud._i18n import _, _LI
from oslo_vcloud.network.nsx.nsxv.api import api_helper
from oslo_vcloud.network.nsx.nsxv.common import exceptions


LOG = logging.getLogger(__name__)

HTTP_GET = "GET"
HTTP_POST = "POST"
HTTP_DELETE = "DELETE"
HTTP_PUT = "PUT"
URI_PREFIX = "/network/edges"
SERVICES_PREFIX = "/network/services"

# Firewall constants
FIREWALL_SERVICE = "firewall/config"
FIREWALL_RULE_RESOURCE = "rules"

# NAT constants
NAT_SERVICE = "nat/config"
NAT_RULE_RESOURCE = "rules"

# LbaaS Constants
LOADBALANCER_SERVICE = "loadbalancer/config"
VIP_RESOURCE = "virtualservers"
POOL_RESOURCE = "pools"
MONITOR_RESOURCE = "monitors"
APP_PROFILE_RESOURCE = "applicationprofiles"
APP_RULE_RESOURCE = "applicationrules"

# Element and ID field of each load balancer resource.
LB_RESOURCES = {
    MONITOR_RESOURCE: ('monitor', 'monitorId'),
    POOL_RESOURCE: ('pool', 'poolId'),
    APP_PROFILE_RESOURCE: ('applicationProfile', 'applicationProfileId'),
    APP_RULE_RESOURCE: ('applicationRule', 'applicationRuleId'),
    VIP_RESOURCE: ('virtualServer', 'virtualServerId'),
}

# IP set constants
IPSET_SERVICE = "ipset"

# Elements always decoded as lists.
FORCE_LIST = ('firewallRule', 'natRule', 'ipset', 'member', 'monitor',
              'pool', 'applicationProfile', 'applicationRule',
              'virtualServer')


def get_object_id_from_location(location):
    """Returns the ID of a created object from its Location header.

    The header looks like /network/edges/edge-3/loadbalancer/config/pools/
    pool-7.
    """
    object_id = (location or '').rstrip('/').split('/')[-1]
    if not object_id:
        raise exceptions.NsxvGeneralException(
            _("unable to get ID from path: %s") % location)
    return object_id


def _content(body, tag):
    """Returns the content of the root element of a decoded body."""
    if not body:
        return {} if tag is None else []
    content = list(body.values())[0]
    if tag is not None:
        content = content.get(tag, []) if isinstance(content, dict) else []
    return content


class NsxvApi(object):

    def __init__(self, session, retries=2):
        self.session = session
        self.retries = retries
        self.jsonapi_client = api_helper.NsxvApiHelper(session, 'json')
        self.xmlapi_client = api_helper.NsxvApiHelper(session, 'xml')

    def _client_request(self, client, method, uri, params, headers,
                        encode_params):
        retries = max(self.retries, 1)
        delay = 0.5
        for attempt in range(1, retries + 1):
            if attempt != 1:
                time.sleep(delay)
                delay = min(2 * delay, 60)
            try:
                return client(method, uri, params, headers, encode_params)
            except exceptions.ServiceConflict as e:
                if attempt == retries:
                    raise e
            LOG.info(_LI('NSXv: conflict on request. Trying again.'))

    def do_request(self, method, uri, params=None, format='xml', **kwargs):
        LOG.debug("NsxvApi('%(method)s', '%(uri)s', '%(body)s')", {
                  'method': method,
                  'uri': uri,
                  'body': params})
        headers = kwargs.get('headers')
        encode_params = kwargs.get('encode', True)
        if format == 'json':
            _client = self.jsonapi_client.request
        else:
            _client = self.xmlapi_client.request
        header, content = self._client_request(_client, method, uri, params,
                                               headers, encode_params)
        if not content:
            return header, {}
        if kwargs.get('decode', True):
            if format == 'json':
                content = jsonutils.loads(content)
            else:
                content = api_helper.xmlloads(content, FORCE_LIST)
        return header, content

    def _build_uri_path(self, edge_id, service, resource=None,
                        resource_id=None, parameters=None):
        uri_prefix = "%s/%s/%s" % (URI_PREFIX, edge_id, service)
        if resource:
            res_path = resource + (resource_id and "/%s" % resource_id or '')
            uri_path = "%s/%s" % (uri_prefix, res_path)
        else:
            uri_path = uri_prefix
        if parameters:
            uri_path += '?' + '&'.join('%s=%s' % item
                                       for item in sorted(parameters.items()))
        return uri_path

    # Firewall

    def get_firewall(self, edge_id):
        uri = self._build_uri_path(edge_id, FIREWALL_SERVICE)
        h, body = self.do_request(HTTP_GET, uri)
        return _content(body, None)

    def update_firewall(self, edge_id, fw_req):
        uri = self._build_uri_path(edge_id, FIREWALL_SERVICE)
        return self.do_request(HTTP_PUT, uri, {'firewall': fw_req})

    def add_firewall_rule(self, edge_id, fwr_req):
        uri = self._build_uri_path(edge_id, FIREWALL_SERVICE,
                                   FIREWALL_RULE_RESOURCE)
        return self.do_request(HTTP_POST, uri,
                               {'firewallRules': {'firewallRule': fwr_req}})

    def add_firewall_rule_above(self, edge_id, ref_vcns_rule_id, fwr_req):
        uri = self._build_uri_path(edge_id, FIREWALL_SERVICE,
                                   FIREWALL_RULE_RESOURCE,
                                   parameters={'aboveRuleId':
                                               ref_vcns_rule_id})
        return self.do_request(HTTP_POST, uri, {'firewallRule': fwr_req})

    def update_firewall_rule(self, edge_id, vcns_rule_id, fwr_req):
        uri = self._build_uri_path(edge_id, FIREWALL_SERVICE,
                                   FIREWALL_RULE_RESOURCE, vcns_rule_id)
        return self.do_request(HTTP_PUT, uri, {'firewallRule': fwr_req})

    def delete_firewall_rule(self, edge_id, vcns_rule_id):
        uri = self._build_uri_path(edge_id, FIREWALL_SERVICE,
                                   FIREWALL_RULE_RESOURCE, vcns_rule_id)
        return self.do_request(HTTP_DELETE, uri)

    # NAT

    def get_nat_config(self, edge_id):
        uri = self._build_uri_path(edge_id, NAT_SERVICE)
        h, body = self.do_request(HTTP_GET, uri)
        return _content(body, None)

    def add_nat_rule(self, edge_id, nat_rule):
        uri = self._build_uri_path(edge_id, NAT_SERVICE, NAT_RULE_RESOURCE)
        return self.do_request(HTTP_POST, uri,
                               {'natRules': {'natRule': nat_rule}})

    def update_nat_rule(self, edge_id, rule_id, nat_rule):
        uri = self._build_uri_path(edge_id, NAT_SERVICE, NAT_RULE_RESOURCE,
                                   rule_id)
        return self.do_request(HTTP_PUT, uri, {'natRule': nat_rule})

    def delete_nat_rule(self, edge_id, rule_id):
        uri = self._build_uri_path(edge_id, NAT_SERVICE, NAT_RULE_RESOURCE,
                                   rule_id)
        return self.do_request(HTTP_DELETE, uri)

    # Load balancer

    def get_loadbalancer_config(self, edge_id):
        uri = self._build_uri_path(edge_id, LOADBALANCER_SERVICE) + '/'
        h, body = self.do_request(HTTP_GET, uri)
        return _content(body, None)

    def update_loadbalancer_config(self, edge_id, config):
        uri = self._build_uri_path(edge_id, LOADBALANCER_SERVICE) + '/'
        return self.do_request(HTTP_PUT, uri, {'loadBalancer': config})

    def create_lb_object(self, edge_id, resource, payload):
        tag = LB_RESOURCES[resource][0]
        uri = self._build_uri_path(edge_id, LOADBALANCER_SERVICE,
                                   resource) + '/'
        return self.do_request(HTTP_POST, uri, {tag: payload})

    def get_lb_objects(self, edge_id, resource):
        """Returns every object of a load balancer resource.

        The API has no filtering option.
        """
        tag = LB_RESOURCES[resource][0]
        uri = self._build_uri_path(edge_id, LOADBALANCER_SERVICE,
                                   resource) + '/'
        h, body = self.do_request(HTTP_GET, uri)
        return _content(body, tag)

    def update_lb_object(self, edge_id, resource, object_id, payload):
        tag = LB_RESOURCES[resource][0]
        uri = self._build_uri_path(edge_id, LOADBALANCER_SERVICE, resource,
                                   object_id)
        return self.do_request(HTTP_PUT, uri, {tag: payload})

    def delete_lb_object(self, edge_id, resource, object_id):
        uri = self._build_uri_path(edge_id, LOADBALANCER_SERVICE, resource,
                                   object_id)
        return self.do_request(HTTP_DELETE, uri)

    # IP sets

    def create_ipset(self, scope_id, ipset):
        uri = "%s/%s/%s" % (SERVICES_PREFIX, IPSET_SERVICE, scope_id)
        return self.do_request(HTTP_POST, uri, {'ipset': ipset})

    def get_ipsets(self, scope_id):
        uri = "%s/%s/scope/%s" % (SERVICES_PREFIX, IPSET_SERVICE, scope_id)
        h, body = self.do_request(HTTP_GET, uri)
        return _content(body, 'ipset')

    def update_ipset(self, ipset_id, ipset):
        uri = "%s/%s/%s" % (SERVICES_PREFIX, IPSET_SERVICE, ipset_id)
        return self.do_request(HTTP_PUT, uri, {'ipset': ipset})

    def delete_ipset(self, ipset_id):
        uri = "%s/%s/%s" % (SERVICES_PREFIX, IPSET_SERVICE, ipset_id)
        return self.do_request(HTTP_DELETE, uri)
