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

from unittest import mock

import ddt

from oslo_vcloud import constants
from oslo_vcloud import exceptions
from oslo_vcloud.network.nsx.nsxv.api import api as nsxv_api
from oslo_vcloud.network.nsx.nsxv.common import exceptions as nsxv_exc
from oslo_vcloud.network.nsx.nsxv.objects import loadbalancer
from oslo_vcloud.objects import edge_gateway
from oslo_vcloud.tests import base
from oslo_vcloud import vcloud_util

HOST_URL = 'https://vcd.example.com'
EDGE_UUID = 'f1f2f3f4-1111-2222-3333-444444444444'
EDGE_HREF = '%s/api/admin/edgeGateway/%s' % (HOST_URL, EDGE_UUID)
NET_HREF = ('%s/api/admin/network/'
            'aaaaaaaa-1111-2222-3333-444444444444' % HOST_URL)
OTHER_NET_HREF = ('%s/api/admin/network/'
                  'bbbbbbbb-1111-2222-3333-444444444444' % HOST_URL)

EDGE = """<EdgeGateway xmlns="http://www.vmware.com/vcloud/v1.5"
    name="edge1" id="urn:vcloud:gateway:%(uuid)s" href="%(href)s">
  <Configuration>
    <AdvancedNetworkingEnabled>%(advanced)s</AdvancedNetworkingEnabled>
    <EdgeGatewayServiceConfiguration>
      <GatewayDhcpService>
        <IsEnabled>false</IsEnabled>
        <Pool>
          <IsEnabled>true</IsEnabled>
          <Network href="%(net)s" name="net1"/>
          <LowIpAddress>10.0.0.10</LowIpAddress>
          <HighIpAddress>10.0.0.20</HighIpAddress>
        </Pool>
        <Pool>
          <IsEnabled>true</IsEnabled>
          <Network href="%(other)s" name="net2"/>
          <LowIpAddress>10.0.1.10</LowIpAddress>
          <HighIpAddress>10.0.1.20</HighIpAddress>
        </Pool>
      </GatewayDhcpService>
    </EdgeGatewayServiceConfiguration>
  </Configuration>
</EdgeGateway>"""

FIREWALL = {'firewallRules': {'firewallRule': [
    {'id': '131074', 'name': 'web', 'action': 'accept'},
    {'id': '131075', 'name': 'ssh', 'action': 'deny'}]}}
NAT = {'natRules': {'natRule': [
    {'ruleId': '196609', 'action': 'dnat',
     'translatedAddress': '10.0.0.5'}]}}
POOLS = [{'poolId': 'pool-1', 'name': 'web', 'algorithm': 'round-robin'},
         {'poolId': 'pool-2', 'name': 'db', 'algorithm': 'leastconn'}]


def _edge_element(advanced=True):
    return vcloud_util.parse_xml(EDGE % {
        'uuid': EDGE_UUID, 'href': EDGE_HREF, 'net': NET_HREF,
        'other': OTHER_NET_HREF,
        'advanced': 'true' if advanced else 'false'})


def _busy_error():
    return exceptions.VCloudApiException(
        "API Error: 400: The entity gateway edge1 is busy completing an "
        "operation.")


class EdgeGatewayTest(base.TestCase):

    def setUp(self):
        super(EdgeGatewayTest, self).setUp()
        self.session = mock.Mock(host_url=HOST_URL, max_retry_timeout=60)
        self.edge = edge_gateway.EdgeGateway(self.session, _edge_element())

    def test_refresh_empty(self):
        e = self.assertRaises(exceptions.VCloudException,
                              edge_gateway.EdgeGateway(self.session).refresh)
        self.assertEqual('cannot refresh, Object is empty', e.message)

    def test_has_advanced_networking(self):
        self.assertTrue(self.edge.has_advanced_networking())
        edge = edge_gateway.EdgeGateway(self.session,
                                        _edge_element(advanced=False))
        self.assertFalse(edge.has_advanced_networking())

    def test_edge_id(self):
        self.assertEqual(EDGE_UUID, self.edge.edge_id)

    def test_edge_id_invalid(self):
        edge = edge_gateway.EdgeGateway(self.session, vcloud_util.parse_xml(
            '<EdgeGateway id="%s"/>' % EDGE_UUID))
        e = self.assertRaises(exceptions.VCloudException,
                              getattr, edge, 'edge_id')
        self.assertEqual('unable to find edge gateway id: %s' % EDGE_UUID,
                         e.message)

    def test_build_proxied_edge_endpoint_url(self):
        self.assertEqual(
            '%s/network/edges/%s/firewall/config' % (HOST_URL, EDGE_UUID),
            self.edge.build_proxied_edge_endpoint_url('firewall/config'))

    def test_nsxv_api_is_created_once(self):
        with mock.patch.object(nsxv_api, 'NsxvApi') as api_cls:
            self.assertIs(self.edge.nsxv_api, self.edge.nsxv_api)
        api_cls.assert_called_once_with(self.session)

    def test_configure_services(self):
        config = mock.sentinel.config
        task = self.edge.configure_services(config)
        self.assertIs(self.session.execute_task_request.return_value, task)
        self.session.execute_task_request.assert_called_once_with(
            EDGE_HREF + '/action/configureServices', 'POST',
            constants.MIME_EDGE_GATEWAY_SERVICE_CONFIGURATION,
            'error reconfiguring Edge Gateway: %s', payload=config)

    @mock.patch.object(edge_gateway.time, 'sleep')
    def test_configure_services_busy(self, sleep):
        task = mock.Mock()
        self.session.execute_task_request.side_effect = [_busy_error(),
                                                         _busy_error(), task]
        self.assertIs(task, self.edge.configure_services(mock.sentinel.cfg))
        self.assertEqual(3, self.session.execute_task_request.call_count)
        sleep.assert_called_with(constants.BUSY_RETRY_INTERVAL)
        self.assertEqual(2, sleep.call_count)

    @mock.patch.object(edge_gateway.time, 'sleep')
    def test_configure_services_busy_timeout(self, sleep):
        self.session.execute_task_request.side_effect = _busy_error()
        with mock.patch.object(edge_gateway.timeutils,
                               'StopWatch') as watch_cls:
            watch_cls.return_value.expired.side_effect = [False, True]
            self.assertRaises(exceptions.VCloudApiException,
                              self.edge.configure_services,
                              mock.sentinel.cfg)
        watch_cls.assert_called_once_with(duration=60)
        self.assertEqual(2, self.session.execute_task_request.call_count)
        self.assertEqual(1, sleep.call_count)

    @mock.patch.object(edge_gateway.time, 'sleep')
    def test_configure_services_other_error(self, sleep):
        self.session.execute_task_request.side_effect = (
            exceptions.BadRequestException('API Error: 400: bad'))
        self.assertRaises(exceptions.BadRequestException,
                          self.edge.configure_services, mock.sentinel.cfg)
        self.assertFalse(sleep.called)

    def _sent_configuration(self):
        return self.session.execute_task_request.call_args[1]['payload']

    def test_add_dhcp_pool(self):
        self.edge.add_dhcp_pool(NET_HREF, 'net1',
                                [{'start_address': '10.0.0.100',
                                  'end_address': '10.0.0.200',
                                  'max_lease_time': 600}])
        config = self._sent_configuration()
        service = vcloud_util.find_child(config, 'GatewayDhcpService')
        self.assertEqual('false',
                         vcloud_util.child_text(service, 'IsEnabled'))
        pools = vcloud_util.find_children(service, 'Pool')
        self.assertEqual(2, len(pools))
        kept, added = pools
        self.assertEqual(OTHER_NET_HREF,
                         vcloud_util.find_child(kept, 'Network').get('href'))
        self.assertEqual('10.0.0.100',
                         vcloud_util.child_text(added, 'LowIpAddress'))
        self.assertEqual('10.0.0.200',
                         vcloud_util.child_text(added, 'HighIpAddress'))
        self.assertEqual('3600',
                         vcloud_util.child_text(added, 'DefaultLeaseTime'))
        self.assertEqual('600', vcloud_util.child_text(added, 'MaxLeaseTime'))
        self.assertEqual('net1',
                         vcloud_util.find_child(added, 'Network').get('name'))

    def test_add_dhcp_pool_first_pool(self):
        edge = edge_gateway.EdgeGateway(self.session, vcloud_util.parse_xml(
            '<EdgeGateway href="%s"><Configuration>'
            '<EdgeGatewayServiceConfiguration/></Configuration>'
            '</EdgeGateway>' % EDGE_HREF))
        edge.add_dhcp_pool(NET_HREF, 'net1',
                           [{'start_address': '10.0.0.100',
                             'end_address': '10.0.0.200'}])
        service = vcloud_util.find_child(self._sent_configuration(),
                                         'GatewayDhcpService')
        self.assertEqual('true', vcloud_util.child_text(service, 'IsEnabled'))
        pool = vcloud_util.find_child(service, 'Pool')
        self.assertEqual('7200', vcloud_util.child_text(pool, 'MaxLeaseTime'))

    def test_create_firewall_rules(self):
        self.session.execute_request.return_value = _edge_element()
        rule = vcloud_util.parse_xml(
            '<FirewallRule xmlns="http://www.vmware.com/vcloud/v1.5">'
            '<Description>web</Description></FirewallRule>')
        self.edge.create_firewall_rules('drop', [rule])
        self.session.execute_request.assert_called_once_with(
            EDGE_HREF, 'GET', None, 'error retrieving Edge Gateway: %s')
        service = vcloud_util.find_child(self._sent_configuration(),
                                         'FirewallService')
        self.assertEqual('drop',
                         vcloud_util.child_text(service, 'DefaultAction'))
        self.assertEqual(1, len(vcloud_util.find_children(service,
                                                          'FirewallRule')))

    def test_delete_async(self):
        self.edge.delete_async(force=True)
        self.session.execute_task_request.assert_called_once_with(
            EDGE_HREF, 'DELETE', None, 'error deleting edge gateway: %s',
            params={'force': 'true', 'recursive': 'false'})

    def test_delete(self):
        task = mock.Mock(status=constants.TASK_STATUS_RUNNING)
        self.session.execute_task_request.return_value = task
        self.edge.delete()
        task.wait_task_completion.assert_called_once_with()

    def test_delete_error_task(self):
        task = mock.Mock(status=constants.TASK_STATUS_ERROR)
        task.error = mock.Mock(major_error_code=500,
                               minor_error_code='INTERNAL_SERVER_ERROR',
                               message='edge in use')
        self.session.execute_task_request.return_value = task
        e = self.assertRaises(exceptions.VCloudException, self.edge.delete)
        self.assertEqual(
            'operation error: edge gateway not properly destroyed - task '
            'error: [500 - INTERNAL_SERVER_ERROR] edge in use', e.message)
        self.assertFalse(task.wait_task_completion.called)

    def test_delete_without_href(self):
        self.assertRaises(exceptions.VCloudException,
                          edge_gateway.EdgeGateway(self.session).delete)


@ddt.ddt
class EdgeGatewayNsxvTest(base.TestCase):

    def setUp(self):
        super(EdgeGatewayNsxvTest, self).setUp()
        self.session = mock.Mock(host_url=HOST_URL)
        self.edge = edge_gateway.EdgeGateway(self.session, _edge_element())
        self.nsxv_api = mock.Mock()
        self.edge._nsxv_api = self.nsxv_api
        self.non_advanced = edge_gateway.EdgeGateway(
            self.session, _edge_element(advanced=False))
        self.non_advanced._nsxv_api = self.nsxv_api

    def _location(self, path):
        return ({'location': '/network/edges/%s/%s' % (EDGE_UUID, path)},
                '')

    def test_non_advanced_gateway(self):
        for method, args in [
                ('get_lb_general_params', ()),
                ('get_firewall_config', ()),
                ('get_all_nsxv_firewall_rules', ()),
                ('get_nsxv_firewall_rule_by_id', ('131074',)),
                ('get_nsxv_nat_rule_by_id', ('196609',))]:
            self.assertRaises(exceptions.VCloudException,
                              getattr(self.non_advanced, method), *args)
        self.assertFalse(self.nsxv_api.mock_calls)

    def test_get_all_nsxv_firewall_rules(self):
        self.nsxv_api.get_firewall.return_value = FIREWALL
        rules = self.edge.get_all_nsxv_firewall_rules()
        self.assertEqual(['web', 'ssh'], [rule['name'] for rule in rules])
        self.nsxv_api.get_firewall.assert_called_once_with(EDGE_UUID)

    def test_get_all_nsxv_firewall_rules_empty(self):
        self.nsxv_api.get_firewall.return_value = {'enabled': 'true'}
        self.assertRaises(exceptions.EntityNotFoundException,
                          self.edge.get_all_nsxv_firewall_rules)

    def test_get_nsxv_firewall_rule_by_id(self):
        self.nsxv_api.get_firewall.return_value = FIREWALL
        rule = self.edge.get_nsxv_firewall_rule_by_id('131075')
        self.assertEqual('ssh', rule['name'])
        self.assertRaises(exceptions.EntityNotFoundException,
                          self.edge.get_nsxv_firewall_rule_by_id, '1')
        self.assertRaises(exceptions.VCloudException,
                          self.edge.get_nsxv_firewall_rule_by_id, '')

    def test_get_nsxv_firewall_rule_api_error(self):
        self.nsxv_api.get_firewall.side_effect = nsxv_exc.Forbidden(
            'edge access denied', uri='/network/edges', status=403)
        e = self.assertRaises(nsxv_exc.Forbidden,
                              self.edge.get_nsxv_firewall_rule_by_id, '1')
        self.assertEqual('unable to read firewall rule: edge access denied',
                         e.message)

    def test_create_nsxv_firewall_rule(self):
        self.nsxv_api.add_firewall_rule.return_value = self._location(
            'firewall/config/rules/131075')
        self.nsxv_api.get_firewall.return_value = FIREWALL
        rule = {'name': 'ssh', 'action': 'deny'}
        created = self.edge.create_nsxv_firewall_rule(rule)
        self.assertEqual('131075', created['id'])
        self.nsxv_api.add_firewall_rule.assert_called_once_with(EDGE_UUID,
                                                                rule)

    def test_create_nsxv_firewall_rule_above(self):
        self.nsxv_api.add_firewall_rule_above.return_value = self._location(
            'firewall/config/rules/131074')
        self.nsxv_api.get_firewall.return_value = FIREWALL
        rule = {'name': 'web', 'action': 'accept'}
        self.edge.create_nsxv_firewall_rule(rule, above_rule_id='131075')
        self.nsxv_api.add_firewall_rule_above.assert_called_once_with(
            EDGE_UUID, '131075', rule)
        self.assertFalse(self.nsxv_api.add_firewall_rule.called)

    def test_create_nsxv_firewall_rule_without_action(self):
        self.assertRaises(exceptions.VCloudException,
                          self.edge.create_nsxv_firewall_rule,
                          {'name': 'web'})
        self.assertFalse(self.nsxv_api.add_firewall_rule.called)

    def test_update_nsxv_firewall_rule(self):
        self.nsxv_api.get_firewall.return_value = FIREWALL
        rule = {'id': '131074', 'name': 'web', 'action': 'accept'}
        self.assertEqual('web',
                         self.edge.update_nsxv_firewall_rule(rule)['name'])
        self.nsxv_api.update_firewall_rule.assert_called_once_with(
            EDGE_UUID, '131074', rule)

    def test_update_nsxv_firewall_rule_without_id(self):
        e = self.assertRaises(exceptions.VCloudException,
                              self.edge.update_nsxv_firewall_rule,
                              {'action': 'accept'})
        self.assertEqual('firewall rule ID must be set for update', e.message)

    def test_delete_nsxv_firewall_rule_by_id(self):
        self.nsxv_api.get_firewall.return_value = FIREWALL
        self.edge.delete_nsxv_firewall_rule_by_id('131074')
        self.nsxv_api.delete_firewall_rule.assert_called_once_with(
            EDGE_UUID, '131074')

    def test_delete_missing_nsxv_firewall_rule(self):
        self.nsxv_api.get_firewall.return_value = FIREWALL
        self.assertRaises(exceptions.EntityNotFoundException,
                          self.edge.delete_nsxv_firewall_rule_by_id, '7')
        self.assertFalse(self.nsxv_api.delete_firewall_rule.called)

    @mock.patch.object(edge_gateway.time, 'sleep')
    def test_create_nsxv_nat_rule(self, sleep):
        self.nsxv_api.add_nat_rule.return_value = self._location(
            'nat/config/rules/196609')
        self.nsxv_api.get_nat_config.return_value = NAT
        rule = {'action': 'dnat', 'translatedAddress': '10.0.0.5'}
        created = self.edge.create_nsxv_nat_rule(rule)
        self.assertEqual('196609', created['ruleId'])
        sleep.assert_called_once_with(constants.NAT_RULE_SETTLE_TIME)

    def test_create_nsxv_nat_rule_invalid(self):
        e = self.assertRaises(exceptions.VCloudException,
                              self.edge.create_nsxv_nat_rule,
                              {'translatedAddress': '10.0.0.5'})
        self.assertEqual('NAT rule must have an action', e.message)
        e = self.assertRaises(exceptions.VCloudException,
                              self.edge.create_nsxv_nat_rule,
                              {'action': 'snat'})
        self.assertEqual('NAT rule must translated address specified',
                         e.message)
        self.assertFalse(self.nsxv_api.add_nat_rule.called)

    def test_update_nsxv_nat_rule(self):
        self.nsxv_api.get_nat_config.return_value = NAT
        rule = dict(NAT['natRules']['natRule'][0])
        self.edge.update_nsxv_nat_rule(rule)
        self.nsxv_api.update_nat_rule.assert_called_once_with(
            EDGE_UUID, '196609', rule)
        self.assertRaises(exceptions.VCloudException,
                          self.edge.update_nsxv_nat_rule,
                          {'action': 'dnat'})

    def test_delete_nsxv_nat_rule_by_id(self):
        self.nsxv_api.get_nat_config.return_value = NAT
        self.edge.delete_nsxv_nat_rule_by_id('196609')
        self.nsxv_api.delete_nat_rule.assert_called_once_with(EDGE_UUID,
                                                              '196609')

    def test_update_firewall_config(self):
        def _firewall(action):
            return {}, {'firewall': {
                'version': '4', 'enabled': 'true',
                'defaultPolicy': {'action': action,
                                  'loggingEnabled': 'false'}}}

        self.nsxv_api.do_request.side_effect = [
            _firewall('deny'), ({}, {}), _firewall('accept')]
        config = self.edge.update_firewall_config(True, True, 'accept')
        self.assertEqual('accept', config.default_action)
        self.nsxv_api.do_request.assert_any_call(
            nsxv_api.HTTP_PUT,
            '/network/edges/%s/firewall/config/' % EDGE_UUID,
            {'firewall': {'enabled': True, 'defaultPolicy': {
                'action': 'accept', 'loggingEnabled': True}}})

    def test_update_firewall_config_unchanged(self):
        self.nsxv_api.do_request.return_value = ({}, {'firewall': {
            'enabled': 'true',
            'defaultPolicy': {'action': 'deny', 'loggingEnabled': 'false'}}})
        self.edge.update_firewall_config(True, False, 'deny')
        self.assertEqual(2, self.nsxv_api.do_request.call_count)
        for call in self.nsxv_api.do_request.call_args_list:
            self.assertEqual(nsxv_api.HTTP_GET, call[0][0])

    def test_update_lb_general_params(self):
        self.nsxv_api.do_request.return_value = ({}, {'loadBalancer': {
            'enabled': 'false', 'accelerationEnabled': 'false',
            'logging': {'enable': 'false', 'logLevel': 'info'},
            'pool': POOLS}})
        self.edge.update_lb_general_params(True, False, True, 'debug')
        put = self.nsxv_api.do_request.call_args_list[1][0]
        self.assertEqual(nsxv_api.HTTP_PUT, put[0])
        payload = put[2]['loadBalancer']
        self.assertTrue(payload['enabled'])
        self.assertEqual({'enable': True, 'logLevel': 'debug'},
                         payload['logging'])
        self.assertEqual(POOLS, payload['pool'])

    def test_read_lb_object(self):
        self.nsxv_api.get_lb_objects.return_value = POOLS
        self.assertEqual('db', self.edge.read_lb_server_pool(
            object_id='pool-2')['name'])
        self.assertEqual('pool-1', self.edge.read_lb_server_pool(
            name='web')['poolId'])
        self.nsxv_api.get_lb_objects.assert_called_with(
            EDGE_UUID, nsxv_api.POOL_RESOURCE)

    def test_read_lb_object_errors(self):
        self.nsxv_api.get_lb_objects.return_value = POOLS
        self.assertRaises(exceptions.VCloudException,
                          self.edge.read_lb_server_pool)
        e = self.assertRaises(exceptions.VCloudException,
                              self.edge.read_lb_server_pool, name='web',
                              object_id='pool-9')
        self.assertIn('does not match specified ID', e.message)
        e = self.assertRaises(exceptions.VCloudException,
                              self.edge.read_lb_server_pool, name='cache')
        self.assertIn('could not find load balancer server pool', e.message)

    def test_create_lb_object(self):
        self.nsxv_api.create_lb_object.return_value = self._location(
            'loadbalancer/config/pools/pool-2')
        self.nsxv_api.get_lb_objects.return_value = POOLS
        pool = loadbalancer.NsxvLBPool('db', algorithm='leastconn')
        created = self.edge.create_lb_server_pool(pool)
        self.assertEqual('pool-2', created['poolId'])
        self.nsxv_api.create_lb_object.assert_called_once_with(
            EDGE_UUID, nsxv_api.POOL_RESOURCE, pool.to_payload())

    def test_create_lb_object_without_location(self):
        self.nsxv_api.create_lb_object.return_value = ({}, '')
        self.assertRaises(exceptions.VCloudException,
                          self.edge.create_lb_app_rule,
                          {'name': 'redirect', 'script': 'acl x'})

    def test_create_lb_object_invalid(self):
        self.assertRaises(nsxv_exc.NsxvGeneralException,
                          self.edge.create_lb_service_monitor,
                          {'name': 'http', 'timeout': 0})
        self.assertFalse(self.nsxv_api.create_lb_object.called)

    def test_update_lb_object_by_name(self):
        self.nsxv_api.get_lb_objects.return_value = POOLS
        payload = {'name': 'web', 'algorithm': 'ip-hash'}
        self.edge.update_lb_server_pool(payload)
        self.nsxv_api.update_lb_object.assert_called_once_with(
            EDGE_UUID, nsxv_api.POOL_RESOURCE, 'pool-1', payload)

    def test_delete_lb_object(self):
        self.edge.delete_lb_server_pool(object_id='pool-1')
        self.nsxv_api.delete_lb_object.assert_called_once_with(
            EDGE_UUID, nsxv_api.POOL_RESOURCE, 'pool-1')
        self.assertFalse(self.nsxv_api.get_lb_objects.called)

    def test_delete_lb_object_by_name(self):
        self.nsxv_api.get_lb_objects.return_value = POOLS
        self.edge.delete_lb_server_pool(name='db')
        self.nsxv_api.delete_lb_object.assert_called_once_with(
            EDGE_UUID, nsxv_api.POOL_RESOURCE, 'pool-2')

    @ddt.data(('service_monitor', nsxv_api.MONITOR_RESOURCE),
              ('server_pool', nsxv_api.POOL_RESOURCE),
              ('app_profile', nsxv_api.APP_PROFILE_RESOURCE),
              ('app_rule', nsxv_api.APP_RULE_RESOURCE),
              ('virtual_server', nsxv_api.VIP_RESOURCE))
    @ddt.unpack
    def test_lb_object_aliases(self, kind, resource_name):
        for operation in ('create', 'read', 'update', 'delete'):
            alias = vars(edge_gateway.EdgeGateway)[
                '%s_lb_%s' % (operation, kind)]
            self.assertIs(
                getattr(edge_gateway.EdgeGateway, '%s_lb_object' % operation),
                alias.func)
            self.assertEqual((resource_name,), alias.args)
        getattr(self.edge, 'delete_lb_%s' % kind)(object_id='object-1')
        self.nsxv_api.delete_lb_object.assert_called_once_with(
            EDGE_UUID, resource_name, 'object-1')
