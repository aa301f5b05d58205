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

from oslo_vcloud import constants
from oslo_vcloud import exceptions
from oslo_vcloud.filters import engine
from oslo_vcloud.objects import catalog as catalog_obj
from oslo_vcloud.objects import org as org_obj
from oslo_vcloud.objects import vdc as vdc_obj
from oslo_vcloud import query
from oslo_vcloud.tests import base
from oslo_vcloud import vcloud_util

BASE_URL = 'https://vcd.example.com/api'
ORG_UUID = '0c3b1fd4-6e8a-4f4c-9c1b-3a5f22d5d0a1'
CATALOG_UUID = '11111111-2222-3333-4444-555555555555'
VDC_UUID = '66666666-7777-8888-9999-000000000000'
ORG_HREF = '%s/org/%s' % (BASE_URL, ORG_UUID)

ORG_LIST = """<OrgList xmlns="http://www.vmware.com/vcloud/v1.5">
  <Org name="System" href="%(base)s/org/a93c9db9-7471-3192-8d09-a8f7eeda85f9"/>
  <Org name="org1" href="%(href)s"/>
</OrgList>""" % {'base': BASE_URL, 'href': ORG_HREF}
ORG = """<Org xmlns="http://www.vmware.com/vcloud/v1.5" name="org1"
    id="urn:vcloud:org:%(org)s" href="%(href)s">
  <Link rel="down" type="application/vnd.vmware.vcloud.catalog+xml"
      name="cat1" href="%(base)s/catalog/%(catalog)s"/>
  <Link rel="down" type="application/vnd.vmware.vcloud.vdc+xml"
      name="vdc1" href="%(base)s/vdc/%(vdc)s"/>
  <Link rel="down" type="application/vnd.vmware.vcloud.orgNetwork+xml"
      name="net1" href="%(base)s/network/1"/>
</Org>""" % {'org': ORG_UUID, 'href': ORG_HREF, 'base': BASE_URL,
             'catalog': CATALOG_UUID, 'vdc': VDC_UUID}
ADMIN_ORG = """<AdminOrg xmlns="http://www.vmware.com/vcloud/v1.5"
    name="org1" href="%(base)s/admin/org/%(org)s">
  <Catalogs>
    <CatalogReference name="cat1" id="urn:vcloud:catalog:%(catalog)s"
        href="%(base)s/admin/catalog/%(catalog)s"/>
  </Catalogs>
  <Vdcs>
    <Vdc name="vdc1" href="%(base)s/vdc/%(vdc)s"/>
  </Vdcs>
</AdminOrg>""" % {'org': ORG_UUID, 'base': BASE_URL,
                  'catalog': CATALOG_UUID, 'vdc': VDC_UUID}


def _element(text):
    return vcloud_util.parse_xml(text)


def _named(tag, name):
    return _element('<%s xmlns="http://www.vmware.com/vcloud/v1.5" '
                    'name="%s"/>' % (tag, name))


class OrgTest(base.TestCase):

    def setUp(self):
        super(OrgTest, self).setUp()
        self.session = mock.Mock(base_url=BASE_URL, is_sys_admin=False)
        self.org = org_obj.Org(self.session, _element(ORG))

    def test_get_catalog_by_name(self):
        self.session.execute_request.return_value = _named('Catalog', 'cat1')
        catalog = self.org.get_catalog_by_name('cat1')
        self.assertIsInstance(catalog, catalog_obj.Catalog)
        self.session.execute_request.assert_called_once_with(
            '%s/catalog/%s' % (BASE_URL, CATALOG_UUID), 'GET', None,
            'error retrieving catalog: %s')

    def test_get_catalog_by_name_not_found(self):
        self.assertRaises(exceptions.EntityNotFoundException,
                          self.org.get_catalog_by_name, 'vdc1')

    def test_get_catalog_by_id(self):
        self.session.execute_request.return_value = _named('Catalog', 'cat1')
        catalog = self.org.get_catalog_by_id(
            'urn:vcloud:catalog:%s' % CATALOG_UUID)
        self.assertEqual('cat1', catalog.name)

    def test_get_catalog_by_name_or_id_with_refresh(self):
        self.session.execute_request.side_effect = [
            _element(ORG), _named('Catalog', 'cat1')]
        catalog = self.org.get_catalog_by_name_or_id('cat1', refresh=True)
        self.assertEqual('cat1', catalog.name)
        self.assertEqual(2, self.session.execute_request.call_count)

    def test_get_vdc_by_name(self):
        self.session.execute_request.return_value = _named('Vdc', 'vdc1')
        vdc = self.org.get_vdc_by_name('vdc1')
        self.assertIsInstance(vdc, vdc_obj.Vdc)
        self.assertEqual('vdc1', vdc.name)

    def test_get_vdc_by_name_or_id(self):
        self.session.execute_request.return_value = _named('Vdc', 'vdc1')
        self.org.get_vdc_by_name_or_id('urn:vcloud:vdc:%s' % VDC_UUID)
        self.session.execute_request.assert_called_once_with(
            '%s/vdc/%s' % (BASE_URL, VDC_UUID), 'GET', None,
            'error getting vdc: %s')

    def test_get_vdc_by_href_admin(self):
        self.session.execute_request.return_value = _named('Vdc', 'vdc1')
        self.org.get_vdc_by_href('%s/admin/vdc/%s' % (BASE_URL, VDC_UUID))
        self.session.execute_request.assert_called_once_with(
            '%s/vdc/%s' % (BASE_URL, VDC_UUID), 'GET', None,
            'error getting vdc: %s')

    def test_get_vdc_by_id_not_found(self):
        self.assertRaises(exceptions.EntityNotFoundException,
                          self.org.get_vdc_by_id,
                          'urn:vcloud:vdc:%s' % CATALOG_UUID)

    @mock.patch.object(query, 'cumulative_query')
    def test_query_catalog_list(self, cumulative_query):
        self.session.is_sys_admin = True
        records = self.org.query_catalog_list()
        self.assertIs(cumulative_query.return_value.records, records)
        cumulative_query.assert_called_once_with(
            self.session, constants.QT_ADMIN_CATALOG,
            not_encoded_params={'type': constants.QT_ADMIN_CATALOG,
                                'filter': 'orgName==org1',
                                'filterEncoded': 'true'})

    @mock.patch.object(engine, 'search')
    def test_search_by_filter(self, search):
        self.org.search_by_filter(constants.QT_CATALOG)
        self.assertEqual({'parent': 'org1'}, search.call_args[0][2].filters)


class AdminOrgTest(base.TestCase):

    def setUp(self):
        super(AdminOrgTest, self).setUp()
        self.session = mock.Mock(base_url=BASE_URL, is_sys_admin=True)
        self.org = org_obj.AdminOrg(self.session, _element(ADMIN_ORG))

    def test_get_catalog_by_name(self):
        self.session.execute_request.return_value = _named('Catalog', 'cat1')
        catalog = self.org.get_catalog_by_name('cat1')
        self.assertIs(catalog_obj.Catalog, type(catalog))
        self.session.execute_request.assert_called_once_with(
            '%s/catalog/%s' % (BASE_URL, CATALOG_UUID), 'GET', None,
            'error retrieving catalog: %s')

    def test_get_admin_catalog_by_id(self):
        self.session.execute_request.return_value = _named('AdminCatalog',
                                                           'cat1')
        catalog = self.org.get_admin_catalog_by_id(
            'urn:vcloud:catalog:%s' % CATALOG_UUID)
        self.assertIsInstance(catalog, catalog_obj.AdminCatalog)
        self.session.execute_request.assert_called_once_with(
            '%s/admin/catalog/%s' % (BASE_URL, CATALOG_UUID), 'GET', None,
            'error retrieving catalog: %s')

    def test_get_admin_catalog_by_name_or_id(self):
        self.session.execute_request.return_value = _named('AdminCatalog',
                                                           'cat1')
        catalog = self.org.get_admin_catalog_by_name_or_id('cat1')
        self.assertEqual('cat1', catalog.name)

    def test_get_vdc_by_id(self):
        self.session.execute_request.return_value = _named('Vdc', 'vdc1')
        vdc = self.org.get_vdc_by_id(VDC_UUID)
        self.assertEqual('vdc1', vdc.name)

    def test_get_vdc_by_name_not_found(self):
        self.assertRaises(exceptions.EntityNotFoundException,
                          self.org.get_vdc_by_name, 'vdc2')


class OrgLookupTest(base.TestCase):

    def setUp(self):
        super(OrgLookupTest, self).setUp()
        self.session = mock.Mock(base_url=BASE_URL)

    def test_get_org_by_name(self):
        self.session.execute_request.side_effect = [_element(ORG_LIST),
                                                    _element(ORG)]
        org = org_obj.get_org_by_name(self.session, 'org1')
        self.assertIs(org_obj.Org, type(org))
        self.session.execute_request.assert_has_calls([
            mock.call('%s/org' % BASE_URL, 'GET', None,
                      'error retrieving org list: %s'),
            mock.call(ORG_HREF, 'GET', None, 'error retrieving org: %s')])

    def test_get_org_by_name_not_found(self):
        self.session.execute_request.return_value = _element(ORG_LIST)
        self.assertRaises(exceptions.EntityNotFoundException,
                          org_obj.get_org_by_name, self.session, 'org2')

    def test_get_org_by_id(self):
        self.session.execute_request.side_effect = [_element(ORG_LIST),
                                                    _element(ORG)]
        org = org_obj.get_org_by_id(self.session,
                                    'urn:vcloud:org:%s' % ORG_UUID)
        self.assertEqual('org1', org.name)

    def test_get_org_by_id_invalid(self):
        self.session.execute_request.return_value = _element(ORG_LIST)
        e = self.assertRaises(exceptions.EntityNotFoundException,
                              org_obj.get_org_by_id, self.session, 'org1')
        self.assertIsInstance(e.cause, exceptions.VCloudException)

    def test_get_admin_org_by_name_or_id(self):
        self.session.execute_request.side_effect = [
            _element(ORG_LIST), _element(ORG_LIST), _element(ADMIN_ORG)]
        org = org_obj.get_admin_org_by_name_or_id(self.session, 'org1')
        self.assertIsInstance(org, org_obj.AdminOrg)
        self.session.execute_request.assert_called_with(
            '%s/admin/org/%s' % (BASE_URL, ORG_UUID), 'GET', None,
            'error retrieving org: %s')

    def test_get_org_by_name_or_id(self):
        self.session.execute_request.side_effect = [_element(ORG_LIST),
                                                    _element(ORG)]
        org = org_obj.get_org_by_name_or_id(
            self.session, 'urn:vcloud:org:%s' % ORG_UUID)
        self.assertEqual('org1', org.name)
