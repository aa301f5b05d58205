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
from oslo_vcloud.filters import definition
from oslo_vcloud.filters import engine
from oslo_vcloud.filters import query_items
from oslo_vcloud import query
from oslo_vcloud.tests import base
from oslo_vcloud import vcloud_util

RESULTS = ('<QueryResultRecords xmlns="http://www.vmware.com/vcloud/v1.5" '
           'total="%d">%s</QueryResultRecords>')
MEDIA_RECORD = (
    '<MediaRecord name="%(name)s" catalogName="cat1" '
    'creationDate="%(date)s" href="https://vcd.example.com/api/media/'
    '%(name)s"><Metadata><MetadataEntry><Key>os</Key><TypedValue '
    'xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" '
    'xsi:type="MetadataStringValue"><Value>%(os)s</Value></TypedValue>'
    '</MetadataEntry></Metadata></MediaRecord>')
MEDIA = [('photon-3.iso', '2020-03-08T10:00:00.000Z', 'photon'),
         ('photon-4.iso', '2021-05-01T10:00:00.000Z', 'photon'),
         ('ubuntu.iso', '2019-01-01T10:00:00.000Z', 'ubuntu'),
         ('nodate.iso', '', 'other')]


def _results(media=MEDIA):
    records = ''.join(MEDIA_RECORD % {'name': name, 'date': date, 'os': os}
                      for name, date, os in media)
    return query.QueryResults(vcloud_util.parse_xml(
        RESULTS % (len(media), records)))


class SearchByFilterTest(base.TestCase):

    def setUp(self):
        super(SearchByFilterTest, self).setUp()
        self.query_by_metadata = mock.Mock(return_value=_results())
        self.query_with_fields = mock.Mock(return_value=_results())

    def _search(self, criteria=None, query_type=constants.QT_MEDIA):
        return engine.search_by_filter(self.query_by_metadata,
                                       self.query_with_fields,
                                       query_items.result_to_query_items,
                                       query_type, criteria)

    @staticmethod
    def _names(items):
        return [item.get_name() for item in items]

    def test_search_without_criteria(self):
        items, explanation = self._search()
        self.assertEqual([name for name, _date, _os in MEDIA],
                         self._names(items))
        self.query_with_fields.assert_called_once_with(
            constants.QT_MEDIA, None, {}, [], False)
        self.assertFalse(self.query_by_metadata.called)
        self.assertTrue(explanation.startswith('criteria:'))

    def test_search_by_name(self):
        criteria = definition.FilterDef().add_filter('name_regex', '^photon')
        items, explanation = self._search(criteria)
        self.assertEqual(['photon-3.iso', 'photon-4.iso'], self._names(items))
        self.assertIn('(name_regex) ^photon =~ ubuntu.iso -> False',
                      explanation)

    def test_search_no_match(self):
        criteria = definition.FilterDef().add_filter('name_regex', '^win')
        items, _explanation = self._search(criteria)
        self.assertEqual([], items)

    def test_search_empty_result(self):
        self.query_with_fields.return_value = _results([])
        items, _explanation = self._search()
        self.assertEqual([], items)

    def test_search_by_date(self):
        criteria = definition.FilterDef().add_filter('date', '>= 2020-01-01')
        items, _explanation = self._search(criteria)
        self.assertEqual(['photon-3.iso', 'photon-4.iso'], self._names(items))

    def test_search_latest(self):
        criteria = definition.FilterDef()
        criteria.add_filter('name_regex', 'iso$')
        criteria.add_filter('latest', 'true')
        items, explanation = self._search(criteria)
        self.assertEqual(['photon-4.iso'], self._names(items))
        self.assertTrue(explanation.endswith('latest item found'))

    def test_search_earliest(self):
        criteria = definition.FilterDef()
        criteria.add_filter('earliest', 'true')
        items, explanation = self._search(criteria)
        self.assertEqual(['ubuntu.iso'], self._names(items))
        self.assertTrue(explanation.endswith('earliest item found'))

    def test_search_latest_without_dates(self):
        self.query_with_fields.return_value = _results(
            [('a.iso', '', 'x'), ('b.iso', '', 'x')])
        criteria = definition.FilterDef().add_filter('latest', 'true')
        e = self.assertRaises(exceptions.FilterException, self._search,
                              criteria)
        self.assertIn("'a.iso', 'b.iso'", e.message)

    def test_search_latest_and_earliest(self):
        criteria = definition.FilterDef()
        criteria.add_filter('latest', 'true')
        criteria.add_filter('earliest', 'true')
        self.assertRaises(exceptions.FilterException, self._search, criteria)
        self.assertFalse(self.query_with_fields.called)

    def test_search_invalid_regex(self):
        criteria = definition.FilterDef().add_filter('name_regex', '[a-')
        self.assertRaises(exceptions.FilterException, self._search, criteria)

    def test_search_ip_on_media(self):
        criteria = definition.FilterDef().add_filter('ip', '^10')
        e = self.assertRaises(exceptions.FilterException, self._search,
                              criteria)
        self.assertIn('error applying condition ip', e.message)

    def test_search_by_metadata_regex(self):
        criteria = definition.FilterDef()
        criteria.add_metadata_filter('os', '^ubu')
        items, _explanation = self._search(criteria)
        self.assertEqual(['ubuntu.iso'], self._names(items))
        self.query_with_fields.assert_called_once_with(
            constants.QT_MEDIA, None, {}, ['os'], False)

    def test_search_by_metadata_api_filter(self):
        self.query_by_metadata.return_value = _results(MEDIA[2:3])
        criteria = definition.FilterDef()
        criteria.add_metadata_filter('os', 'ubuntu', 'STRING', True, True)
        items, _explanation = self._search(criteria)
        self.assertEqual(['ubuntu.iso'], self._names(items))
        self.query_by_metadata.assert_called_once_with(
            constants.QT_MEDIA, None, {}, {'os': ('STRING', 'ubuntu')}, True)
        self.assertFalse(self.query_with_fields.called)

    def test_search_by_metadata_api_filter_without_type(self):
        criteria = definition.FilterDef()
        criteria.add_metadata_filter('os', 'ubuntu', None, False, True)
        e = self.assertRaises(exceptions.FilterException, self._search,
                              criteria)
        self.assertIn("metadata field 'os' must provide a valid type",
                      e.message)

    def test_search_by_metadata_empty_value(self):
        criteria = definition.FilterDef()
        criteria.add_metadata_filter('os', '')
        self.assertRaises(exceptions.FilterException, self._search, criteria)

    def test_search_query_error(self):
        self.query_with_fields.side_effect = exceptions.VCloudApiException(
            status_code=500, error_message='boom')
        e = self.assertRaises(exceptions.FilterException, self._search)
        self.assertIn('error retrieving query item list', e.message)

    def test_search_with_session(self):
        session = mock.Mock()
        with mock.patch.object(query, 'query_with_metadata_fields',
                               return_value=_results()) as query_fields:
            items, _explanation = engine.search(session, constants.QT_MEDIA)
        self.assertEqual(4, len(items))
        query_fields.assert_called_once_with(session, constants.QT_MEDIA,
                                             None, {}, [], False)


class GetEntityByFilterTest(base.TestCase):

    def test_single_match(self):
        search_func = mock.Mock(return_value=(['item1'], 'text'))
        criteria = definition.FilterDef()
        self.assertEqual('item1', engine.get_entity_by_filter(
            search_func, constants.QT_CATALOG, 'catalog', criteria))
        search_func.assert_called_once_with(constants.QT_CATALOG, criteria)

    def test_no_match(self):
        search_func = mock.Mock(return_value=([], 'text'))
        e = self.assertRaises(exceptions.EntityNotFoundException,
                              engine.get_entity_by_filter, search_func,
                              constants.QT_CATALOG, 'catalog',
                              definition.FilterDef())
        self.assertTrue(exceptions.contains_not_found(e))

    def test_many_matches(self):
        search_func = mock.Mock(return_value=(['item1', 'item2'], 'text'))
        e = self.assertRaises(exceptions.FilterException,
                              engine.get_entity_by_filter, search_func,
                              constants.QT_CATALOG, 'catalog',
                              definition.FilterDef())
        self.assertEqual('more than one catalog found by given criteria: '
                         'text', e.message)

    def test_no_criteria(self):
        search_func = mock.Mock()
        self.assertRaises(exceptions.FilterException,
                          engine.get_entity_by_filter, search_func,
                          constants.QT_CATALOG, 'catalog', None)
        self.assertFalse(search_func.called)
