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
from oslo_vcloud.objects import media as media_obj
from oslo_vcloud import query
from oslo_vcloud.tests import base
from oslo_vcloud import vcloud_util

BASE_URL = 'https://vcd.example.com/api'
MEDIA_HREF = '%s/media/3c3b0bd4-1111-2222-3333-444444444444' % BASE_URL

RECORDS = """<QueryResultRecords
    xmlns="http://www.vmware.com/vcloud/v1.5" total="2">
  <MediaRecord name="boot.iso" href="%s" catalogName="cat1"
      isIso="true" storageB="1048576" status="RESOLVED"/>
  <MediaRecord name="tools.iso" catalogName="cat2" storageB="n/a"/>
</QueryResultRecords>""" % MEDIA_HREF


def _records():
    return query.QueryResults(vcloud_util.parse_xml(RECORDS))


class MediaRecordTest(base.TestCase):

    def setUp(self):
        super(MediaRecordTest, self).setUp()
        self.session = mock.Mock(base_url=BASE_URL, is_sys_admin=False)
        self.boot, self.tools = [
            media_obj.MediaRecord.from_query_record(self.session, record)
            for record in _records()]

    def test_properties(self):
        self.assertEqual('boot.iso', self.boot.name)
        self.assertEqual('cat1', self.boot.catalog_name)
        self.assertTrue(self.boot.is_iso)
        self.assertEqual(1048576, self.boot.storage_bytes)
        self.assertEqual('RESOLVED', self.boot.get('status'))
        self.assertFalse(self.tools.is_iso)
        self.assertEqual(0, self.tools.storage_bytes)

    def test_refresh(self):
        element = vcloud_util.parse_xml(
            '<MediaRecord name="boot.iso" href="%s" storageB="2048"/>' %
            MEDIA_HREF)
        self.session.execute_request.return_value = element
        self.boot.refresh()
        self.assertEqual(2048, self.boot.storage_bytes)
        self.session.execute_request.assert_called_once_with(
            MEDIA_HREF, 'GET', None, 'error retrieving media: %s')

    def test_refresh_errors(self):
        e = self.assertRaises(exceptions.VCloudException,
                              media_obj.MediaRecord(self.session).refresh)
        self.assertEqual('cannot refresh, Object is empty', e.message)
        record = media_obj.MediaRecord(
            self.session, vcloud_util.parse_xml('<MediaRecord/>'))
        e = self.assertRaises(exceptions.VCloudException, record.refresh)
        self.assertEqual('cannot refresh, Name is empty', e.message)

    def test_delete(self):
        task = self.boot.delete()
        self.assertIs(self.session.execute_task_request.return_value, task)
        self.session.execute_task_request.assert_called_once_with(
            MEDIA_HREF, 'DELETE', None, 'error deleting Media item: %s')


class MediaTest(base.TestCase):

    def test_delete(self):
        session = mock.Mock()
        media = media_obj.Media(session, vcloud_util.parse_xml(
            '<Media name="boot.iso" href="%s"/>' % MEDIA_HREF))
        media.delete()
        session.execute_task_request.assert_called_once_with(
            MEDIA_HREF, 'DELETE', None, 'error deleting Media item: %s')


class QueryMediaRecordsTest(base.TestCase):

    def setUp(self):
        super(QueryMediaRecordsTest, self).setUp()
        self.session = mock.Mock(base_url=BASE_URL, is_sys_admin=False)

    def test_media_query_type(self):
        self.assertEqual(constants.QT_MEDIA,
                         media_obj.media_query_type(self.session))
        self.session.is_sys_admin = True
        self.assertEqual(constants.QT_ADMIN_MEDIA,
                         media_obj.media_query_type(self.session))

    def test_query_media_records(self):
        self.session.execute_request.return_value = vcloud_util.parse_xml(
            RECORDS)
        records = media_obj.query_media_records(self.session,
                                                'name==boot.iso')
        self.assertEqual(['boot.iso', 'tools.iso'],
                         [record.name for record in records])
        self.assertIsInstance(records[0], media_obj.MediaRecord)
        self.session.execute_request.assert_called_once_with(
            '%s/query?type=media&filter=name==boot.iso' % BASE_URL, 'GET',
            None, 'error retrieving query: %s', params=None)

    def test_query_media_records_encoded(self):
        self.session.is_sys_admin = True
        with mock.patch.object(query, 'query',
                               return_value=_records()) as query_mock:
            media_obj.query_media_records(self.session, 'name==a%20b',
                                          filter_encoded=True)
        query_mock.assert_called_once_with(
            self.session, not_encoded_params={'type': 'adminMedia',
                                              'filter': 'name==a%20b',
                                              'filterEncoded': 'true'})

    def test_query_media_records_error(self):
        self.session.execute_request.side_effect = (
            exceptions.AccessForbiddenException('API Error: 403: denied'))
        e = self.assertRaises(exceptions.AccessForbiddenException,
                              media_obj.query_media_records, self.session,
                              'name==x')
        self.assertEqual('error querying medias API Error: 403: denied',
                         e.message)
