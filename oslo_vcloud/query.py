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
Query service of vCloud Director.

Metadata fields need to be requested explicitly: when a query asks for
them, it must also list the regular fields wanted in the result, so the
fields supported by each query type are kept here.
"""

import logging
from urllib import parse

from oslo_vcloud._i18n import _
from oslo_vcloud import constants
from oslo_vcloud import exceptions
from oslo_vcloud import metadata
from oslo_vcloud import vcloud_util

LOG = logging.getLogger(__name__)

_VAPP_TEMPLATE_FIELDS = ['ownerName', 'catalogName', 'isPublished', 'name',
                         'vdc', 'vdcName', 'org', 'creationDate', 'isBusy',
                         'isGoldMaster', 'isEnabled', 'status', 'isDeployed',
                         'isExpired', 'storageProfileName']
_EDGE_GATEWAY_FIELDS = ['name', 'vdc', 'orgVdcName', 'numberOfExtNetworks',
                        'numberOfOrgNetworks', 'isBusy', 'gatewayStatus',
                        'haStatus']
_ORG_VDC_NETWORK_FIELDS = ['name', 'defaultGateway', 'netmask', 'dns1',
                           'dns2', 'dnsSuffix', 'linkType', 'connectedTo',
                           'vdc', 'isBusy', 'isShared', 'vdcName',
                           'isIpScopeInherited']
_CATALOG_FIELDS = ['name', 'isPublished', 'isShared', 'creationDate',
                   'orgName', 'ownerName', 'numberOfMedia', 'owner']
_MEDIA_FIELDS = ['ownerName', 'catalogName', 'isPublished', 'name', 'vdc',
                 'vdcName', 'org', 'creationDate', 'isBusy', 'storageB',
                 'owner', 'catalog', 'catalogItem', 'status',
                 'storageProfileName', 'taskStatusName', 'isInCatalog',
                 'task', 'isIso', 'isVdcEnabled', 'taskStatus',
                 'taskDetails']
_CATALOG_ITEM_FIELDS = ['entity', 'entityName', 'entityType', 'catalog',
                        'catalogName', 'ownerName', 'owner', 'isPublished',
                        'vdc', 'vdcName', 'isVdcEnabled', 'creationDate',
                        'isExpired', 'status']

FIELDS_ON_DEMAND = {
    constants.QT_VAPP_TEMPLATE: _VAPP_TEMPLATE_FIELDS,
    constants.QT_ADMIN_VAPP_TEMPLATE: _VAPP_TEMPLATE_FIELDS,
    constants.QT_EDGE_GATEWAY: _EDGE_GATEWAY_FIELDS,
    constants.QT_ORG_VDC_NETWORK: _ORG_VDC_NETWORK_FIELDS,
    constants.QT_CATALOG: _CATALOG_FIELDS,
    constants.QT_ADMIN_CATALOG: _CATALOG_FIELDS,
    constants.QT_MEDIA: _MEDIA_FIELDS,
    constants.QT_ADMIN_MEDIA: _MEDIA_FIELDS,
    constants.QT_CATALOG_ITEM: _CATALOG_ITEM_FIELDS,
    constants.QT_ADMIN_CATALOG_ITEM: _CATALOG_ITEM_FIELDS,
}


class QueryRecord(object):
    """One record of a query result."""

    def __init__(self, element):
        self.element = element
        self.record_type = vcloud_util.local_name(element)
        self.attributes = dict(element.attrib)
        self.metadata = metadata.parse_metadata(
            vcloud_util.find_child(element, 'Metadata'))

    def __repr__(self):
        return 'QueryRecord(%s, %r)' % (self.record_type, self.name)

    def get(self, name, default=''):
        return self.attributes.get(name, default)

    @property
    def name(self):
        return self.get('name')

    @property
    def href(self):
        return self.get('href')

    @property
    def id(self):
        return self.get('id')


class QueryResults(object):
    """Records and paging data of a QueryResultRecords element."""

    def __init__(self, element):
        self.element = element
        self.total = int(element.get('total', 0))
        self.page = int(element.get('page', 1))
        self.page_size = int(element.get('pageSize',
                                         constants.QUERY_PAGE_SIZE))
        self.records = [QueryRecord(child) for child in element
                        if isinstance(child.tag, str) and
                        vcloud_util.local_name(child).endswith('Record')]

    def __len__(self):
        return len(self.records)

    def __iter__(self):
        return iter(self.records)


def get_fields_on_demand(query_type):
    fields = FIELDS_ON_DEMAND.get(query_type)
    if fields is None:
        raise exceptions.VCloudException(
            _("query type '%s' not supported") % query_type)
    return fields


def query(session, params=None, not_encoded_params=None):
    """Runs a query through the query service.

    :param params: parameters encoded by the HTTP client
    :param not_encoded_params: parameters passed as they are, such as
                               filters that are already encoded
    :returns: QueryResults
    """
    href = '%s/query' % session.base_url
    if not_encoded_params:
        href += '?' + '&'.join('%s=%s' % (key, value) for key, value in
                               not_encoded_params.items())
    element = session.execute_request(href, 'GET', None,
                                      'error retrieving query: %s',
                                      params=params)
    return QueryResults(element)


def cumulative_query(session, query_type, params=None,
                     not_encoded_params=None):
    """Runs a query, collecting the records of all its pages."""
    if query_type not in FIELDS_ON_DEMAND:
        raise exceptions.VCloudException(
            _("query type %s not supported") % query_type)
    not_encoded_params = dict(not_encoded_params or {})
    not_encoded_params.setdefault('type', query_type)
    results = query(session, params, not_encoded_params)
    wanted = results.total
    retrieved = len(results.records)
    page = results.page
    while retrieved < wanted:
        page += 1
        not_encoded_params['page'] = page
        LOG.debug("Retrieving page %(page)d of query %(type)s.",
                  {'page': page, 'type': query_type})
        new_results = query(session, params, not_encoded_params)
        if not new_results.records:
            LOG.warning("Query %(type)s stopped at %(retrieved)d of "
                        "%(wanted)d records.",
                        {'type': query_type, 'retrieved': retrieved,
                         'wanted': wanted})
            break
        results.records.extend(new_results.records)
        retrieved += len(new_results.records)
    return results


def _metadata_prefix(is_system):
    return 'metadata@SYSTEM' if is_system else 'metadata'


def query_with_metadata_fields(session, query_type, params=None,
                               not_encoded_params=None,
                               metadata_fields=None, is_system=False):
    """Runs a query whose records include the given metadata fields."""
    not_encoded_params = dict(not_encoded_params or {})
    not_encoded_params['type'] = query_type
    if not metadata_fields:
        return cumulative_query(session, query_type, params,
                                not_encoded_params)
    fields = get_fields_on_demand(query_type)
    prefix = _metadata_prefix(is_system)
    metadata_field_text = ','.join('%s:%s' % (prefix, field)
                                   for field in metadata_fields)
    not_encoded_params['fields'] = '%s,%s' % (','.join(fields),
                                              metadata_field_text)
    return cumulative_query(session, query_type, params, not_encoded_params)


def query_by_metadata_filter(session, query_type, params=None,
                             not_encoded_params=None, metadata_filters=None,
                             is_system=False):
    """Runs a query restricted by metadata values on the server side.

    :param metadata_filters: {key: (type, value)}, the type being one of
                             STRING, NUMBER, BOOLEAN, DATETIME
    """
    if not metadata_filters:
        raise exceptions.VCloudException(
            _("[query_by_metadata_filter] no metadata fields provided"))
    not_encoded_params = dict(not_encoded_params or {})
    not_encoded_params['type'] = query_type
    prefix = _metadata_prefix(is_system)
    metadata_filter_text = ';'.join(
        '%s:%s==%s:%s' % (prefix, key, value_type,
                          parse.quote_plus(str(value)))
        for key, (value_type, value) in metadata_filters.items())
    existing_filter = not_encoded_params.get('filter')
    if existing_filter:
        not_encoded_params['filter'] = '(%s;%s)' % (existing_filter,
                                                    metadata_filter_text)
    else:
        not_encoded_params['filter'] = metadata_filter_text
    return cumulative_query(session, query_type, params, not_encoded_params)
