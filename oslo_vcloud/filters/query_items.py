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
Query records seen through a common set of accessors.

Each query type has its own variant, which knows the record attributes
holding the date, the parent and the IP of the item.
"""

import abc

from oslo_vcloud._i18n import _
from oslo_vcloud import constants
from oslo_vcloud import exceptions


class QueryItem(object, metaclass=abc.ABCMeta):
    """An item that the filter engine can evaluate."""

    type_name = None

    def __init__(self, record):
        self.record = record

    def __repr__(self):
        return '%s(%r)' % (self.__class__.__name__, self.get_name())

    def get_href(self):
        return self.record.href

    def get_name(self):
        return self.record.name

    def get_type(self):
        return self.type_name

    def get_ip(self):
        return ''

    @abc.abstractmethod
    def get_date(self):
        """Returns the creation date, or '' if the item has none."""

    @abc.abstractmethod
    def get_parent_name(self):
        pass

    @abc.abstractmethod
    def get_parent_id(self):
        pass

    def get_metadata_value(self, key):
        """Returns the value of a metadata key, or '' if not retrieved."""
        entry = self.record.metadata.get(key)
        if entry is None:
            return ''
        return entry.value


class QueryVAppTemplate(QueryItem):
    type_name = 'vapp_template'

    def get_date(self):
        return self.record.get('creationDate')

    def get_parent_name(self):
        return self.record.get('catalogName')

    def get_parent_id(self):
        return self.record.get('vdc')


class QueryMedia(QueryItem):
    type_name = 'catalog_media'

    def get_date(self):
        return self.record.get('creationDate')

    def get_parent_name(self):
        return self.record.get('catalogName')

    def get_parent_id(self):
        return self.record.get('catalog')


class QueryCatalogItem(QueryItem):
    type_name = 'catalog_item'

    def get_date(self):
        return self.record.get('creationDate')

    def get_parent_name(self):
        return self.record.get('catalogName')

    def get_parent_id(self):
        return self.record.get('catalog')


class QueryCatalog(QueryItem):
    type_name = 'catalog'

    def get_date(self):
        return self.record.get('creationDate')

    def get_parent_name(self):
        return self.record.get('orgName')

    def get_parent_id(self):
        return ''


class QueryAdminCatalog(QueryCatalog):
    pass


class QueryEdgeGateway(QueryItem):
    type_name = 'edge_gateway'

    def get_date(self):
        return ''

    def get_parent_name(self):
        return self.record.get('orgVdcName')

    def get_parent_id(self):
        return self.record.get('vdc')

    def get_metadata_value(self, key):
        return ''


class QueryOrgVdcNetwork(QueryItem):
    _LINK_TYPES = {
        '0': 'network_direct',
        '1': 'network_routed',
        '2': 'network_isolated',
    }

    def get_type(self):
        return self._LINK_TYPES.get(self.record.get('linkType'), 'network')

    def get_ip(self):
        return self.record.get('defaultGateway')

    def get_date(self):
        return ''

    def get_parent_name(self):
        return self.record.get('vdcName')

    def get_parent_id(self):
        return self.record.get('vdc')


QUERY_ITEM_CLASSES = {
    constants.QT_VAPP_TEMPLATE: QueryVAppTemplate,
    constants.QT_ADMIN_VAPP_TEMPLATE: QueryVAppTemplate,
    constants.QT_CATALOG_ITEM: QueryCatalogItem,
    constants.QT_ADMIN_CATALOG_ITEM: QueryCatalogItem,
    constants.QT_MEDIA: QueryMedia,
    constants.QT_ADMIN_MEDIA: QueryMedia,
    constants.QT_CATALOG: QueryCatalog,
    constants.QT_ADMIN_CATALOG: QueryAdminCatalog,
    constants.QT_EDGE_GATEWAY: QueryEdgeGateway,
    constants.QT_ORG_VDC_NETWORK: QueryOrgVdcNetwork,
}


def result_to_query_items(query_type, results):
    """Converts QueryResults into the QueryItem variant of query_type.

    :returns: list of QueryItem; None when the result is empty
    """
    if results.total < 1:
        return None
    item_class = QUERY_ITEM_CLASSES.get(query_type)
    if item_class is None:
        raise exceptions.FilterException(
            _("unsupported query type %s") % query_type)
    return [item_class(record) for record in results.records]
