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
Organizations and their lookup from the session.

An Org is the view of an organization available to its users: catalogs
and VDCs are reached through its links. An AdminOrg is the
administrative view, which lists catalogs and VDCs as references.
"""

import logging
from urllib import parse

from oslo_vcloud import api
from oslo_vcloud import constants
from oslo_vcloud import exceptions
from oslo_vcloud.filters import definition
from oslo_vcloud.objects import catalog as catalog_obj
from oslo_vcloud.objects import resource
from oslo_vcloud.objects import vdc as vdc_obj
from oslo_vcloud import query
from oslo_vcloud import vcloud_util

LOG = logging.getLogger(__name__)


def _non_admin_href(href):
    """Turns an admin API HREF into the matching user API HREF."""
    if '/api/admin' not in href:
        return href
    prefix, suffix = href.split('/api/admin', 1)
    return prefix + '/api' + suffix


def _find_reference(references, match):
    for reference in references:
        if match(reference):
            return reference
    raise exceptions.EntityNotFoundException()


def _by_name(name):
    return lambda reference: reference.get('name') == name


def _by_id(entity_id):
    return lambda reference: vcloud_util.equal_ids(
        entity_id, reference.get('id'), reference.get('href'))


class Org(resource.VCloudResource):

    refresh_error = 'error refreshing organization: %s'

    def _links(self, media_type, refresh):
        if refresh:
            self.refresh()
        return vcloud_util.get_links(self.element, constants.REL_DOWN,
                                     media_type)

    def get_catalog_by_href(self, href):
        element = self._session.execute_request(
            href, 'GET', None, 'error retrieving catalog: %s')
        return catalog_obj.Catalog(self._session, element)

    def get_catalog_by_name(self, name, refresh=False):
        link = _find_reference(self._links(constants.MIME_CATALOG, refresh),
                               _by_name(name))
        return self.get_catalog_by_href(link.get('href'))

    def get_catalog_by_id(self, catalog_id, refresh=False):
        link = _find_reference(self._links(constants.MIME_CATALOG, refresh),
                               _by_id(catalog_id))
        return self.get_catalog_by_href(link.get('href'))

    def get_catalog_by_name_or_id(self, identifier, refresh=False):
        return api.get_entity_by_name_or_id(self.get_catalog_by_name,
                                            self.get_catalog_by_id,
                                            identifier, refresh)

    def get_vdc_by_href(self, href):
        element = self._session.execute_request(
            _non_admin_href(href), 'GET', None, 'error getting vdc: %s')
        return vdc_obj.Vdc(self._session, element)

    def get_vdc_by_name(self, name, refresh=False):
        link = _find_reference(self._links(constants.MIME_VDC, refresh),
                               _by_name(name))
        return self.get_vdc_by_href(link.get('href'))

    def get_vdc_by_id(self, vdc_id, refresh=False):
        link = _find_reference(self._links(constants.MIME_VDC, refresh),
                               _by_id(vdc_id))
        return self.get_vdc_by_href(link.get('href'))

    def get_vdc_by_name_or_id(self, identifier, refresh=False):
        return api.get_entity_by_name_or_id(self.get_vdc_by_name,
                                            self.get_vdc_by_id,
                                            identifier, refresh)

    def query_catalog_list(self):
        """Returns the catalog records of this organization."""
        query_type = (constants.QT_ADMIN_CATALOG if
                      self._session.is_sys_admin else constants.QT_CATALOG)
        LOG.debug("Querying catalogs of organization %s.", self.name)
        results = query.cumulative_query(
            self._session, query_type,
            not_encoded_params={
                'type': query_type,
                'filter': 'orgName==%s' % parse.quote_plus(self.name),
                'filterEncoded': 'true'})
        return results.records

    def search_by_filter(self, query_type, criteria=None):
        """Runs a filter search on the entities of this organization.

        :returns: tuple (list of QueryItem, explanation)
        """
        return self._search_with_parent(query_type, criteria,
                                        definition.FILTER_PARENT, self.name)


class AdminOrg(Org):

    def _references(self, container, name, refresh):
        if refresh:
            self.refresh()
        return vcloud_util.find_children(
            vcloud_util.find_child(self.element, container), name)

    def _catalog_references(self, refresh):
        return self._references('Catalogs', 'CatalogReference', refresh)

    def _vdc_references(self, refresh):
        return self._references('Vdcs', 'Vdc', refresh)

    def get_catalog_by_href(self, href):
        return super(AdminOrg, self).get_catalog_by_href(
            _non_admin_href(href))

    def get_catalog_by_name(self, name, refresh=False):
        reference = _find_reference(self._catalog_references(refresh),
                                    _by_name(name))
        return self.get_catalog_by_href(reference.get('href'))

    def get_catalog_by_id(self, catalog_id, refresh=False):
        reference = _find_reference(self._catalog_references(refresh),
                                    _by_id(catalog_id))
        return self.get_catalog_by_href(reference.get('href'))

    def get_admin_catalog_by_href(self, href):
        element = self._session.execute_request(
            href, 'GET', None, 'error retrieving catalog: %s')
        return catalog_obj.AdminCatalog(self._session, element)

    def get_admin_catalog_by_name(self, name, refresh=False):
        reference = _find_reference(self._catalog_references(refresh),
                                    _by_name(name))
        return self.get_admin_catalog_by_href(reference.get('href'))

    def get_admin_catalog_by_id(self, catalog_id, refresh=False):
        reference = _find_reference(self._catalog_references(refresh),
                                    _by_id(catalog_id))
        return self.get_admin_catalog_by_href(reference.get('href'))

    def get_admin_catalog_by_name_or_id(self, identifier, refresh=False):
        return api.get_entity_by_name_or_id(self.get_admin_catalog_by_name,
                                            self.get_admin_catalog_by_id,
                                            identifier, refresh)

    def get_vdc_by_name(self, name, refresh=False):
        reference = _find_reference(self._vdc_references(refresh),
                                    _by_name(name))
        return self.get_vdc_by_href(reference.get('href'))

    def get_vdc_by_id(self, vdc_id, refresh=False):
        reference = _find_reference(self._vdc_references(refresh),
                                    _by_id(vdc_id))
        return self.get_vdc_by_href(reference.get('href'))


def _get_org_list(session):
    return session.execute_request('%s/org' % session.base_url, 'GET', None,
                                   'error retrieving org list: %s')


def _get_org_href_by_name(session, name):
    for org in vcloud_util.find_children(_get_org_list(session), 'Org'):
        if org.get('name') == name:
            return org.get('href')
    LOG.debug("Organization %s not found in the org list.", name)
    raise exceptions.EntityNotFoundException()


def _get_org_href_by_id(session, org_id):
    org_list = _get_org_list(session)
    try:
        org_uuid = vcloud_util.get_bare_entity_uuid(org_id)
    except exceptions.VCloudException as excep:
        raise exceptions.EntityNotFoundException(cause=excep)
    for org in vcloud_util.find_children(org_list, 'Org'):
        # IDs are usually missing from the org list.
        if vcloud_util.get_uuid_from_href(org.get('href')) == org_uuid:
            return org.get('href')
    LOG.debug("Organization with ID %s not found in the org list.", org_id)
    raise exceptions.EntityNotFoundException()


def _admin_org_href(session, org_href):
    return '%s/admin/org/%s' % (session.base_url,
                                org_href.split('/api/org/', 1)[1])


def _get_org(session, href):
    element = session.execute_request(href, 'GET', None,
                                      'error retrieving org: %s')
    return Org(session, element)


def _get_admin_org(session, href):
    element = session.execute_request(_admin_org_href(session, href), 'GET',
                                      None, 'error retrieving org: %s')
    return AdminOrg(session, element)


def get_org_by_name(session, name):
    return _get_org(session, _get_org_href_by_name(session, name))


def get_org_by_id(session, org_id):
    return _get_org(session, _get_org_href_by_id(session, org_id))


def get_org_by_name_or_id(session, identifier):
    return api.get_entity_by_name_or_id(
        lambda name, refresh: get_org_by_name(session, name),
        lambda org_id, refresh: get_org_by_id(session, org_id),
        identifier, False)


def get_admin_org_by_name(session, name):
    return _get_admin_org(session, _get_org_href_by_name(session, name))


def get_admin_org_by_id(session, org_id):
    return _get_admin_org(session, _get_org_href_by_id(session, org_id))


def get_admin_org_by_name_or_id(session, identifier):
    return api.get_entity_by_name_or_id(
        lambda name, refresh: get_admin_org_by_name(session, name),
        lambda org_id, refresh: get_admin_org_by_id(session, org_id),
        identifier, False)
