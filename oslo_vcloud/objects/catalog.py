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
Catalogs, their items and the vApp templates they hold.
"""

import logging
from urllib import parse

from oslo_vcloud._i18n import _
from oslo_vcloud import api
from oslo_vcloud import constants
from oslo_vcloud import exceptions
from oslo_vcloud.filters import definition
from oslo_vcloud import image_transfer
from oslo_vcloud.objects import media as media_obj
from oslo_vcloud.objects import resource
from oslo_vcloud import vcloud_util

LOG = logging.getLogger(__name__)

# Search restricted to a catalog, by ID or by name.
PARENT_FIELD_CATALOG = 'catalog'
PARENT_FIELD_CATALOG_NAME = 'catalogName'


class VAppTemplate(resource.VCloudResource):

    refresh_error = 'error retrieving vApp template: %s'

    @property
    def status(self):
        try:
            return int(self._attr('status', '0'))
        except ValueError:
            return 0

    @property
    def files(self):
        return vcloud_util.get_files(self.element)


class CatalogItem(resource.VCloudResource):
    """Entry of a catalog, pointing to a vApp template or a media."""

    refresh_error = 'error retrieving catalog item: %s'

    @property
    def entity(self):
        return vcloud_util.find_child(self.element, 'Entity')

    @property
    def entity_href(self):
        entity = self.entity
        return entity.get('href', '') if entity is not None else ''

    @property
    def entity_type(self):
        entity = self.entity
        return entity.get('type', '') if entity is not None else ''

    def delete(self):
        LOG.debug("Deleting catalog item: %s.", self.name)
        self._session.execute_request_without_response(
            self.href, 'DELETE', None, 'error deleting Catalog item: %s')

    def get_vapp_template(self):
        """Retrieves the vApp template this item points to."""
        if self.entity_type != constants.MIME_VAPP_TEMPLATE:
            raise exceptions.VCloudException(
                _("catalog item %(name)s is not a vApp template but "
                  "%(type)s") % {'name': self.name,
                                 'type': self.entity_type})
        element = self._session.execute_request(
            self.entity_href, 'GET', None,
            'error retrieving vApp template: %s')
        return VAppTemplate(self._session, element)


class Catalog(resource.VCloudResource):
    """Catalog of an organization, as seen by its users."""

    refresh_error = 'error refreshing catalog: %s'

    def _item_references(self):
        references = []
        for items in vcloud_util.find_children(self.element, 'CatalogItems'):
            references.extend(vcloud_util.find_children(items,
                                                        'CatalogItem'))
        return references

    def get_catalog_item_names(self):
        return [reference.get('name') for reference in
                self._item_references()]

    def delete(self, force=False, recursive=False):
        """Deletes the catalog through the admin API.

        :param force: delete even if the catalog has running tasks
        :param recursive: delete the catalog items as well
        """
        catalog_uuid = vcloud_util.get_bare_entity_uuid(self.id)
        href = '%s/admin/catalog/%s' % (self._session.base_url,
                                        catalog_uuid)
        LOG.debug("Deleting catalog %(id)s; force: %(force)s, recursive: "
                  "%(recursive)s.",
                  {'id': self.id, 'force': force, 'recursive': recursive})
        self._session.execute_request_without_response(
            href, 'DELETE', None,
            'error deleting Catalog %s: %%s' % self.id,
            params={'force': str(force).lower(),
                    'recursive': str(recursive).lower()})

    def get_catalog_item_by_href(self, href):
        element = self._session.execute_request(
            href, 'GET', None, 'error retrieving catalog item: %s')
        return CatalogItem(self._session, element)

    def get_vapp_template_by_href(self, href):
        element = self._session.execute_request(
            href, 'GET', None, 'error retrieving vApp template: %s')
        return VAppTemplate(self._session, element)

    def _find_item_reference(self, match, refresh):
        if refresh:
            self.refresh()
        for reference in self._item_references():
            if (reference.get('type') == constants.MIME_CATALOG_ITEM and
                    match(reference)):
                return reference
        raise exceptions.EntityNotFoundException()

    def get_catalog_item_by_name(self, name, refresh=False):
        reference = self._find_item_reference(
            lambda ref: ref.get('name') == name, refresh)
        return self.get_catalog_item_by_href(reference.get('href'))

    def get_catalog_item_by_id(self, item_id, refresh=False):
        reference = self._find_item_reference(
            lambda ref: vcloud_util.equal_ids(item_id, ref.get('id'),
                                              ref.get('href')),
            refresh)
        return self.get_catalog_item_by_href(reference.get('href'))

    def get_catalog_item_by_name_or_id(self, identifier, refresh=False):
        return api.get_entity_by_name_or_id(self.get_catalog_item_by_name,
                                            self.get_catalog_item_by_id,
                                            identifier, refresh)

    def get_media_by_href(self, href):
        """Retrieves a media; a forbidden media is reported as not found."""
        try:
            element = self._session.execute_request(
                href, 'GET', None, 'error retrieving media: %s')
        except exceptions.VCloudApiException as excep:
            if excep.major_error_code == 403:
                raise exceptions.EntityNotFoundException(cause=excep)
            raise
        return media_obj.Media(self._session, element)

    def get_media_by_name(self, name, refresh=False):
        reference = self._find_item_reference(
            lambda ref: ref.get('name') == name, refresh)
        item = self.get_catalog_item_by_href(reference.get('href'))
        return self.get_media_by_href(item.entity_href)

    def get_media_by_id(self, media_id, refresh=False):
        """Finds a media of the catalog by ID through the query service.

        refresh is accepted for symmetry with get_media_by_name; the
        query always reads the current state.
        """
        records = media_obj.query_media_records(
            self._session, 'catalogName==%s' % parse.quote_plus(self.name))
        for record in records:
            if vcloud_util.equal_ids(media_id, record.id, record.href):
                return self.get_media_by_href(record.href)
        raise exceptions.EntityNotFoundException()

    def get_media_by_name_or_id(self, identifier, refresh=False):
        return api.get_entity_by_name_or_id(self.get_media_by_name,
                                            self.get_media_by_id,
                                            identifier, refresh)

    def query_media(self, media_name):
        """Returns the MediaRecord of the media with the given name."""
        if self.element is None or not self.name:
            raise exceptions.VCloudException(_("catalog is empty"))
        if not media_name:
            raise exceptions.VCloudException(_("media name is empty"))
        records = media_obj.query_media_records(
            self._session, 'name==%s;catalogName==%s' % (
                parse.quote_plus(media_name), parse.quote_plus(self.name)))
        if not records:
            raise exceptions.EntityNotFoundException()
        if len(records) > 1:
            raise exceptions.VCloudException(
                _("found more than one result %(records)s with catalog "
                  "name %(catalog)s and media name %(media)s") %
                {'records': records, 'catalog': self.name,
                 'media': media_name})
        LOG.debug("Found media record by name: %s.", records[0].href)
        return records[0]

    def query_media_list(self):
        return media_obj.query_media_records(
            self._session, 'catalog==%s' % parse.quote_plus(self.href),
            filter_encoded=True)

    def remove_media_if_exists(self, media_name):
        """Deletes the named media, if present, and waits for it."""
        try:
            media = self.get_media_by_name(media_name, refresh=True)
        except exceptions.EntityNotFoundException:
            LOG.debug("Media %s not found; nothing to remove.", media_name)
            return
        task = media.delete()
        task.wait_task_completion()

    def upload_ovf(self, ova_file_path, item_name, description,
                   upload_piece_size=constants.DEFAULT_UPLOAD_PIECE_SIZE):
        """Uploads an OVA package as a vApp template of this catalog.

        :returns: image_transfer.UploadTask
        """
        return image_transfer.upload_ovf(self._session, self, ova_file_path,
                                         item_name, description,
                                         upload_piece_size)

    def upload_media_image(self, media_name, description, file_path,
                           upload_piece_size=(
                               constants.DEFAULT_UPLOAD_PIECE_SIZE)):
        """Uploads an ISO image as a media of this catalog.

        :returns: image_transfer.UploadTask
        """
        if self.element is None:
            raise exceptions.UploadException(
                _("catalog can not be empty or nil"))
        create_href = self.find_link(constants.REL_ADD, constants.MIME_MEDIA)
        if not create_href:
            raise exceptions.UploadException(
                _("catalog upload URL not found"))
        return image_transfer.upload_media_image(
            self._session, create_href, media_name, description, file_path,
            upload_piece_size=upload_piece_size,
            existing_names=self.get_catalog_item_names())

    def search_by_filter(self, query_type, parent_field, criteria=None):
        """Runs a filter search on the items of this catalog.

        :param parent_field: 'catalog' to match the catalog ID or
                             'catalogName' to match its name
        :returns: tuple (list of QueryItem, explanation)
        """
        if parent_field == PARENT_FIELD_CATALOG:
            return self._search_with_parent(query_type, criteria,
                                            definition.FILTER_PARENT_ID,
                                            self.id)
        if parent_field == PARENT_FIELD_CATALOG_NAME:
            return self._search_with_parent(query_type, criteria,
                                            definition.FILTER_PARENT,
                                            self.name)
        raise exceptions.FilterException(
            _("unrecognized filter field '%s'") % parent_field)


class AdminCatalog(Catalog):
    """Catalog as seen through the admin API."""
