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
Upload of OVA packages and ISO images to vCloud Director.

An upload creates the entity on the server (a vApp template in a catalog
or a media), which gives temporary upload links for its files. The files
are then sent in the background while the caller gets an UploadTask,
wrapping the server-side import task together with the upload progress.
"""

import logging
import os
import shutil
import threading

from lxml import etree

from oslo_vcloud._i18n import _
from oslo_vcloud.common import loopingcall
from oslo_vcloud import constants
from oslo_vcloud import exceptions
from oslo_vcloud import image_util
from oslo_vcloud.objects import task as task_obj
from oslo_vcloud import rw_handles
from oslo_vcloud import vcloud_util


LOG = logging.getLogger(__name__)


class UploadProgress(object):
    """Upload percentage shared between the upload worker and callers."""

    def __init__(self):
        self._lock = threading.Lock()
        self._progress = 0.0

    def set(self, progress):
        with self._lock:
            self._progress = progress

    def get(self):
        with self._lock:
            return self._progress

    def callback(self, bytes_uploaded, total_size):
        """Progress callback of FileUploadHandle."""
        if total_size:
            self.set(float(bytes_uploaded) / total_size * 100)


class UploadWorker(threading.Thread):
    """Runs an upload function in the background, keeping its error."""

    def __init__(self, func, *args, **kwargs):
        super(UploadWorker, self).__init__(name='oslo_vcloud-upload')
        self.daemon = True
        self._func = func
        self._args = args
        self._kwargs = kwargs
        self.error = None

    def run(self):
        try:
            self._func(*self._args, **self._kwargs)
        except Exception as excep:
            LOG.exception("Error occurred during the upload.")
            self.error = excep


class UploadTask(object):
    """Import task of an upload, with the progress of the file transfer."""

    def __init__(self, task, progress, worker):
        self.task = task
        self._progress = progress
        self._worker = worker

    def get_upload_progress(self):
        return '%.2f' % self._progress.get()

    def get_upload_error(self):
        return self._worker.error

    def _check_upload_error(self, task=None, count=None):
        error = self._worker.error
        if error is not None:
            raise exceptions.UploadException(
                _("upload failed: %s") % error, error)

    def show_upload_progress(self, interval=1):
        """Logs the upload progress until the transfer ends."""
        def _show():
            self._check_upload_error()
            progress = self._progress.get()
            LOG.info("Upload progress %.2f%%", progress)
            if progress >= 100 or not self._worker.is_alive():
                raise loopingcall.LoopingCallDone()

        loop = loopingcall.FixedIntervalLoopingCall(_show)
        return loop.start(interval).wait()

    def wait_task_completion(self):
        """Waits for the import task, failing on an upload error."""
        self._check_upload_error()
        return self.task.wait_inspect_task_completion(
            self._check_upload_error)


def _poll_until(poll, interval, *args):
    """Calls poll(*args) every interval seconds until it returns a value."""
    def _poll():
        result = poll(*args)
        if result is not None:
            raise loopingcall.LoopingCallDone(result)

    loop = loopingcall.FixedIntervalLoopingCall(_poll)
    return loop.start(interval, initial_delay=interval).wait()


def _check_task_errors(element, item_name):
    for task in vcloud_util.get_tasks(element):
        owner = vcloud_util.find_child(task, 'Owner')
        owner_name = owner.get('name') if owner is not None else None
        if (task.get('status') == constants.TASK_STATUS_ERROR and
                item_name == owner_name):
            error = vcloud_util.find_child(task, 'Error')
            if error is None:
                error = etree.Element('Error')
            LOG.error("Task %(task)s of %(item)s failed.",
                      {'task': task.get('href'), 'item': item_name})
            raise exceptions.UploadException(
                _("error in vcd returned error code: %(major)s, error: "
                  "%(minor)s and message: %(message)s ") %
                {'major': error.get('majorErrorCode', 0),
                 'minor': error.get('minorErrorCode', ''),
                 'message': error.get('message', '')})


def _new_entity_params(tag, name, description, **attributes):
    root = etree.Element(vcloud_util.vcloud_tag(tag),
                         nsmap={None: constants.XML_NAMESPACE_VCLOUD})
    root.set('name', name)
    for key, value in attributes.items():
        root.set(key, value)
    etree.SubElement(root,
                     vcloud_util.vcloud_tag('Description')).text = description
    return root


def get_upload_link(element):
    """Returns the upload link of the only file listed by element."""
    files = vcloud_util.get_files(element)
    if len(files) > 1:
        raise exceptions.UploadException(
            _("unexpected response from vCD: found more than one link for "
              "upload"))
    links = vcloud_util.get_links(files[0]) if files else []
    if not links:
        raise exceptions.UploadException(_("no upload link found"))
    return links[0].get('href')


def create_task_for_vcd_import(session, task_href):
    LOG.debug("Retrieving import task: %s.", task_href)
    return session.get_task_by_href(task_href)


def _get_import_task(session, element, cleanup, *cleanup_args):
    """Returns the import task listed by element; cleans up on error."""
    task = None
    for task_element in vcloud_util.get_tasks(element):
        try:
            task = create_task_for_vcd_import(session,
                                              task_element.get('href'))
        except exceptions.VCloudDriverException:
            cleanup(session, *cleanup_args)
            raise
        if task.status == constants.TASK_STATUS_ERROR:
            cleanup(session, *cleanup_args)
            raise exceptions.UploadException(
                _("task did not complete successfully: %s") %
                task.description)
    if task is None:
        cleanup(session, *cleanup_args)
        raise exceptions.UploadException(
            _("no import task found for %s") % element.get('href'))
    return task


# vApp templates

def create_item_for_upload(session, create_href, item_name, description):
    """Creates a catalog item waiting for an OVF upload.

    :returns: href of the vApp template of the new catalog item
    """
    LOG.debug("Creating catalog item %(name)s through %(href)s.",
              {'name': item_name, 'href': create_href})
    params = _new_entity_params('UploadVAppTemplateParams', item_name,
                                description)
    element = session.execute_request(
        create_href, 'POST', constants.MIME_UPLOAD_VAPP_TEMPLATE_PARAMS,
        'error creating catalog item for upload: %s', payload=params)
    entity = vcloud_util.find_child(element, 'Entity')
    if entity is None or not entity.get('href'):
        raise exceptions.UploadException(
            _("catalog item %s created without vApp template") % item_name)
    return entity.get('href')


def query_vapp_template(session, vapp_template_href, item_name):
    """Retrieves a vApp template, failing if its upload task failed."""
    element = session.execute_request(vapp_template_href, 'GET', None,
                                      'error querying vApp template: %s')
    _check_task_errors(element, item_name)
    return element


def upload_ovf_description(session, ovf_path, upload_href):
    """Sends the OVF descriptor, which makes the server list the files."""
    LOG.debug("Uploading OVF descriptor %(path)s to %(href)s.",
              {'path': ovf_path, 'href': upload_href})
    with open(ovf_path, 'rb') as ovf_file:
        content = ovf_file.read()
    session.execute_request_without_response(
        upload_href, 'PUT', constants.MIME_TEXT_XML,
        'error uploading OVF description: %s', payload=content)


def wait_for_temp_upload_links(session, vapp_template_href, item_name):
    """Waits until the vApp template lists the links of its disks.

    :raises: UploadException when the links are still missing after
             UPLOAD_LINK_MAX_ATTEMPTS queries
    """
    attempts = iter(range(constants.UPLOAD_LINK_MAX_ATTEMPTS))

    def _poll():
        if next(attempts, None) is None:
            raise exceptions.UploadException(
                _("timed out waiting for the upload links of %s") %
                item_name)
        element = query_vapp_template(session, vapp_template_href, item_name)
        if len(vcloud_util.get_files(element)) > 1:
            LOG.debug("Upload links of %s prepared.", item_name)
            return element
        return None

    return _poll_until(_poll, constants.UPLOAD_LINK_POLL_INTERVAL)


def _find_reference(references, name):
    for reference in references:
        if reference.href == name:
            return reference
    raise exceptions.UploadException(
        _("file expected from vcd didn't match any description file"))


def upload_files(session, vapp_template, references, tmp_dir, file_paths,
                 upload_piece_size, progress_callback):
    """Uploads the files listed by the vApp template and not yet received.

    Disks with a chunk size are made of several files in the package,
    sent to the same upload link.
    """
    all_files_size = image_util.get_total_upload_size(references)
    uploaded_bytes = 0
    for file_element in vcloud_util.get_files(vapp_template):
        if int(file_element.get('bytesTransferred', 0)):
            continue
        name = file_element.get('name')
        reference = _find_reference(references, name)
        upload_link = vcloud_util.get_links(file_element)[0].get('href')
        if reference.chunk_size:
            handle = rw_handles.FileUploadHandle(
                session, upload_link, reference.size, upload_piece_size,
                uploaded_bytes_for_callback=uploaded_bytes,
                all_files_size=all_files_size,
                progress_callback=progress_callback)
            chunk_paths = image_util.get_chunked_file_paths(
                tmp_dir, reference.href, reference.size,
                reference.chunk_size)
            uploaded_bytes += handle.upload_multi_part_file(chunk_paths)
        else:
            handle = rw_handles.FileUploadHandle(
                session, upload_link, int(file_element.get('size', 0)),
                upload_piece_size,
                uploaded_bytes_for_callback=uploaded_bytes,
                all_files_size=all_files_size,
                progress_callback=progress_callback)
            uploaded_bytes += handle.upload_file(
                image_util.find_file_path(file_paths, name))
    LOG.debug("Removing temporary directory %s.", tmp_dir)
    shutil.rmtree(tmp_dir)


def _cancel_owned_tasks(session, element, item_name):
    for task_element in vcloud_util.get_tasks(element):
        owner = vcloud_util.find_child(task_element, 'Owner')
        if owner is None or owner.get('name') != item_name:
            continue
        try:
            task_obj.Task(session, task_element).cancel()
        except exceptions.VCloudDriverException:
            LOG.exception("Error cancelling upload task of %s.", item_name)


def _wait_for_tasks(session, href, item_name):
    """Returns the entity at href once it lists tasks, None on timeout."""
    attempts = iter(range(constants.UPLOAD_CLEANUP_MAX_ATTEMPTS))

    def _poll():
        if next(attempts, None) is None:
            return False
        try:
            element = session.execute_request(href, 'GET', None,
                                              'error querying entity: %s')
        except exceptions.VCloudDriverException:
            LOG.exception("Error retrieving %s during cleanup.", item_name)
            return None
        if vcloud_util.get_tasks(element):
            return element
        return None

    element = _poll_until(_poll, constants.UPLOAD_CLEANUP_POLL_INTERVAL)
    if element is False:
        LOG.error("No task found to cancel for %s.", item_name)
        return None
    return element


def remove_catalog_item_on_error(session, vapp_template_href, item_name):
    """Cancels the upload task, which removes the catalog item."""
    if not vapp_template_href:
        LOG.error("Failed to delete catalog item %s: no link.", item_name)
        return
    LOG.debug("Deleting catalog item %s.", vapp_template_href)
    element = _wait_for_tasks(session, vapp_template_href, item_name)
    if element is not None:
        _cancel_owned_tasks(session, element, item_name)


def upload_ovf(session, catalog, ova_file_path, item_name, description,
               upload_piece_size=constants.DEFAULT_UPLOAD_PIECE_SIZE):
    """Uploads an OVA package as a new item of catalog.

    The package is unpacked in a temporary directory, which is left for
    inspection when its content is not valid.

    :param catalog: Catalog receiving the item
    :returns: UploadTask
    :raises: UploadException, VCloudApiException
    """
    if catalog is None or catalog.element is None:
        raise exceptions.UploadException(
            _("catalog can not be empty or nil"))
    ova_file_path = image_util.validate_and_fix_file_path(ova_file_path)
    if item_name in catalog.get_catalog_item_names():
        raise exceptions.UploadException(
            _("catalog item '%s' already exists. Upload with different "
              "name") % item_name)

    file_paths, tmp_dir = image_util.unpack_ova(ova_file_path)
    try:
        ovf_path = image_util.get_ovf_path(file_paths)
        references = image_util.get_ovf_file_references(ovf_path)
        image_util.validate_ova_content(file_paths, references, tmp_dir)
    except (exceptions.UploadException, etree.XMLSyntaxError,
            ValueError) as excep:
        raise exceptions.UploadException(
            _("%(err)s. Unpacked files for checking are accessible in: "
              "%(dir)s") % {'err': excep, 'dir': tmp_dir}, excep)

    create_href = catalog.find_link(constants.REL_ADD,
                                    constants.MIME_UPLOAD_VAPP_TEMPLATE_PARAMS)
    if not create_href:
        raise exceptions.UploadException(_("catalog upload URL not found"))

    vapp_template_href = create_item_for_upload(session, create_href,
                                                item_name, description)
    vapp_template = query_vapp_template(session, vapp_template_href,
                                        item_name)
    ovf_upload_href = get_upload_link(vapp_template)
    try:
        upload_ovf_description(session, ovf_path, ovf_upload_href)
        vapp_template = wait_for_temp_upload_links(
            session, vapp_template_href, item_name)
    except exceptions.VCloudDriverException:
        remove_catalog_item_on_error(session, vapp_template_href, item_name)
        raise

    progress = UploadProgress()
    worker = UploadWorker(upload_files, session, vapp_template, references,
                          tmp_dir, file_paths, upload_piece_size,
                          progress.callback)
    worker.start()

    task = _get_import_task(session, vapp_template,
                            remove_catalog_item_on_error,
                            vapp_template_href, item_name)
    LOG.debug("Upload of %s started; import task created.", item_name)
    return UploadTask(task, progress, worker)


# Media

def create_media(session, create_href, media_name, description, file_size):
    """Creates a media waiting for the upload of an ISO image.

    :returns: element returned by the server
    """
    LOG.debug("Creating media %(name)s through %(href)s.",
              {'name': media_name, 'href': create_href})
    params = _new_entity_params('Media', media_name, description,
                                imageType='iso', size=str(file_size))
    element = session.execute_request(create_href, 'POST',
                                      constants.MIME_MEDIA,
                                      'error creating media: %s',
                                      payload=params)
    if element.get('name') == media_name:
        _check_task_errors(element, media_name)
    return element


def query_media_entity(session, media_href, media_name):
    """Retrieves a media, failing if its upload task failed."""
    element = session.execute_request(media_href, 'GET', None,
                                      'error querying media: %s')
    _check_task_errors(element, media_name)
    return element


def remove_image_on_error(session, media_href, media_name):
    """Cancels the upload task, which removes the media."""
    if not media_href:
        LOG.error("Failed to delete media %s: no link.", media_name)
        return
    LOG.debug("Deleting media %s.", media_href)
    element = _wait_for_tasks(session, media_href, media_name)
    if element is not None:
        _cancel_owned_tasks(session, element, media_name)


def execute_upload(session, media, file_path, media_name, file_size,
                   upload_piece_size):
    """Starts the background upload of an ISO image to a created media.

    :param media: media element listing the upload link
    :returns: UploadTask
    """
    upload_link = get_upload_link(media)
    progress = UploadProgress()
    handle = rw_handles.FileUploadHandle(session, upload_link, file_size,
                                         upload_piece_size,
                                         progress_callback=progress.callback)
    worker = UploadWorker(handle.upload_file, file_path)
    worker.start()

    task = _get_import_task(session, media, remove_image_on_error,
                            media.get('href'), media_name)
    LOG.debug("Upload of media %s started; import task created.", media_name)
    return UploadTask(task, progress, worker)


def upload_media_image(session, create_href, media_name, description,
                       file_path,
                       upload_piece_size=constants.DEFAULT_UPLOAD_PIECE_SIZE,
                       existing_names=()):
    """Uploads an ISO image as a new media.

    :param create_href: link creating the media, either the add link of a
                        catalog or the media link of a VDC
    :param existing_names: names already used in the target
    :returns: UploadTask
    :raises: UploadException, VCloudApiException
    """
    file_path = image_util.validate_and_fix_file_path(file_path)
    try:
        image_util.verify_iso(file_path)
    except exceptions.UploadException as excep:
        raise exceptions.UploadException(
            _("File %(path)s isn't correct iso file: %(err)s") %
            {'path': file_path, 'err': excep}, excep)
    if media_name in existing_names:
        raise exceptions.UploadException(
            _("media item '%s' already exists. Upload with different "
              "name") % media_name)
    file_size = os.path.getsize(file_path)

    element = create_media(session, create_href, media_name, description,
                           file_size)
    entity = vcloud_util.find_child(element, 'Entity')
    if entity is not None:
        # A catalog returns the catalog item wrapping the new media.
        element = query_media_entity(session, entity.get('href'),
                                     media_name)
    return execute_upload(session, element, file_path, media_name,
                          file_size, upload_piece_size)
