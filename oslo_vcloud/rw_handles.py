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
Classes defining write handles for file uploads.

vCloud Director gives a temporary upload link for every file of a media
or vApp template being created. This module uploads the files to those
links in pieces, each one sent as a PUT carrying a Content-Range header.
"""

import logging

from oslo_vcloud._i18n import _
from oslo_vcloud import constants
from oslo_vcloud import exceptions


LOG = logging.getLogger(__name__)

MIN_PROGRESS_DIFF_TO_LOG = 25


class FileUploadHandle(object):
    """Write handle for an upload link of vCloud Director.

    The same link can receive several files, as it happens for disks split
    in chunks inside an OVA: the handle keeps the offset reached in the
    target file across calls of upload_file.
    """

    def __init__(self, session, upload_link, file_size, piece_size=None,
                 uploaded_bytes=0, uploaded_bytes_for_callback=0,
                 all_files_size=None, progress_callback=None):
        """Initializes the upload handle with given parameters.

        :param session: VCloudAPISession used to send the pieces
        :param upload_link: temporary upload link given by the server
        :param file_size: size in bytes of the target file
        :param piece_size: size in bytes of the pieces; used only when
                           larger than 1 KiB and smaller than file_size
        :param uploaded_bytes: offset in the target file where the upload
                               starts
        :param uploaded_bytes_for_callback: bytes of other files already
                                            uploaded, reported to the
                                            progress callback
        :param all_files_size: total size reported to the progress callback
        :param progress_callback: callable(bytes_uploaded, total_size)
        """
        self._session = session
        self._upload_link = upload_link
        self._file_size = file_size
        if (piece_size and constants.MIN_UPLOAD_PIECE_SIZE < piece_size <
                file_size):
            self._piece_size = piece_size
        else:
            self._piece_size = constants.DEFAULT_UPLOAD_PIECE_SIZE
        self._uploaded_bytes = uploaded_bytes
        self._uploaded_bytes_for_callback = uploaded_bytes_for_callback
        self._all_files_size = all_files_size or file_size
        self._progress_callback = progress_callback
        self._last_logged_progress = 0

    def __str__(self):
        return "File upload handle for %s" % self._upload_link

    @property
    def piece_size(self):
        return self._piece_size

    @property
    def uploaded_bytes(self):
        return self._uploaded_bytes

    def _log_progress(self, uploaded, total):
        progress = int(uploaded * 100 / total) if total else 100
        if (progress == 100 or (progress - self._last_logged_progress >=
                                MIN_PROGRESS_DIFF_TO_LOG)):
            LOG.debug("Data transfer progress is %d%%.", progress)
            self._last_logged_progress = progress

    def _upload_piece(self, data):
        """Sends a piece of data at the current offset of the target."""
        size = len(data)
        content_range = 'bytes %d-%d/%d' % (self._uploaded_bytes,
                                            self._uploaded_bytes + size - 1,
                                            self._file_size)
        headers = {'Content-Range': content_range,
                   'Content-Length': str(size)}
        try:
            self._session.invoke_api('PUT', self._upload_link, payload=data,
                                     headers=headers)
        except exceptions.VCloudDriverException as excep:
            excep_msg = _("file upload failed. Err: %s") % excep
            LOG.error(excep_msg)
            raise exceptions.UploadException(excep_msg, excep)
        self._uploaded_bytes += size
        self._uploaded_bytes_for_callback += size
        if self._progress_callback is not None:
            self._progress_callback(self._uploaded_bytes_for_callback,
                                    self._all_files_size)
        self._log_progress(self._uploaded_bytes_for_callback,
                           self._all_files_size)

    def upload_file(self, file_path):
        """Uploads a local file piece by piece.

        :returns: size of the local file
        :raises: UploadException
        """
        LOG.debug("Uploading %(path)s to %(link)s at offset %(offset)d "
                  "with piece size %(piece)d.",
                  {'path': file_path, 'link': self._upload_link,
                   'offset': self._uploaded_bytes,
                   'piece': self._piece_size})
        sent = 0
        try:
            with open(file_path, 'rb') as file_handle:
                while True:
                    data = file_handle.read(self._piece_size)
                    if not data:
                        break
                    self._upload_piece(data)
                    sent += len(data)
        except (IOError, OSError) as excep:
            excep_msg = _("Error occurred while reading %s.") % file_path
            LOG.exception(excep_msg)
            raise exceptions.UploadException(excep_msg, excep)
        return sent

    def upload_multi_part_file(self, file_paths):
        """Uploads the chunks of a split file as one target file.

        :returns: total size of the chunks
        """
        LOG.debug("Uploading multi part file %(paths)s to %(link)s.",
                  {'paths': file_paths, 'link': self._upload_link})
        total = 0
        for file_path in file_paths:
            total += self.upload_file(file_path)
        return total
