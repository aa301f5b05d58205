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
Utility functions for OVA and ISO images.
"""

import logging
import math
import os
import tarfile
import tempfile

from lxml import etree  # nosec (bandit bug 1582516)

from oslo_vcloud._i18n import _
from oslo_vcloud import constants
from oslo_vcloud import exceptions

LOG = logging.getLogger(__name__)

# Offsets of the CD001 signature of an ISO 9660 image.
ISO_SIGNATURE = b'CD001'
ISO_SIGNATURE_OFFSETS = (32769, 34817, 36865)
ISO_HEADER_SIZE = 37000

_NS_OVF = '{%s}' % constants.XML_NAMESPACE_OVF


class OvfFileReference(object):
    """A File element in the References section of an OVF descriptor."""

    def __init__(self, href, file_id='', size=0, chunk_size=0):
        self.href = href
        self.id = file_id
        self.size = size
        self.chunk_size = chunk_size

    def __repr__(self):
        return ('OvfFileReference(%r, size=%d, chunk_size=%d)' %
                (self.href, self.size, self.chunk_size))


def validate_and_fix_file_path(file_path):
    """Returns the absolute path of an existing, non-empty file."""
    abs_path = os.path.abspath(file_path)
    if not os.path.isfile(abs_path):
        raise exceptions.UploadException(
            _("file %s not found") % abs_path)
    if os.path.getsize(abs_path) == 0:
        raise exceptions.UploadException(_("file is empty"))
    return abs_path


def verify_iso(file_path):
    """Checks the ISO 9660 signature of the image at file_path."""
    with open(file_path, 'rb') as image:
        header = image.read(ISO_HEADER_SIZE)
    for offset in ISO_SIGNATURE_OFFSETS:
        if header[offset:offset + len(ISO_SIGNATURE)] == ISO_SIGNATURE:
            return True
    raise exceptions.UploadException(
        _("file header didn't match ISO standard"))


def unpack_ova(ova_path):
    """Extracts an OVA archive into a new temporary directory.

    :returns: tuple (absolute paths of the extracted files, directory)
    """
    tmp_dir = tempfile.mkdtemp(prefix='oslo_vcloud')
    LOG.debug("Unpacking %(ova)s into %(dir)s.",
              {'ova': ova_path, 'dir': tmp_dir})
    root = os.path.realpath(tmp_dir)
    file_paths = []
    try:
        with tarfile.open(ova_path) as archive:
            for member in archive.getmembers():
                target = os.path.realpath(os.path.join(root, member.name))
                if os.path.commonpath([root, target]) != root:
                    raise exceptions.UploadException(
                        _("illegal file path in archive: %s") % member.name)
                if not (member.isfile() or member.isdir()):
                    LOG.debug("Skipping archive member %s.", member.name)
                    continue
                archive.extract(member, root)
                if member.isfile():
                    file_paths.append(target)
    except tarfile.TarError as excep:
        raise exceptions.UploadException(
            _("%(err)s. Unpacked files for checking are accessible in: "
              "%(dir)s") % {'err': excep, 'dir': tmp_dir}, excep)
    return file_paths, tmp_dir


def get_ovf_path(file_paths):
    for file_path in file_paths:
        if os.path.splitext(file_path)[1] == '.ovf':
            return file_path
    raise exceptions.UploadException(
        _("ova is not correct - missing ovf file"))


def _get_int(element, name):
    value = element.get(_NS_OVF + name) or element.get(name)
    return int(value) if value else 0


def get_ovf_file_references(ovf_path):
    """Returns the OvfFileReference list of an OVF descriptor."""
    root = etree.parse(ovf_path).getroot()
    references = []
    for element in root.findall('./%sReferences/%sFile' % (_NS_OVF,
                                                            _NS_OVF)):
        references.append(OvfFileReference(
            element.get(_NS_OVF + 'href'),
            element.get(_NS_OVF + 'id', ''),
            _get_int(element, 'size'),
            _get_int(element, 'chunkSize')))
    return references


def get_total_upload_size(references):
    return sum(reference.size for reference in references)


def find_file_path(file_paths, file_name):
    """Returns the path whose base name is file_name, or None."""
    for file_path in file_paths:
        if os.path.basename(file_path) == file_name:
            return file_path
    return None


def get_chunked_file_paths(base_dir, base_file_name, total_file_size,
                           part_size):
    """Returns the paths of the chunks of a split file.

    A file test.vmdk of 100 bytes in parts of 40 bytes is made of
    test.vmdk.000000000, test.vmdk.000000001 and test.vmdk.000000002.
    """
    parts = int(math.ceil(float(total_file_size) / part_size))
    return [os.path.join(base_dir, '%s.%09d' % (base_file_name, i))
            for i in range(parts)]


def _check_file_matches(file_paths, href, size):
    file_path = find_file_path(file_paths, href)
    if file_path is None:
        raise exceptions.UploadException(
            _("file '%s' described in ovf was not found in ova") % href)
    if os.path.getsize(file_path) != size:
        raise exceptions.UploadException(
            _("file size didn't match described in ovf: %s") % file_path)


def validate_ova_content(file_paths, references, tmp_dir):
    """Checks that the files described by the OVF are in the archive."""
    for reference in references:
        if not reference.chunk_size:
            _check_file_matches(file_paths, reference.href, reference.size)
            continue
        chunk_paths = get_chunked_file_paths(tmp_dir, reference.href,
                                             reference.size,
                                             reference.chunk_size)
        for part, chunk_path in enumerate(chunk_paths):
            chunk_size = min(reference.size - part * reference.chunk_size,
                             reference.chunk_size)
            _check_file_matches(file_paths, os.path.basename(chunk_path),
                                chunk_size)
