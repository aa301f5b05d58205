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

import eventlet
from lxml import etree
from oslo_serialization import jsonutils

from oslo_vcloud import constants
from oslo_vcloud.network.nsx.nsxv.common import exceptions
from oslo_vcloud import vcloud_util


httplib2 = eventlet.import_patched('httplib2')

JSON_MIME = 'application/json'


def _xml_text(value):
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return '%s' % value


def _xmldump(parent, obj):
    """Adds the content of obj to the parent element.

    This converts the dict to xml with following assumptions:
    keys starting with _(underscore) are to be used as attributes and not
    elements keys starting with @ are to there so that dict can be made.
    The keys are not part of any xml schema. Lists repeat the element
    of their key and None values are skipped.
    """
    if isinstance(obj, dict):
        for key, value in obj.items():
            if value is None:
                continue
            if key.startswith('_'):
                parent.set(key[1:], _xml_text(value))
            elif key.startswith('@'):
                _xmldump(parent, value)
            elif isinstance(value, list):
                for item in value:
                    _xmldump(etree.SubElement(parent, key), item)
            else:
                _xmldump(etree.SubElement(parent, key), value)
    elif isinstance(obj, list):
        for value in obj:
            _xmldump(parent, value)
    else:
        parent.text = _xml_text(obj)


def xmldumps(obj):
    """Serializes {root tag: content} to XML text."""
    if len(obj) != 1:
        raise ValueError("exactly one root element expected, got %s" %
                         list(obj))
    tag, content = list(obj.items())[0]
    root = etree.Element(tag)
    _xmldump(root, content)
    return etree.tostring(root, encoding='unicode')


def _xmlload(element, force_list):
    children = [child for child in element if isinstance(child.tag, str)]
    if not children and not element.attrib:
        return element.text if element.text is not None else ''
    content = {}
    for key, value in element.attrib.items():
        content['_' + key] = value
    for child in children:
        key = vcloud_util.local_name(child)
        value = _xmlload(child, force_list)
        if key in content:
            if not isinstance(content[key], list):
                content[key] = [content[key]]
            content[key].append(value)
        elif key in force_list:
            content[key] = [value]
        else:
            content[key] = value
    if element.text and element.text.strip() and not children:
        content['@text'] = element.text
    return content


def xmlloads(text, force_list=()):
    """Parses XML text into {root tag: content}.

    Elements without children nor attributes become their text. Repeated
    elements, and the ones named in force_list, become lists.
    """
    root = vcloud_util.parse_xml(text)
    if root is None:
        return {}
    return {vcloud_util.local_name(root): _xmlload(root, set(force_list))}


def parse_nsx_error(content):
    """Returns the fields of an NSX error body, or None.

    :returns: dict with error_code, error_details and module_name
    """
    try:
        root = vcloud_util.parse_xml(content)
    except etree.XMLSyntaxError:
        return None
    if root is None or vcloud_util.local_name(root) != 'error':
        return None
    fields = {}
    for child in root:
        if isinstance(child.tag, str):
            fields[vcloud_util.local_name(child)] = child.text or ''
    return {'error_code': fields.get('errorCode', ''),
            'error_details': fields.get('details', ''),
            'module_name': fields.get('moduleName', '')}


def format_nsx_error(error):
    return '%s %s (API error: %s)' % (error['module_name'],
                                      error['error_details'],
                                      error['error_code'])


class NsxvApiHelper(object):
    errors = {
        303: exceptions.ResourceRedirect,
        400: exceptions.RequestBad,
        403: exceptions.Forbidden,
        404: exceptions.ResourceNotFound,
        409: exceptions.ServiceConflict,
        415: exceptions.MediaTypeUnsupport,
        503: exceptions.ServiceUnavailable
    }

    def __init__(self, session, format='xml'):
        """Sends NSX-V requests authenticated with a vCloud session.

        :param session: VCloudAPISession providing the address, the
                        session token and the TLS settings
        :param format: 'xml' or 'json'
        """
        self.session = session
        self.address = session.host_url
        self.format = format
        if format == 'json':
            self.encode = jsonutils.dumps
            self.content_type = JSON_MIME
        else:
            self.encode = xmldumps
            self.content_type = constants.ANY_XML_MIME

    def _http_request(self, uri, method, body, headers):
        http = httplib2.Http(ca_certs=self.session.cacert)
        http.disable_ssl_certificate_validation = (
            self.session.verify is False)
        return http.request(uri, method, body=body, headers=headers)

    def request(self, method, uri, params=None, headers=None,
                encodeparams=True):
        if not uri.startswith('http'):
            uri = self.address + uri
        request_headers = self.session.new_request_headers(self.content_type)
        if self.format == 'json':
            request_headers['Accept'] = JSON_MIME
        if headers:
            request_headers.update(headers)

        if encodeparams is True:
            body = self.encode(params) if params else None
        else:
            body = params if params else None
        header, response = self._http_request(uri, method,
                                              body=body,
                                              headers=request_headers)
        status = int(header['status'])
        if 200 <= status < 300:
            return header, response
        if status in self.errors:
            cls = self.errors[status]
        else:
            cls = exceptions.NsxvApiException
        error = parse_nsx_error(response) or {}
        message = format_nsx_error(error) if error else None
        raise cls(message, uri=uri, status=status, header=header,
                  response=response, **error)
