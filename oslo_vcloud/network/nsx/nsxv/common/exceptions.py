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

from oslo_vcloud._i18n import _
from oslo_vcloud import exceptions


class NsxvException(exceptions.VCloudDriverException):
    """Base NSX-V exception.

    To correctly use this class, inherit from it and define
    a 'msg_fmt' property. That msg_fmt will get printf'd
    with the keyword arguments provided to the constructor.
    """


class NsxvGeneralException(NsxvException):
    def __init__(self, message):
        super(NsxvGeneralException, self).__init__(message)


class NsxvApiException(NsxvException):
    """Failed request to the NSX-V API proxied by vCloud Director.

    When the response carries an NSX error body, the message is
    '<module name> <details> (API error: <error code>)'.
    """
    msg_fmt = _("An unknown exception %(status)s occurred: %(response)s.")

    def __init__(self, message=None, **kwargs):
        super(NsxvApiException, self).__init__(message, **kwargs)

        self.uri = kwargs.get('uri')
        self.status = kwargs.get('status')
        self.header = kwargs.get('header')
        self.response = kwargs.get('response')
        self.error_code = kwargs.get('error_code')
        self.details = kwargs.get('error_details')
        self.module_name = kwargs.get('module_name')


class ResourceRedirect(NsxvApiException):
    msg_fmt = _("Resource %(uri)s has been redirected")


class RequestBad(NsxvApiException):
    msg_fmt = _("Request %(uri)s is Bad, response %(response)s")


class Forbidden(NsxvApiException):
    msg_fmt = _("Forbidden: %(uri)s")


class ResourceNotFound(NsxvApiException):
    msg_fmt = _("Resource %(uri)s not found")


class MediaTypeUnsupport(NsxvApiException):
    msg_fmt = _("Media Type %(uri)s is not supported")


class ServiceUnavailable(NsxvApiException):
    msg_fmt = _("Service Unavailable: %(uri)s")


class ServiceConflict(NsxvApiException):
    msg_fmt = _("Concurrent object access error: %(uri)s")
