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
Exception definitions.
"""

import copy
import logging

from oslo_vcloud._i18n import _

LOG = logging.getLogger(__name__)

# Text carried by every not-found error, also when wrapped in a longer
# message.
ENTITY_NOT_FOUND_MESSAGE = '[ENF] entity not found'

# vCloud Director minor error codes with a dedicated exception class.
ACCESS_TO_RESOURCE_IS_FORBIDDEN = 'ACCESS_TO_RESOURCE_IS_FORBIDDEN'
BAD_REQUEST = 'BAD_REQUEST'
BUSY_ENTITY = 'BUSY_ENTITY'
CONFLICT = 'CONFLICT'
DUPLICATE_NAME = 'DUPLICATE_NAME'
RESOURCE_NOT_FOUND = 'RESOURCE_NOT_FOUND'
UNAUTHORIZED = 'UNAUTHORIZED'


class VCloudDriverException(Exception):
    """Base oslo.vcloud exception

    To correctly use this class, inherit from it and define
    a 'msg_fmt' property. That msg_fmt will get printf'd
    with the keyword arguments provided to the constructor.

    """
    msg_fmt = _("An unknown exception occurred.")

    def __str__(self):
        return self.description

    def __init__(self, message=None, details=None, **kwargs):

        if message is not None and isinstance(message, list):
            raise ValueError(_("exception message must not be a list"))

        if details is not None and not isinstance(details, dict):
            raise ValueError(_("details must be a dict"))

        self.kwargs = kwargs
        self.details = details
        self.cause = None

        if not message:
            try:
                message = self.msg_fmt % kwargs
            except Exception:
                # kwargs doesn't match a variable in the message
                # log the issue and the kwargs
                LOG.exception('Exception in string format operation')
                for name, value in kwargs.items():
                    LOG.error("%(name)s: %(value)s",
                              {'name': name, 'value': value})
                # at least get the core message out if something happened
                message = self.msg_fmt

        self.message = message
        super(VCloudDriverException, self).__init__(message)

    @property
    def msg(self):
        return self.message

    @property
    def description(self):
        descr = str(self.msg)
        if self.cause:
            descr += '\nCause: ' + str(self.cause)
        return descr


class VCloudException(VCloudDriverException):
    """The base exception class for all vCloud API related exceptions."""

    def __init__(self, message=None, cause=None, details=None, **kwargs):
        super(VCloudException, self).__init__(message, details, **kwargs)
        self.cause = cause


class VCloudSessionOverLoadException(VCloudDriverException):
    """Thrown when there is an API call overload at the vCloud server."""

    def __init__(self, message, cause=None):
        super(VCloudSessionOverLoadException, self).__init__(message)
        self.cause = cause


class VCloudConnectionException(VCloudDriverException):
    """Thrown when there is a connection problem."""

    def __init__(self, message, cause=None):
        super(VCloudConnectionException, self).__init__(message)
        self.cause = cause


class EntityNotFoundException(VCloudException):
    """Thrown when a lookup does not find the requested entity."""
    msg_fmt = ENTITY_NOT_FOUND_MESSAGE
    code = 404


class VCloudApiException(VCloudException):
    """Error body returned by vCloud Director for a failed request."""

    msg_fmt = _("API Error: %(major_error_code)s: %(error_message)s")

    def __init__(self, message=None, cause=None, details=None,
                 status_code=None, major_error_code=None,
                 minor_error_code=None, vendor_specific_error_code=None,
                 stack_trace=None, **kwargs):
        if not message:
            message = self.msg_fmt % {
                'major_error_code': major_error_code or status_code,
                'error_message': kwargs.get('error_message', '')}
        super(VCloudApiException, self).__init__(message, cause, details,
                                                 **kwargs)
        self.status_code = status_code
        self.major_error_code = major_error_code
        self.minor_error_code = minor_error_code
        self.vendor_specific_error_code = vendor_specific_error_code
        self.stack_trace = stack_trace


class AccessForbiddenException(VCloudApiException):
    code = 403


class BadRequestException(VCloudApiException):
    code = 400


class BusyEntityException(VCloudApiException):
    code = 400


class ConflictException(VCloudApiException):
    code = 409


class DuplicateNameException(VCloudApiException):
    code = 400


class ResourceNotFoundException(VCloudApiException):
    code = 404


class UnauthorizedException(VCloudApiException):
    code = 401


class TaskException(VCloudException):
    """Thrown when a task ends with an error status."""

    msg_fmt = _("task did not complete successfully: %(error_message)s")

    def __init__(self, message=None, cause=None, details=None,
                 major_error_code=None, minor_error_code=None, **kwargs):
        super(TaskException, self).__init__(message, cause, details,
                                            **kwargs)
        self.major_error_code = major_error_code
        self.minor_error_code = minor_error_code


class UploadException(VCloudDriverException):
    """Thrown when there is an error while uploading a file."""

    def __init__(self, message, cause=None):
        super(UploadException, self).__init__(message)
        self.cause = cause


class FilterException(VCloudDriverException):
    """Thrown for search criteria that cannot be evaluated."""

    def __init__(self, message, cause=None):
        super(FilterException, self).__init__(message)
        self.cause = cause


# Populate the fault registry with the exceptions that have
# special treatment.
_fault_classes_registry = {
    ACCESS_TO_RESOURCE_IS_FORBIDDEN: AccessForbiddenException,
    BAD_REQUEST: BadRequestException,
    BUSY_ENTITY: BusyEntityException,
    CONFLICT: ConflictException,
    DUPLICATE_NAME: DuplicateNameException,
    RESOURCE_NOT_FOUND: ResourceNotFoundException,
    UNAUTHORIZED: UnauthorizedException,
}


def get_fault_class(name):
    """Get a named subclass of VCloudApiException."""
    name = str(name)
    fault_class = _fault_classes_registry.get(name)
    if not fault_class:
        LOG.debug('Fault %s not matched.', name)
    return fault_class


def translate_fault(status_code, error_message, major_error_code=None,
                    minor_error_code=None, vendor_specific_error_code=None,
                    stack_trace=None):
    """Produce the VCloudApiException subclass matching a vCD error body.

    :param status_code: HTTP status of the failed response
    :param error_message: message attribute of the Error element
    :param minor_error_code: used to pick a registered fault class
    """
    fault_class = get_fault_class(minor_error_code) or VCloudApiException
    return fault_class(status_code=status_code,
                       major_error_code=major_error_code,
                       minor_error_code=minor_error_code,
                       vendor_specific_error_code=vendor_specific_error_code,
                       stack_trace=stack_trace,
                       error_message=error_message)


def register_fault_class(name, exception):
    fault_class = _fault_classes_registry.get(name)
    if not issubclass(exception, VCloudApiException):
        raise TypeError(_("exception should be a subclass of "
                          "VCloudApiException"))
    if fault_class:
        LOG.debug('Overriding exception for %s', name)
    _fault_classes_registry[name] = exception


def wrap_exception(excep, error_message):
    """Return a copy of excep with its message formatted into error_message.

    The class and the error codes of the original exception are kept, so
    that not-found checks keep working on the wrapped error.
    """
    wrapped = copy.copy(excep)
    wrapped.message = error_message % excep.message
    wrapped.args = (wrapped.message,)
    return wrapped


def is_not_found(excep):
    return isinstance(excep, EntityNotFoundException)


def contains_not_found(excep):
    return excep is not None and ENTITY_NOT_FOUND_MESSAGE in str(excep)
