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
Session and API call management for vCloud Director.

This module contains classes to invoke the vCloud Director REST API. It
supports automatic session re-establishment and retry of API invocations
in case of connection problems or server API call overload.
"""

import itertools
import logging
from typing import Callable, TypeVar

from lxml import etree
from oslo_concurrency import lockutils
from oslo_utils import excutils
from oslo_utils import reflection
import requests

from oslo_vcloud._i18n import _, _LE, _LI, _LW
from oslo_vcloud.common import loopingcall
from oslo_vcloud import constants
from oslo_vcloud import exceptions
from oslo_vcloud.objects import task as task_obj
from oslo_vcloud import vcloud_util


LOG = logging.getLogger(__name__)

# Status codes of a successful request.
OK_STATUS_CODES = (200, 201, 202, 204)

# Status codes whose body is decoded as a vCloud Director Error element.
PARSED_ERROR_STATUS_CODES = (400, 401, 403, 404, 405, 406, 407, 408, 409,
                             410, 411, 412, 413, 414, 415, 423, 424, 426,
                             428, 429, 431, 451, 500, 503, 504)

# Status codes reported when the server is overloaded.
OVERLOAD_STATUS_CODES = (429, 503)

Entity = TypeVar('Entity')


def _trunc_id(session_id):
    """Returns truncated session id which is suitable for logging."""
    if session_id is not None:
        return session_id[-5:]


class RetryDecorator(object):
    """Decorator for retrying a function upon suggested exceptions.

    The decorated function is retried for the given number of times, and the
    sleep time between the retries is incremented until max sleep time is
    reached. If the max retry count is set to -1, then the decorated function
    is invoked indefinitely until an exception is thrown, and the caught
    exception is not in the list of suggested exceptions.
    """

    def __init__(self, max_retry_count=-1, inc_sleep_time=10,
                 max_sleep_time=60, exceptions=()):
        """Configure the retry object using the input params.

        :param max_retry_count: maximum number of times the given function must
                                be retried when one of the input 'exceptions'
                                is caught. When set to -1, it will be retried
                                indefinitely until an exception is thrown
                                and the caught exception is not in param
                                exceptions.
        :param inc_sleep_time: incremental time in seconds for sleep time
                               between retries
        :param max_sleep_time: max sleep time in seconds beyond which the sleep
                               time will not be incremented using param
                               inc_sleep_time. On reaching this threshold,
                               max_sleep_time will be used as the sleep time.
        :param exceptions: suggested exceptions for which the function must be
                           retried
        """
        self._max_retry_count = max_retry_count
        self._inc_sleep_time = inc_sleep_time
        self._max_sleep_time = max_sleep_time
        self._exceptions = exceptions
        self._retry_count = 0
        self._sleep_time = 0

    def __call__(self, f):
        func_name = reflection.get_callable_name(f)

        def _func(*args, **kwargs):
            result = None
            try:
                if self._retry_count:
                    LOG.debug("Invoking %(func_name)s; retry count is "
                              "%(retry_count)d.",
                              {'func_name': func_name,
                               'retry_count': self._retry_count})
                result = f(*args, **kwargs)
            except self._exceptions:
                with excutils.save_and_reraise_exception() as ctxt:
                    LOG.warning(_LW("Exception which is in the suggested list "
                                    "of exceptions occurred while invoking "
                                    "function: %s."),
                                func_name,
                                exc_info=True)
                    if (self._max_retry_count != -1 and
                            self._retry_count >= self._max_retry_count):
                        LOG.error(_LE("Cannot retry upon suggested exception "
                                      "since retry count (%(retry_count)d) "
                                      "reached max retry count "
                                      "(%(max_retry_count)d)."),
                                  {'retry_count': self._retry_count,
                                   'max_retry_count': self._max_retry_count})
                    else:
                        ctxt.reraise = False
                        self._retry_count += 1
                        self._sleep_time += self._inc_sleep_time
                        return self._sleep_time
            raise loopingcall.LoopingCallDone(result)

        def func(*args, **kwargs):
            loop = loopingcall.DynamicLoopingCall(_func, *args, **kwargs)
            evt = loop.start(periodic_interval_max=self._max_sleep_time)
            LOG.debug("Waiting for function %s to return.", func_name)
            return evt.wait()

        return func


def get_entity_by_name_or_id(
        get_by_name: Callable[[str, bool], Entity],
        get_by_id: Callable[[str, bool], Entity],
        identifier: str, refresh: bool) -> Entity:
    """Finds an entity by ID, falling back to its name.

    The ID lookup runs first, with the requested refresh. When it reports
    that the entity does not exist, the name lookup runs without a second
    refresh. Any other error is raised as is.
    """
    try:
        return get_by_id(identifier, refresh)
    except exceptions.EntityNotFoundException:
        LOG.debug("Entity with ID %s not found; searching by name.",
                  identifier)
    return get_by_name(identifier, False)


def combined_task_error_message(task, excep):
    """Returns the text of an operation error joined with its task error."""
    error = task.error
    return ("operation error: %s - task error: [%s - %s] %s" %
            (excep, error.major_error_code, error.minor_error_code,
             error.message))


def parse_vcd_error(response):
    """Translates a vCloud Director Error body into an exception."""
    status = response.status_code
    try:
        element = vcloud_util.parse_xml(response.content)
    except etree.XMLSyntaxError:
        element = None
    if element is None or vcloud_util.local_name(element) != 'Error':
        return exceptions.VCloudApiException(
            _("error parsing error body for non-200 request: "
              "%(status)s %(body)s") % {'status': status,
                                        'body': response.text},
            status_code=status)
    major_error_code = element.get('majorErrorCode')
    try:
        major_error_code = int(major_error_code)
    except (TypeError, ValueError):
        major_error_code = status
    return exceptions.translate_fault(
        status, element.get('message', ''),
        major_error_code=major_error_code,
        minor_error_code=element.get('minorErrorCode'),
        vendor_specific_error_code=element.get('vendorSpecificErrorCode'),
        stack_trace=element.get('stackTrace'))


def _is_message_with_placeholder(message):
    try:
        message % 'test error'
    except TypeError:
        return False
    return True


class VCloudAPISession(object):
    """Setup a session with the server and handles all calls made to it.

    Example:
        api_session = VCloudAPISession('vcd.example.com', 'administrator',
                                       'password', 'System', 10, 0.5,
                                       create_session=False, port=443)
        org = api_session.execute_request(href, 'GET', None,
                                          'error retrieving org: %s')
    """

    def __init__(self, host, server_username, server_password, org,
                 api_retry_count, task_poll_interval, scheme='https',
                 create_session=True, port=443,
                 api_version=constants.API_VERSION, cacert=None,
                 insecure=True, pool_size=10,
                 auth_header=constants.AUTH_HEADER,
                 max_retry_timeout=constants.MAX_RETRY_TIMEOUT,
                 http_timeout=None):
        """Initializes the API session with given parameters.

        :param host: vCloud Director IP address or host name
        :param server_username: name of the user logging in
        :param server_password: password for param server_username
        :param org: organization of the user; 'System' for administrators
        :param api_retry_count: number of times an API must be retried upon
                                session/connection related errors
        :param task_poll_interval: sleep time in seconds for polling an
                                   on-going async task as part of the API call
        :param scheme: protocol-- http or https
        :param create_session: whether to setup a connection at the time of
                               instance creation
        :param port: port for connection
        :param api_version: API version sent in the Accept header
        :param cacert: Specify a CA bundle file to use in verifying a
                       TLS (https) server certificate.
        :param insecure: Verify HTTPS connections using system certificates,
                         used only if cacert is not specified
        :param pool_size: Maximum number of connections in http
                          connection pool
        :param auth_header: response header carrying the session token
        :param max_retry_timeout: seconds allowed for retrying operations
                                  on busy entities
        :param http_timeout: timeout in seconds of a single HTTP request
        :raises: VCloudException, VCloudApiException,
                 VCloudConnectionException
        """
        self._host = host
        self._port = port
        self._server_username = server_username
        self._server_password = server_password
        self._org = org
        self._api_retry_count = api_retry_count
        self._task_poll_interval = task_poll_interval
        self._scheme = scheme
        self._cacert = cacert
        self._insecure = insecure
        self._pool_size = pool_size
        self._http_timeout = http_timeout
        self._session_id = None
        self._http = None
        self.api_version = api_version
        self.auth_header = auth_header
        self.max_retry_timeout = max_retry_timeout
        if create_session:
            self._create_session()

    @property
    def base_url(self):
        return '%s/api' % vcloud_util.build_base_url(self._scheme,
                                                     self._host,
                                                     self._port)

    @property
    def host_url(self):
        """URL of the server without the API path."""
        return vcloud_util.build_base_url(self._scheme, self._host,
                                          self._port)

    @property
    def session_id(self):
        return self._session_id

    @property
    def org(self):
        return self._org

    @property
    def is_sys_admin(self):
        return (self._org or '').lower() == 'system'

    @property
    def cacert(self):
        return self._cacert

    @property
    def insecure(self):
        return self._insecure

    @property
    def verify(self):
        # insecure flag is used only if cacert is not specified.
        return self._cacert if self._cacert else not self._insecure

    @property
    def http(self):
        if self._http is None:
            self._http = requests.Session()
            adapter = requests.adapters.HTTPAdapter(
                pool_connections=self._pool_size,
                pool_maxsize=self._pool_size)
            self._http.mount('https://', adapter)
            self._http.mount('http://', adapter)
            self._http.headers['User-Agent'] = constants.USER_AGENT
        return self._http

    def _accept_header(self, api_version=None):
        return 'application/*+xml;version=%s' % (api_version or
                                                 self.api_version)

    def new_request_headers(self, content_type=None, api_version=None):
        """Returns the headers sent with every request.

        :param content_type: media type of the payload, if any
        :param api_version: overrides the API version of the session
        """
        headers = {'Accept': self._accept_header(api_version)}
        if self._session_id:
            headers[self.auth_header] = self._session_id
        if content_type:
            headers['Content-Type'] = content_type
        return headers

    def _send(self, method, url, params=None, data=None, headers=None,
              auth=None):
        LOG.debug("Sending %(method)s request to %(url)s.",
                  {'method': method, 'url': url})
        try:
            return self.http.request(method, url, params=params, data=data,
                                     headers=headers, auth=auth,
                                     verify=self.verify,
                                     timeout=self._http_timeout)
        except (requests.ConnectionError, requests.Timeout) as excep:
            excep_msg = _("Request %(method)s %(url)s failed: "
                          "%(error)s") % {'method': method, 'url': url,
                                          'error': excep}
            raise exceptions.VCloudConnectionException(excep_msg, excep)

    @RetryDecorator(exceptions=(exceptions.VCloudConnectionException,))
    @lockutils.synchronized('oslo_vcloud_api_lock')
    def _create_session(self):
        """Establish session with the server."""
        # Another thread might have created the session while the current one
        # was waiting for the lock.
        if self._session_id and self.is_current_session_active():
            LOG.debug("Current session: %s is active.",
                      _trunc_id(self._session_id))
            return

        LOG.debug("Logging into host: %s.", self._host)
        response = self._send(
            'POST', '%s/sessions' % self.base_url,
            headers={'Accept': self._accept_header()},
            auth=('%s@%s' % (self._server_username, self._org),
                  self._server_password))
        self.check_response(response)
        session_id = response.headers.get(self.auth_header)
        if not session_id:
            raise exceptions.VCloudException(
                _("Login response from %(host)s has no %(header)s "
                  "header.") % {'host': self._host,
                                'header': self.auth_header})
        self._session_id = session_id
        LOG.info(_LI("Successfully established new session; session ID is "
                     "%s."),
                 _trunc_id(self._session_id))

    def logout(self):
        """Log out and terminate the current session."""
        if self._session_id:
            LOG.info(_LI("Logging out and terminating the current session "
                         "with ID = %s."),
                     _trunc_id(self._session_id))
            try:
                response = self._send('DELETE', '%s/session' % self.base_url,
                                      headers=self.new_request_headers())
                self.check_response(response)
                self._session_id = None
            except Exception:
                LOG.exception(_LE("Error occurred while logging out and "
                                  "terminating the current session with "
                                  "ID = %s."),
                              _trunc_id(self._session_id))
        else:
            LOG.debug("No session exists to log out.")

    def is_current_session_active(self):
        """Check if current session is active.

        :returns: True if the session is active; False otherwise
        """
        LOG.debug("Checking if the current session: %s is active.",
                  _trunc_id(self._session_id))

        if not self._session_id:
            return False
        try:
            response = self._send('GET', '%s/session' % self.base_url,
                                  headers=self.new_request_headers())
        except exceptions.VCloudConnectionException as ex:
            LOG.debug("Error: %(error)s occurred while checking whether the "
                      "current session: %(session)s is active.",
                      {'error': ex,
                       'session': _trunc_id(self._session_id)})
            return False
        return response.status_code == 200

    def check_response(self, response):
        """Raises the exception matching a failed response.

        :param response: requests response
        :returns: the response when its status is a success
        :raises: VCloudApiException
        """
        status = response.status_code
        if status in OK_STATUS_CODES:
            return response
        if status in PARSED_ERROR_STATUS_CODES:
            raise parse_vcd_error(response)
        raise exceptions.VCloudApiException(
            _("unhandled API response, please report this issue, "
              "status code: %s") % status,
            status_code=status)

    def invoke_api(self, method, href, payload=None, content_type=None,
                   params=None, headers=None, api_version=None):
        """Wrapper method for sending requests.

        The request is retried in the event of exceptions due to session
        overload or connection problems.

        :param method: HTTP method
        :param href: URL of the resource
        :param payload: lxml element, XML text, bytes or a file object
        :param content_type: media type of the payload
        :param params: query parameters
        :param headers: extra headers
        :param api_version: overrides the API version of the session
        :returns: requests response
        :raises: VCloudApiException, VCloudSessionOverLoadException,
                 VCloudConnectionException
        """

        if payload is None or isinstance(payload, bytes) or hasattr(
                payload, 'read'):
            data = payload
        else:
            data = vcloud_util.to_xml(payload)

        @RetryDecorator(max_retry_count=self._api_retry_count,
                        exceptions=(exceptions.VCloudSessionOverLoadException,
                                    exceptions.VCloudConnectionException))
        def _invoke_api(method, href):
            request_headers = self.new_request_headers(content_type,
                                                       api_version)
            if headers:
                request_headers.update(headers)
            response = self._send(method, href, params=params, data=data,
                                  headers=request_headers)
            try:
                return self.check_response(response)
            except exceptions.UnauthorizedException as excep:
                if self.is_current_session_active():
                    raise
                excep_msg = (
                    _("Current session: %(session)s is inactive; "
                      "re-creating the session while invoking "
                      "%(method)s %(href)s.") %
                    {'session': _trunc_id(self._session_id),
                     'method': method,
                     'href': href})
                LOG.debug(excep_msg)
                self._session_id = None
                self._create_session()
                raise exceptions.VCloudConnectionException(excep_msg, excep)
            except exceptions.VCloudApiException as excep:
                if excep.status_code in OVERLOAD_STATUS_CODES:
                    raise exceptions.VCloudSessionOverLoadException(
                        excep.message, excep)
                raise

        return _invoke_api(method, href)

    def _execute(self, href, method, content_type, error_message,
                 payload=None, params=None, api_version=None):
        if not _is_message_with_placeholder(error_message):
            raise exceptions.VCloudException(
                _("error message has to include place holder for error"))
        try:
            return self.invoke_api(method, href, payload=payload,
                                   content_type=content_type, params=params,
                                   api_version=api_version)
        except exceptions.VCloudDriverException as excep:
            raise exceptions.wrap_exception(excep, error_message)

    def execute_request(self, href, method, content_type, error_message,
                        payload=None, params=None, api_version=None):
        """Sends a request and returns the parsed response body.

        :param error_message: message with a placeholder, used to wrap
                              the error of a failed request
        :returns: lxml element of the response, None for an empty body
        """
        response = self._execute(href, method, content_type, error_message,
                                 payload=payload, params=params,
                                 api_version=api_version)
        return vcloud_util.parse_xml(response.content)

    def execute_task_request(self, href, method, content_type, error_message,
                             payload=None, params=None, api_version=None):
        """Sends a request whose response is a Task."""
        element = self.execute_request(href, method, content_type,
                                       error_message, payload=payload,
                                       params=params,
                                       api_version=api_version)
        if element is None:
            raise exceptions.VCloudException(
                error_message % (_("empty task returned by %s") % href))
        return task_obj.Task(self, element)

    def execute_request_without_response(self, href, method, content_type,
                                         error_message, payload=None,
                                         params=None, api_version=None):
        """Sends a request whose response body is not needed."""
        self._execute(href, method, content_type, error_message,
                      payload=payload, params=params,
                      api_version=api_version)

    def get_task_by_href(self, href):
        element = self.execute_request(href, 'GET', None,
                                       'error retrieving task: %s')
        return task_obj.Task(self, element)

    def wait_for_task(self, task, inspect=None):
        """Waits for the given task to complete and returns it.

        The task is polled until it is done. In case of a task error,
        TaskException is raised.

        :param task: Task to wait for
        :param inspect: callable receiving the task and the poll count
                        at every poll
        :returns: the task upon completion
        :raises: TaskException, VCloudApiException,
                 VCloudConnectionException
        """
        loop = loopingcall.FixedIntervalLoopingCall(self._poll_task, task,
                                                    inspect,
                                                    itertools.count(1))
        evt = loop.start(self._task_poll_interval)
        LOG.debug("Waiting for the task: %s to complete.", task.href)
        return evt.wait()

    def _poll_task(self, task, inspect, counter):
        """Poll the given task until completion.

        :param task: Task being polled
        """
        LOG.debug("Reading status of task: %s.", task.href)
        try:
            task.refresh()
        except exceptions.VCloudDriverException:
            with excutils.save_and_reraise_exception():
                LOG.exception(_LE("Error occurred while reading info of "
                                  "task: %s."),
                              task.href)
        if inspect is not None:
            inspect(task, next(counter))
        if task.status in constants.TASK_RUNNING_STATES:
            LOG.debug("Task: %(task)s progress is %(progress)s%%.",
                      {'task': task.href,
                       'progress': task.progress})
        elif task.status == constants.TASK_STATUS_ERROR:
            error = task.error
            raise exceptions.TaskException(
                major_error_code=error.major_error_code,
                minor_error_code=error.minor_error_code,
                error_message=error.message or task.description)
        else:
            LOG.debug("Task: %(task)s status is %(status)s.",
                      {'task': task.href, 'status': task.status})
            raise loopingcall.LoopingCallDone(task)
