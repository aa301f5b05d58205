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
Shared constants across the vCloud Director client.
"""

from oslo_utils import units

# Default API version requested in the Accept header.
API_VERSION = '5.11'

# Header carrying the session token.
AUTH_HEADER = 'X-Vcloud-Authorization'

# User Agent for HTTP requests between OpenStack and vCloud Director.
USER_AGENT = 'OpenStack-vCloud-Adapter'

# XML namespaces
XML_NAMESPACE_VCLOUD = 'http://www.vmware.com/vcloud/v1.5'
XML_NAMESPACE_OVF = 'http://schemas.dmtf.org/ovf/envelope/1'
XML_NAMESPACE_XSI = 'http://www.w3.org/2001/XMLSchema-instance'

# MIME types
ANY_XML_MIME = 'application/xml'
MIME_CATALOG = 'application/vnd.vmware.vcloud.catalog+xml'
MIME_ADMIN_CATALOG = 'application/vnd.vmware.admin.catalog+xml'
MIME_CATALOG_ITEM = 'application/vnd.vmware.vcloud.catalogItem+xml'
MIME_VAPP_TEMPLATE = 'application/vnd.vmware.vcloud.vAppTemplate+xml'
MIME_UPLOAD_VAPP_TEMPLATE_PARAMS = (
    'application/vnd.vmware.vcloud.uploadVAppTemplateParams+xml')
MIME_MEDIA = 'application/vnd.vmware.vcloud.media+xml'
MIME_ORG = 'application/vnd.vmware.vcloud.org+xml'
MIME_ADMIN_ORG = 'application/vnd.vmware.admin.organization+xml'
MIME_VDC = 'application/vnd.vmware.vcloud.vdc+xml'
MIME_ADMIN_VDC = 'application/vnd.vmware.admin.vdc+xml'
MIME_EDGE_GATEWAY = 'application/vnd.vmware.admin.edgeGateway+xml'
MIME_EDGE_GATEWAY_SERVICE_CONFIGURATION = (
    'application/vnd.vmware.admin.edgeGatewayServiceConfiguration+xml')
MIME_METADATA = 'application/vnd.vmware.vcloud.metadata+xml'
MIME_METADATA_VALUE = 'application/vnd.vmware.vcloud.metadata.value+xml'
MIME_TASK = 'application/vnd.vmware.vcloud.task+xml'
MIME_QUERY_RECORDS = 'application/vnd.vmware.vcloud.query.records+xml'
MIME_ORG_LIST = 'application/vnd.vmware.vcloud.orgList+xml'
MIME_TEXT_XML = 'text/xml'

# Link relations
REL_ADD = 'add'
REL_DOWN = 'down'
REL_UP = 'up'

# Task status values
TASK_STATUS_QUEUED = 'queued'
TASK_STATUS_PRE_RUNNING = 'preRunning'
TASK_STATUS_RUNNING = 'running'
TASK_STATUS_SUCCESS = 'success'
TASK_STATUS_ERROR = 'error'
TASK_STATUS_ABORTED = 'aborted'
TASK_RUNNING_STATES = (TASK_STATUS_QUEUED,
                       TASK_STATUS_PRE_RUNNING,
                       TASK_STATUS_RUNNING)

# Query types
QT_VAPP_TEMPLATE = 'vAppTemplate'
QT_ADMIN_VAPP_TEMPLATE = 'adminVAppTemplate'
QT_EDGE_GATEWAY = 'edgeGateway'
QT_ORG_VDC_NETWORK = 'orgVdcNetwork'
QT_CATALOG = 'catalog'
QT_ADMIN_CATALOG = 'adminCatalog'
QT_CATALOG_ITEM = 'catalogItem'
QT_ADMIN_CATALOG_ITEM = 'adminCatalogItem'
QT_MEDIA = 'media'
QT_ADMIN_MEDIA = 'adminMedia'
QT_TASK = 'task'

# Upload
DEFAULT_UPLOAD_PIECE_SIZE = units.Mi
MIN_UPLOAD_PIECE_SIZE = units.Ki
UPLOAD_LINK_POLL_INTERVAL = 5
UPLOAD_LINK_MAX_ATTEMPTS = 60
UPLOAD_CLEANUP_POLL_INTERVAL = 5
UPLOAD_CLEANUP_MAX_ATTEMPTS = 60

# Retry interval for entities that report being busy.
BUSY_RETRY_INTERVAL = 3

# Seconds allowed for retrying a busy entity or a slow login.
MAX_RETRY_TIMEOUT = 60

# Default query page size.
QUERY_PAGE_SIZE = 25

# Link relation of the edge gateway query of a VDC.
REL_EDGE_GATEWAYS = 'edgeGateways'

# Seconds left to NSX-V before reading a NAT rule it has just created.
NAT_RULE_SETTLE_TIME = 5
