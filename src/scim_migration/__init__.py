"""SCIM Bridge - Migrate user credentials into a SCIM identity service."""

import logging

__version__ = "0.1.0"
__author__ = "SCIM Migration Team"
__license__ = "Apache-2.0"

# HTTP and Vault libraries log every request line at INFO/DEBUG; the diagnostic
# log records exchanges itself through log_api_request
for _name in ("httpx", "httpcore", "hvac", "urllib3"):
    logging.getLogger(_name).setLevel(logging.WARNING)
