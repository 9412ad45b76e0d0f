"""SCIM 2.0 API conformance suite package.

To resolve the environment and configuration:
    from scim_suite.config import load_settings

To talk to the service under test:
    from scim_suite.core.client import ScimClient
    from scim_suite.core.oauth import TokenProvider
"""

__version__ = "1.0.0"
