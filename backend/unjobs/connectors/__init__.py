"""Connector package: import all connectors to trigger @register_connector decorators.

Import order is the default run order of an ingestion cycle.
"""

from unjobs.connectors.workday import UnhcrConnector, WfpConnector  # noqa: F401
from unjobs.connectors.inspira import InspiraConnector  # noqa: F401
from unjobs.connectors.worldbank import WorldBankConnector  # noqa: F401
from unjobs.connectors.unfpa import UnfpaConnector  # noqa: F401
from unjobs.connectors.unicef import UnicefConnector  # noqa: F401
from unjobs.connectors.unesco import UnescoConnector  # noqa: F401
from unjobs.connectors.unops import UnopsConnector  # noqa: F401
