__version__ = "0.1.0"

# Core classes
from .config import Environment, EnvironmentRegistry
from .grafanaclient import GrafanaClient
from .access_management import (
    AccessManagement,
    PERMISSION_VIEW,
    PERMISSION_EDIT,
    PERMISSION_ADMIN,
)
from .dashboard import Dashboard, sanitize_dashboard_for_import
from .migration import Migration, parse_batch_request, run_batch

# Errors
from .exceptions import (
    TransporterError,
    TransportError,
    UpstreamError,
    DecodeError,
    EmptyResultError,
    ResolveError,
    GranteeLookupError,
)

# Utilities
from .utils import parse_requesters, convert_to_dataframe, export_to_csv

__all__ = [
    "__version__",
    "Environment",
    "EnvironmentRegistry",
    "GrafanaClient",
    "AccessManagement",
    "PERMISSION_VIEW",
    "PERMISSION_EDIT",
    "PERMISSION_ADMIN",
    "Dashboard",
    "sanitize_dashboard_for_import",
    "Migration",
    "parse_batch_request",
    "run_batch",
    "TransporterError",
    "TransportError",
    "UpstreamError",
    "DecodeError",
    "EmptyResultError",
    "ResolveError",
    "GranteeLookupError",
    "parse_requesters",
    "convert_to_dataframe",
    "export_to_csv",
]
