"""Configuration constants for hammer-csv.

Named constants for entity kinds, API headers and dispatch defaults.
"""

# -----------------------------------------------------------------------------
# Foreman API
# -----------------------------------------------------------------------------

# Foreman selects the v2 API through the Accept header
FOREMAN_HEADERS: dict[str, str] = {"Accept": "version=2,application/json"}

# Prefix for all API routes, relative to the server URL
API_PREFIX: str = "api"

# Foreman pages collections at 20 records by default; ask for everything
SEARCH_PER_PAGE: int = 999999


# -----------------------------------------------------------------------------
# Entity Kinds
# -----------------------------------------------------------------------------

# Maps entity kind (also the record key in legacy responses) to the
# REST collection it lives under.
ENTITY_COLLECTIONS: dict[str, str] = {
    "organization": "organizations",
    "environment": "environments",
    "operatingsystem": "operatingsystems",
    "domain": "domains",
    "architecture": "architectures",
    "ptable": "ptables",
}


# -----------------------------------------------------------------------------
# CSV / Dispatch
# -----------------------------------------------------------------------------

# Rows whose first field starts with this marker are never dispatched
COMMENT_MARKER: str = "#"

DEFAULT_THREAD_COUNT: int = 1
