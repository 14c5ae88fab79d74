"""Shared constants for portalflow."""

APOLLO_API_BASE = "https://api.apollo.io/v1"
DEFAULT_SEARCH_PAGE_SIZE = 25

NOT_AVAILABLE = "Not available"

SIGNING_LINK_TTL_DAYS = 30
SIGNING_TOKEN_ALGORITHM = "HS256"

# Weeks in an EOS quarter
QUARTER_WEEKS = 13

DEFAULT_LLM_MODEL = "openai:gpt-4o-mini"
