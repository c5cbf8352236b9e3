"""Storefront bounded context — order settlement core of the template store.

Resolves discount codes against a cart, records orders in a pending → paid |
failed ledger, settles payments against the external gateway, issues
count- and time-limited download tokens for purchased files, and delivers
transactional email through a persisted, priority-aware retry queue.
"""

import structlog
from protean.domain import Domain

storefront = Domain(name="storefront")

logger = structlog.get_logger(__name__)
