"""Schema management for relational providers.

The memory provider needs no schema. For ``postgresql``/``sqlite``
providers every repository DAO is touched first so SQLAlchemy registers
its table on the provider metadata, then the metadata is created or dropped.
"""

import structlog
from protean.domain import Domain
from sqlalchemy import create_engine

logger = structlog.get_logger(__name__)

RELATIONAL_PROVIDERS = ("sqlite", "postgresql")


def _register_tables(domain: Domain, provider_name: str) -> None:
    records = [
        *domain.registry.aggregates.values(),
        *domain.registry.entities.values(),
        *domain.registry.projections.values(),
    ]
    for record in records:
        if record.cls.meta_.provider == provider_name:
            domain.repository_for(record.cls)._dao  # noqa: B018

    # Force DAO creation for outbox tables (registered as internal)
    if hasattr(domain, "_outbox_repos") and provider_name in domain._outbox_repos:
        domain._outbox_repos[provider_name]._dao  # noqa: B018


def setup_db(domain: Domain) -> int:
    """Create tables on every relational provider. Returns the provider count."""
    created = 0
    with domain.domain_context():
        for _, provider in domain.providers.items():
            if provider.conn_info["provider"] not in RELATIONAL_PROVIDERS:
                continue
            _register_tables(domain, provider.name)
            engine = create_engine(provider.conn_info["database_uri"])
            provider._metadata.create_all(engine)
            logger.info("Database schema created", provider=provider.name)
            created += 1
    return created


def drop_db(domain: Domain) -> int:
    """Drop tables on every relational provider. Returns the provider count."""
    dropped = 0
    with domain.domain_context():
        for _, provider in domain.providers.items():
            if provider.conn_info["provider"] not in RELATIONAL_PROVIDERS:
                continue
            _register_tables(domain, provider.name)
            engine = create_engine(provider.conn_info["database_uri"])
            provider._metadata.drop_all(engine)
            logger.info("Database schema dropped", provider=provider.name)
            dropped += 1
    return dropped
