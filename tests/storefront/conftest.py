import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def _adapters():
    """Every test starts with a fresh FakeGateway and FakeEmailAdapter."""
    from storefront.channel import reset_channels
    from storefront.gateway import reset_gateway

    reset_gateway()
    reset_channels()
    yield
    reset_gateway()
    reset_channels()


@pytest.fixture()
def gateway():
    from storefront.gateway import get_gateway

    return get_gateway()


@pytest.fixture()
def mailbox():
    from storefront.channel import get_email_channel

    return get_email_channel()
