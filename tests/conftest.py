import pytest

from addrforge import generator as generator_module
from addrforge.generator import AddressGenerator, ErrorPolicy


@pytest.fixture
def gen():
    return AddressGenerator()


@pytest.fixture
def soft_gen():
    return AddressGenerator(policy=ErrorPolicy.REPORT)


@pytest.fixture
def shared_gen():
    """The process-wide generator, reset around the test."""
    generator_module.reset()
    previous = generator_module.default_generator.policy
    yield generator_module.default_generator
    generator_module.default_generator.policy = previous
    generator_module.reset()
