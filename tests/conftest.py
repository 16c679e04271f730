import pytest

from txregistry import (
    InMemoryRegistryStore,
    SqliteRegistryStore,
    TransactionDescriptor,
    ValidationRegistry,
    generate_key_pair,
)

OPERATION = "CreateUser"
RECORD_ID = "User_101"
TIMESTAMP = 123456789


@pytest.fixture
def user1():
    return generate_key_pair()


@pytest.fixture
def user2():
    return generate_key_pair()


@pytest.fixture
def tx():
    return TransactionDescriptor(OPERATION, RECORD_ID, TIMESTAMP)


@pytest.fixture
def registry():
    return ValidationRegistry(store=InMemoryRegistryStore())


@pytest.fixture
def sqlite_registry(tmp_path):
    reg = ValidationRegistry(store=SqliteRegistryStore(str(tmp_path / "registry.db")))
    yield reg
    reg.close()
