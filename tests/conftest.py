import random

import pytest

from fakes import FakeLLM, FakePlaces, fixed_clock
from services.conversation_service import ConversationService
from services.notifier import MemoryNotifier
from services.storage import StorageService


@pytest.fixture
def storage(tmp_path):
    return StorageService(data_dir=tmp_path)


@pytest.fixture
def notifier():
    return MemoryNotifier()


@pytest.fixture
def places():
    return FakePlaces()


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def service(storage, notifier, places, llm):
    return ConversationService(
        storage=storage,
        notifier=notifier,
        places=places,
        llm=llm,
        rng=random.Random(7),
        clock=fixed_clock,
    )
