import os
import tempfile
import threading
import pytest
from sqlalchemy import create_engine, StaticPool
from sqlalchemy.orm import sessionmaker

os.environ["TESTING"] = "1"
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="tarjama-logs-"))

from tarjama.database import Base, get_db, get_session_factory
from tarjama.main import app
from tarjama.routers.quiz import get_llm
from tarjama.schemas import VocabularyItem
from tarjama.services.quiz_session import QuizRegistry, get_registry


class FakeLLM:
    """Stands in for LLMClient: replies are queued strings or exceptions.

    With `block` set, each call waits on it after signalling `entered`.
    """

    def __init__(self, responses=None, block: threading.Event | None = None):
        self.responses = list(responses or [])
        self.calls: list[dict] = []
        self.block = block
        self.entered = threading.Event()

    def queue(self, *responses):
        self.responses.extend(responses)

    def complete(self, prompt, system_prompt="", max_tokens=1024, temperature=0.7, task_type=None):
        self.calls.append({"prompt": prompt, "system_prompt": system_prompt, "task_type": task_type})
        self.entered.set()
        if self.block is not None:
            self.block.wait(timeout=5)
        if not self.responses:
            raise AssertionError("FakeLLM has no queued response")
        reply = self.responses.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def make_words(n: int, prefix: str = "w") -> list[VocabularyItem]:
    return [
        VocabularyItem(
            id=f"{prefix}{i}",
            source_term=f"src{i}",
            target_term=f"tgt{i}",
            word_type="noun",
        )
        for i in range(n)
    ]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def registry():
    return QuizRegistry(max_size=10)


@pytest.fixture
def client(db_session, session_factory, fake_llm, registry):
    from fastapi.testclient import TestClient

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_llm] = lambda: fake_llm
    app.dependency_overrides[get_registry] = lambda: registry
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
