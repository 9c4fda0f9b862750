"""Shared fixtures: fake student store, scripted providers, fresh singletons."""

import inspect
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

import pytest

from tutor.app.core.cache import InMemoryCache, reset_cache
from tutor.app.middleware.rate_limit import AdmissionController, reset_admission_controller
from tutor.app.providers.base import BaseProvider, Content, GenerationOptions
from tutor.app.providers.client import ProviderClient, reset_provider_client
from tutor.app.providers.errors import ProviderNotFoundError
from tutor.app.providers.mock import MockProvider
from tutor.app.providers.retry import RetryPolicy
from tutor.app.services.background import BackgroundTaskRunner, reset_background_runner
from tutor.app.services.response_cache import ResponseCache, reset_response_cache
from tutor.app.services.router import ConversationRouter
from tutor.app.services.session_store import InMemorySessionStore, reset_session_store
from tutor.app.services.video import VideoLookup


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class FakeStudent:
    id: int
    name: str
    xp: int = 0


@dataclass
class FakeMaterial:
    id: int
    name: str
    mime_type: str = "application/pdf"
    url: str = "https://files.example.com/doc.pdf"


@dataclass
class FakeStudentStore:
    """In-memory stand-in for SqlStudentStore."""

    students: Dict[int, FakeStudent] = field(default_factory=dict)
    materials: Dict[int, List[FakeMaterial]] = field(default_factory=dict)
    xp_awards: List[tuple] = field(default_factory=list)

    async def get_student(self, student_id: int) -> Optional[FakeStudent]:
        return self.students.get(student_id)

    async def add_xp(self, student_id: int, amount: int) -> int:
        self.xp_awards.append((student_id, amount))
        student = self.students[student_id]
        student.xp += amount
        return student.xp

    async def study_materials(self, subject_id: Optional[int]) -> Sequence[FakeMaterial]:
        if subject_id is None:
            return []
        return self.materials.get(subject_id, [])


def text_of(contents: List[Content]) -> str:
    """Text of the last turn of a request."""
    return "".join(p.get("text", "") for p in contents[-1]["parts"])


class ScriptedProvider(BaseProvider):
    """Provider whose answers are queued per model.

    Each queued item is either a string (returned) or an exception
    (raised). Smoke tests ("Hola") succeed unless the model is listed in
    unavailable. Every non-smoke call is recorded.
    """

    def __init__(
        self,
        api_key: str = "key-a",
        script: Optional[Dict[str, list]] = None,
        unavailable: Sequence[str] = (),
        default: Optional[Callable[[str], Any]] = None,
    ):
        super().__init__("http://scripted.provider", api_key)
        self.script: Dict[str, list] = defaultdict(list, script or {})
        self.unavailable = set(unavailable)
        self.default = default
        self.calls: List[tuple] = []
        self.smoke_tests: List[str] = []

    async def generate(
        self, model: str, contents: List[Content], options: GenerationOptions
    ) -> str:
        prompt = text_of(contents)
        if prompt == "Hola" and options.max_output_tokens == 10:
            self.smoke_tests.append(model)
            if model in self.unavailable:
                raise ProviderNotFoundError(f"models/{model} is not found")
            return "Hola"

        self.calls.append((model, contents, options))
        if self.script[model]:
            item = self.script[model].pop(0)
            if isinstance(item, BaseException):
                raise item
            return item
        if self.default is not None:
            answer = self.default(prompt)
            if inspect.isawaitable(answer):
                answer = await answer
            return answer
        return MockProvider()._generate_content(prompt)


def make_provider_client(
    provider: BaseProvider,
    models: Sequence[str] = ("model-a",),
    keys: Sequence[str] = ("key-a",),
    max_retries: int = 0,
) -> ProviderClient:
    return ProviderClient(
        credentials=list(keys),
        models=list(models),
        provider_builder=lambda key: provider,
        retry_policy=RetryPolicy(max_retries=max_retries, delay=0.0),
    )


@pytest.fixture(autouse=True)
def reset_singletons():
    """Every test starts from fresh process-wide singletons."""
    reset_cache()
    reset_response_cache()
    reset_session_store()
    reset_admission_controller()
    reset_provider_client()
    reset_background_runner()
    yield
    reset_cache()
    reset_response_cache()
    reset_session_store()
    reset_admission_controller()
    reset_provider_client()
    reset_background_runner()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def response_cache():
    return ResponseCache(InMemoryCache(), default_ttl=3600)


@pytest.fixture
def student_store():
    return FakeStudentStore(
        students={7: FakeStudent(id=7, name="Ana", xp=150)},
        materials={
            3: [
                FakeMaterial(id=1, name="Cinematica.pdf"),
                FakeMaterial(
                    id=2,
                    name="Dinamica.v2.pptx",
                    mime_type=(
                        "application/vnd.openxmlformats-officedocument."
                        "presentationml.presentation"
                    ),
                    url="https://files.example.com/dinamica.pptx",
                ),
            ]
        },
    )


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def sessions():
    return InMemorySessionStore()


@pytest.fixture
def admission(clock):
    return AdmissionController(limit=10, interval=60.0, clock=clock)


@pytest.fixture
def background():
    return BackgroundTaskRunner()


@pytest.fixture
def make_router(student_store, provider, sessions, admission, response_cache, background):
    """Factory building a ConversationRouter over the test doubles."""

    def _make(
        provider_override: Optional[BaseProvider] = None,
        models: Sequence[str] = ("model-a",),
        video: Optional[VideoLookup] = None,
        admission_override: Optional[AdmissionController] = None,
    ) -> ConversationRouter:
        return ConversationRouter(
            store=student_store,
            sessions=sessions,
            admission=admission_override or admission,
            provider_client=make_provider_client(provider_override or provider, models),
            cache=response_cache,
            video=video or VideoLookup(api_key="", cache=response_cache),
            background=background,
        )

    return _make


@pytest.fixture
def provider_factory():
    return ScriptedProvider


@pytest.fixture
def client_factory():
    return make_provider_client
