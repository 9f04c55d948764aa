import pytest
from decimal import Decimal
from typing import Generator, Dict, Any
from fastapi.testclient import TestClient

from coursemarket.app_setup.factory import create_app
from coursemarket.catalog.repository import Course
from coursemarket.container import build_memory_container
from coursemarket.payments.gateway.fake_adapter import FakeGateway
from coursemarket.users.repository import UserContact
from coursemarket.utils.security import require_user

TEST_USER_ID = "test-user"

COURSES = [
    Course(id="c1", title="Python 101", price=Decimal("10.00"), thumbnail_url="https://img.test/c1.png", instructor_name="Ada"),
    Course(id="c2", title="FastAPI avancé", price=Decimal("20.00"), thumbnail_url="https://img.test/c2.png", instructor_name="Linus"),
    Course(id="c3", title="Data Science", price=Decimal("49.99"), thumbnail_url=None, instructor_name="Grace"),
    Course(id="5", title="Algorithmique", price=Decimal("15.00")),
]


# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def container(gateway):
    """Conteneur mémoire: catalogue et utilisateur de test pré-remplis."""
    c = build_memory_container(gateway)
    for course in COURSES:
        c.catalog.put(course)
    c.users.put(UserContact(id=TEST_USER_ID, email="test@example.com", full_name="Test User"))
    c.users.put(UserContact(id="no-email-user", email=None))
    return c


@pytest.fixture
def orchestrator(container):
    return container.orchestrator


@pytest.fixture
def fill_cart(container):
    def _fill(*course_ids, user_id: str = TEST_USER_ID, quantity: int = 1):
        for course_id in course_ids:
            container.cart_store.add_item(user_id, course_id, quantity)
        return container.cart_store.get_or_create(user_id)
    return _fill


@pytest.fixture
def app(container, monkeypatch):
    monkeypatch.setenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)
    return create_app(container)


# Simuler un utilisateur authentifié pour les endpoints protégés
@pytest.fixture(autouse=True)
def _override_require_user(request):
    if "app" not in request.fixturenames:
        yield
        return
    application = request.getfixturevalue("app")
    fake_user: Dict[str, Any] = {
        "id": TEST_USER_ID,
        "email": "test@example.com",
        "metadata": {"full_name": "Test User"},
    }
    application.dependency_overrides[require_user] = lambda: fake_user
    try:
        yield
    finally:
        application.dependency_overrides.pop(require_user, None)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c
