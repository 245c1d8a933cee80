import os
os.environ["APP_ENV"] = "test"

# THEN import anything else
import shutil
import tempfile
import time
import uuid
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from fastapi.testclient import TestClient
from sqlalchemy import inspect
from sqlalchemy.orm import Session, sessionmaker

import couponhub.db.session as db_session_module
from couponhub.core.passwords import hash_password
from couponhub.db.session import build_engine, get_db
from couponhub.models.auth_user import AuthUser
from couponhub.models.tenant import Tenant

# Low iteration count keeps per-test seeding fast; verify_password reads it from the hash.
TEST_HASH_ITERATIONS = 1_000

USERS = {
    "admin-a": ("pass-a", "admin", "alpha"),
    "admin-b": ("pass-b", "admin", "beta"),
    "store-a": ("pass-store-a", "store", "alpha"),
    "root": ("pass-root", "superadmin", None),
}


def _run_alembic_upgrade(project_dir: Path, database_url: str) -> None:
    cfg = Config(str(project_dir / "alembic.ini"))
    cfg.set_main_option("script_location", str(project_dir / "alembic"))
    cfg.set_main_option("sqlalchemy.url", database_url)
    cfg.attributes["connection_url"] = database_url
    os.environ["POSTGRES_DSN"] = database_url
    command.upgrade(cfg, "head")


def pytest_configure(config: pytest.Config) -> None:
    workers = getattr(config.option, "numprocesses", None)
    if workers and int(workers) > 1:
        pytest.exit("SQLite test path does not support pytest-xdist parallel workers.")


@pytest.fixture(scope="session", autouse=True)
def apply_migrations() -> Generator[Path, None, None]:
    project_dir = Path(__file__).resolve().parents[1]
    temp_dir = Path(tempfile.mkdtemp(prefix="pytest-db-"))
    template_db_path = temp_dir / f"template-{uuid.uuid4().hex}.sqlite3"
    database_url = f"sqlite:///{template_db_path.as_posix()}"
    os.environ["POSTGRES_DSN"] = database_url

    from couponhub.core.config import get_settings

    get_settings.cache_clear()
    db_session_module.reset_engine_state()
    _run_alembic_upgrade(project_dir, database_url)
    verification_engine = build_engine(database_url, app_env="test")
    try:
        has_form_links = inspect(verification_engine).has_table("form_links")
    finally:
        verification_engine.dispose()
    if not has_form_links:
        raise RuntimeError("Alembic migration parity check failed; missing table: form_links")
    yield template_db_path
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture(scope="session", autouse=True)
def bind_module_session_factories(apply_migrations: Path) -> Generator[None, None, None]:
    bootstrap_engine = build_engine(f"sqlite:///{apply_migrations.as_posix()}", app_env="test")
    db_session_module.bind_session_factory_for_tests(
        sessionmaker(bind=bootstrap_engine, autocommit=False, autoflush=False)
    )

    # Import app after rebinding to avoid stale engine capture.
    import couponhub.main  # noqa: F401

    yield
    bootstrap_engine.dispose()


@pytest.fixture()
def db_session(apply_migrations: Path) -> Generator[Session, None, None]:
    test_db_path = apply_migrations.parent / f"{uuid.uuid4().hex}.sqlite3"
    shutil.copy2(apply_migrations, test_db_path)
    engine = build_engine(f"sqlite:///{test_db_path.as_posix()}", app_env="test")
    test_session_local = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    test_session = test_session_local()
    db_session_module.bind_session_factory_for_tests(test_session_local)

    tenants = {
        "alpha": Tenant(id=str(uuid.uuid4()), slug="alpha", name="Tenant Alpha"),
        "beta": Tenant(id=str(uuid.uuid4()), slug="beta", name="Tenant Beta"),
    }
    test_session.add_all(tenants.values())
    test_session.flush()
    test_session.add_all(
        [
            AuthUser(
                id=str(uuid.uuid4()),
                tenant_id=tenants[slug].id if slug else None,
                username=username,
                password_hash=hash_password(password, iterations=TEST_HASH_ITERATIONS),
                user_type=user_type,
                is_active=True,
            )
            for username, (password, user_type, slug) in USERS.items()
        ]
    )
    test_session.commit()
    yield test_session
    test_session.close()
    engine.dispose()
    db_session_module.reset_engine_state()
    for _ in range(5):
        try:
            test_db_path.unlink(missing_ok=True)
            break
        except PermissionError:
            time.sleep(0.05)


@pytest.fixture()
def tenant_ids(db_session: Session) -> dict[str, str]:
    return {tenant.slug: tenant.id for tenant in db_session.query(Tenant).all()}


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    from couponhub.main import app

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers(client: TestClient) -> Callable[..., dict[str, str]]:
    """Sign in a seeded operator and return bearer + CSRF headers."""
    cache: dict[str, dict[str, str]] = {}

    def _headers(username: str, **extra: str) -> dict[str, str]:
        if username not in cache:
            password = USERS[username][0]
            response = client.post("/api/auth/login", json={"username": username, "password": password})
            assert response.status_code == 200, response.text
            payload = response.json()
            cache[username] = {
                "Authorization": f"Bearer {payload['access_token']}",
                "X-CSRF-Token": payload["csrf_token"],
            }
        return {**cache[username], **extra}

    return _headers
