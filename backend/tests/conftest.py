from pathlib import Path
import io
import os
import tempfile

import pytest
from PIL import Image

# Point the app at a throwaway database and upload root before it is imported.
_TMP = Path(tempfile.mkdtemp(prefix="adboard-tests-"))
os.environ["ENV"] = "dev"
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP / 'app.db'}"
os.environ["UPLOAD_ROOT"] = str(_TMP / "uploads")
os.environ["SEED_DEMO_USERS"] = "false"

from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel  # noqa: E402

from adboard import models  # noqa: E402
from adboard.database import create_db_and_tables, engine, make_engine  # noqa: E402
from adboard.services import PWD_CTX  # noqa: E402
from adboard.storage import ImageStore, ImageUpload  # noqa: E402


@pytest.fixture(autouse=True)
def reset_db():
    """Ensure fresh tables for every test that goes through the app."""
    SQLModel.metadata.drop_all(engine)
    create_db_and_tables()
    yield


@pytest.fixture
def session():
    """An in-memory database session for service-level tests."""
    eng = make_engine("sqlite://", poolclass=StaticPool)
    create_db_and_tables(bind=eng)
    with Session(eng) as s:
        yield s


@pytest.fixture
def store(tmp_path):
    return ImageStore(tmp_path / "uploads")


@pytest.fixture
def make_user(session):
    """Factory creating users directly in the service-test session."""
    def _make(email: str, password: str = "password1", role: models.Role = models.Role.USER, **fields) -> models.User:
        fields.setdefault("first_name", "Ivan")
        fields.setdefault("last_name", "Petrov")
        fields.setdefault("phone", "+79991234567")
        user = models.User(email=email, password_hash=PWD_CTX.hash(password), role=role, **fields)
        session.add(user)
        session.commit()
        session.refresh(user)
        return user
    return _make


def make_png(color: str = "white") -> bytes:
    img = Image.new("RGB", (40, 30), color)
    bio = io.BytesIO()
    img.save(bio, format="PNG")
    return bio.getvalue()


def png_upload(filename: str = "pic.png", color: str = "white", content_type: str = "image/png") -> ImageUpload:
    return ImageUpload(data=make_png(color), filename=filename, content_type=content_type)
