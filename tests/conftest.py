import os

os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('JWT_SECRET_KEY', 'test-signing-secret')
os.environ.setdefault('GOOGLE_CLIENT_ID', 'google-client-id')
os.environ.setdefault('GOOGLE_CLIENT_SECRET', 'google-client-secret')
os.environ.setdefault('GOOGLE_REDIRECT_URI', 'http://localhost:5000/api/auth/google/callback')
os.environ.setdefault('GITHUB_CLIENT_ID', 'github-client-id')
os.environ.setdefault('GITHUB_CLIENT_SECRET', 'github-client-secret')
os.environ.setdefault('GITHUB_REDIRECT_URI', 'http://localhost:5000/api/auth/github/callback')
os.environ.setdefault('FRONTEND_URL', 'http://localhost:3000')
os.environ.setdefault('BCRYPT_ROUNDS', '4')

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from backend.database import Base  # noqa: E402
from backend.models.user import User  # noqa: E402
from backend.stores.user_store import SqlUserStore  # noqa: E402


@pytest.fixture
def db_session():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=[User.__table__])

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=[User.__table__])
        engine.dispose()


@pytest.fixture
def user_store(db_session) -> SqlUserStore:
    return SqlUserStore(db_session)
