import os
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from backend.auth.dependencies import CurrentUser  # noqa: E402
from backend.database import Base  # noqa: E402
from backend.models.exercise import Exercise  # noqa: E402
from backend.models.scheduled_class import ScheduledClass  # noqa: E402
from backend.models.site_settings import SiteSettings  # noqa: E402
from backend.models.student_exercise import StudentExercise  # noqa: E402
from backend.models.user import ROLE_STUDENT, ROLE_TEACHER, User  # noqa: E402

TABLES = [
    User.__table__,
    Exercise.__table__,
    StudentExercise.__table__,
    ScheduledClass.__table__,
    SiteSettings.__table__,
]


@pytest.fixture
def studio_db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=TABLES)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))


@pytest.fixture
def studio_session_factory(tmp_path):
    """Sessions sharing one file-backed database, for two-connection scenarios."""
    engine = create_engine(f'sqlite:///{tmp_path / "studio.db"}')
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=TABLES)

    try:
        yield session_factory
    finally:
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))
        engine.dispose()


def add_user(db, *, email: str, name: str, role: str = ROLE_STUDENT, hashed_password: str = 'unused-hash') -> User:
    user = User(email=email, name=name, role=role, hashed_password=hashed_password)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def add_exercise(db, *, title: str) -> Exercise:
    exercise = Exercise(
        title=title,
        description=f'{title} practice',
        audio_url=f'https://res.cloudinary.com/demo/video/upload/exercises/{title}.mp3',
        audio_key=f'exercises/{title}.mp3',
    )
    db.add(exercise)
    db.commit()
    db.refresh(exercise)
    return exercise


def add_class(db, *, student: User, start_time: datetime, end_time: datetime, title: str = 'Piano lesson') -> ScheduledClass:
    scheduled_class = ScheduledClass(
        student_id=student.id,
        title=title,
        start_time=start_time,
        end_time=end_time,
    )
    db.add(scheduled_class)
    db.commit()
    db.refresh(scheduled_class)
    return scheduled_class


def as_current_user(user: User) -> CurrentUser:
    return CurrentUser(id=user.id, email=user.email, role=user.role)


@pytest.fixture
def teacher(studio_db) -> User:
    return add_user(studio_db, email='teacher@example.com', name='Music Teacher', role=ROLE_TEACHER)


@pytest.fixture
def students(studio_db) -> list[User]:
    return [
        add_user(studio_db, email='ada@example.com', name='Ada'),
        add_user(studio_db, email='ben@example.com', name='Ben'),
        add_user(studio_db, email='cleo@example.com', name='Cleo'),
    ]
