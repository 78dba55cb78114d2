import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")

import uuid
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.core.constants import LessonTypeEnum, RoleEnum
from app.core.database import Base, get_db
import app.models.registry  # noqa: F401
from app.models.assignment import Assignment
from app.models.course import Course
from app.models.course_module import CourseModule
from app.models.lesson import Lesson
from app.models.user import User
from app.schemas.user import User as UserSchema, UserContext
import main


@pytest.fixture(scope="function")
def database_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(database_engine):
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=database_engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


@pytest.fixture(scope="function")
def client(db_session):
    main.app.dependency_overrides[get_db] = lambda: db_session
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()


@pytest.fixture
def user_factory(db_session):
    def _user_factory(email=None, is_active=True, full_name="Test Learner"):
        user = User(
            full_name=full_name,
            email=email or f"learner-{uuid.uuid4().hex[:8]}@test.com",
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _user_factory


@pytest.fixture
def course_factory(db_session):
    """Build a course from a list of modules, each a list of lesson durations in minutes."""
    def _course_factory(price=0, modules=((10,),), assignments=0, title=None):
        course = Course(title=title or f"Course {uuid.uuid4().hex[:6]}", price=Decimal(str(price)))
        db_session.add(course)
        db_session.flush()

        for position, durations in enumerate(modules):
            module = CourseModule(title=f"Module {position + 1}", position=position, course_id=course.id)
            db_session.add(module)
            db_session.flush()
            for lesson_position, duration in enumerate(durations):
                db_session.add(Lesson(
                    title=f"Lesson {position + 1}.{lesson_position + 1}",
                    lesson_type=LessonTypeEnum.VIDEO,
                    duration=duration,
                    position=lesson_position,
                    module_id=module.id,
                ))

        for index in range(assignments):
            db_session.add(Assignment(title=f"Assignment {index + 1}", points=100, course_id=course.id))

        db_session.commit()
        db_session.refresh(course)
        return course
    return _course_factory


@pytest.fixture
def context_for():
    def _context_for(user, role=RoleEnum.STUDENT):
        return UserContext(user=UserSchema.model_validate(user), role=role)
    return _context_for


@pytest.fixture
def token_for():
    def _token_for(user, role=RoleEnum.STUDENT):
        return jwt.encode(
            {"user_id": user.id, "role": RoleEnum(role).value},
            settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
        )
    return _token_for


@pytest.fixture
def auth_headers(token_for):
    def _auth_headers(user, role=RoleEnum.STUDENT):
        return {"Authorization": f"Bearer {token_for(user, role)}"}
    return _auth_headers
