"""Create the teacher account and default site settings.

Usage:
    python -m backend.seed
"""
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from backend.auth.passwords import hash_password
from backend.core import config
from backend.database import SessionLocal, init_db
from backend.models.user import ROLE_TEACHER
from backend.repositories import SiteSettingsRepository, UserRepository

logger = logging.getLogger(__name__)

DEFAULT_TEACHER_BIO = (
    'Welcome to my music studio! I am a passionate music teacher with years of '
    'experience helping students of all ages discover the joy of music.'
)
DEFAULT_PRICING = [
    {'name': '30 minute lesson', 'price': '$40'},
    {'name': '45 minute lesson', 'price': '$55'},
    {'name': '60 minute lesson', 'price': '$70'},
]


def seed(db) -> None:
    users = UserRepository(db)
    teacher_email = config.SEED_TEACHER_EMAIL.strip().lower()

    if users.get_by_email(teacher_email) is None:
        users.create(
            email=teacher_email,
            hashed_password=hash_password(config.SEED_TEACHER_PASSWORD),
            name=config.SEED_TEACHER_NAME,
            role=ROLE_TEACHER,
        )
        logger.info('Created teacher account: %s', teacher_email)
    else:
        logger.info('Teacher account already exists: %s', teacher_email)

    settings_repository = SiteSettingsRepository(db)
    if settings_repository.get() is None:
        settings = settings_repository.get_or_create()
        settings_repository.update(
            settings,
            {
                'teacher_name': config.SEED_TEACHER_NAME,
                'teacher_bio': DEFAULT_TEACHER_BIO,
                'pricing': DEFAULT_PRICING,
                'contact_info': {'email': teacher_email},
            },
        )
        logger.info('Created default site settings')
    else:
        logger.info('Site settings already exist')


def main() -> None:
    logging.basicConfig(level=config.LOG_LEVEL, format='%(levelname)s %(message)s')
    init_db()
    db = SessionLocal()
    try:
        seed(db)
    except SQLAlchemyError:
        logger.exception('Seeding failed.')
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
