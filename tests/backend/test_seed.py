from backend.auth.passwords import verify_password
from backend.core import config
from backend.models.site_settings import SiteSettings
from backend.models.user import ROLE_TEACHER, User
from backend.seed import DEFAULT_PRICING, seed


def test_seed_creates_teacher_and_settings_once(studio_db) -> None:
    seed(studio_db)
    seed(studio_db)

    teachers = studio_db.query(User).filter(User.role == ROLE_TEACHER).all()
    assert len(teachers) == 1
    assert teachers[0].email == config.SEED_TEACHER_EMAIL.strip().lower()
    assert verify_password(config.SEED_TEACHER_PASSWORD, teachers[0].hashed_password)

    settings = studio_db.query(SiteSettings).one()
    assert settings.pricing == DEFAULT_PRICING
    assert settings.contact_info == {'email': teachers[0].email}
