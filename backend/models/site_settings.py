"""Site settings model definitions."""

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text

from backend.database import Base, utc_now

# Fixed primary key; a second row can never be inserted.
SETTINGS_ROW_ID = 1


class SiteSettings(Base):
    """Public profile and pricing shown on the studio page."""
    __tablename__ = "site_settings"

    id = Column(Integer, primary_key=True, default=SETTINGS_ROW_ID, autoincrement=False)
    teacher_name = Column(String(100))
    teacher_bio = Column(Text)
    teacher_photo = Column(String)
    pricing = Column(JSON)  # [{"name", "price", "description"}]
    contact_info = Column(JSON)  # {"email", "phone", "location"}
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)
