"""
Sample Data Seeding

Creates the development admin account and today's insight when they
are missing. Safe to run on every startup.
"""

import logging
from datetime import datetime, timezone

from mira_oracle.config.settings import Settings
from mira_oracle.domain.models import DailyInsightCreate, UserCreate
from mira_oracle.infrastructure.security import hash_password
from mira_oracle.infrastructure.storage.base import Storage


logger = logging.getLogger(__name__)

SAMPLE_INSIGHT_TITLE = "Today's Cosmic Whisper"
SAMPLE_INSIGHT_CONTENT = (
    "The Moon moves through your intuitive sector today, inviting quiet "
    "reflection. Trust the small signs the universe places in your path; "
    "they are guiding you toward clarity and renewed purpose."
)


async def seed_sample_data(storage: Storage, settings: Settings) -> None:
    """Insert the admin user and today's insight if absent."""
    if settings.admin_password:
        if await storage.get_user_by_email(settings.admin_email) is None:
            admin = await storage.create_user(
                UserCreate(
                    username=settings.admin_username,
                    email=settings.admin_email,
                    password_hash=hash_password(settings.admin_password),
                    full_name="Mira Administrator",
                    is_admin=True,
                )
            )
            logger.info(f"Seeded admin user {admin.id}")
    else:
        logger.info("ADMIN_PASSWORD not set, skipping admin seed")

    today = datetime.now(timezone.utc).date().isoformat()
    if await storage.get_daily_insight_by_date(today) is None:
        await storage.create_daily_insight(
            DailyInsightCreate(
                title=SAMPLE_INSIGHT_TITLE,
                content=SAMPLE_INSIGHT_CONTENT,
                date=today,
            )
        )
        logger.info(f"Seeded daily insight for {today}")
