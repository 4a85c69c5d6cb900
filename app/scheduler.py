"""Background scheduler for periodic tasks"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from datetime import timedelta
from app.config import settings
from app.utils.time_utils import utc_now
import logging

logger = logging.getLogger(__name__)
scheduler = AsyncIOScheduler()


def start_scheduler():
    """Start the background scheduler"""
    try:
        scheduler.start()
        logger.info("✅ Scheduler started successfully")
    except Exception as e:
        logger.error(f"❌ Failed to start scheduler: {e}")


def stop_scheduler():
    """Stop the background scheduler"""
    try:
        scheduler.shutdown()
        logger.info("✅ Scheduler stopped successfully")
    except Exception as e:
        logger.error(f"❌ Failed to stop scheduler: {e}")


def warn_expiring_listings(db) -> int:
    """
    Notify sellers whose active listings close within the warning window

    Each listing is warned at most once. Listing status is never changed
    here; expiry itself happens lazily when a listing is loaded.

    Returns:
        Number of notifications sent
    """
    from app.models.listing import Listing, ListingStatus
    from app.models.notification import NotificationType
    from app.services.notification_service import NotificationService

    now = utc_now()
    horizon = now + timedelta(days=settings.LISTING_EXPIRY_WARNING_DAYS)

    listings = db.query(Listing).filter(
        Listing.status == ListingStatus.active.value,
        Listing.available_until >= now,
        Listing.available_until <= horizon,
        Listing.expiry_notified_at.is_(None)
    ).all()

    notifications = NotificationService(db)
    sent = 0
    for listing in listings:
        days_left = max((listing.available_until - now).days, 0)
        listing_id = listing.id
        seller_id = listing.seller_id

        listing.expiry_notified_at = now
        db.commit()

        notification = notifications.notify(
            user_id=seller_id,
            notification_type=NotificationType.listing_expiring,
            title="Listing Expiring Soon",
            message=f'"{listing.title}" expires in {days_left} day{"s" if days_left != 1 else ""}',
            related_listing_id=listing_id,
            action_url=f"/listings/{listing_id}"
        )
        if notification:
            sent += 1

    return sent


@scheduler.scheduled_job('cron', hour=9, minute=0)
async def notify_expiring_listings():
    """
    Warn sellers about listings that are about to expire
    Runs daily at 9:00 AM
    """
    try:
        from app.database import SessionLocal

        db = SessionLocal()

        logger.info("🔔 Checking for listings about to expire")

        sent = warn_expiring_listings(db)

        db.close()

        logger.info(f"✅ Sent {sent} listing expiry warnings")

    except Exception as e:
        logger.error(f"❌ Error sending listing expiry warnings: {e}")
