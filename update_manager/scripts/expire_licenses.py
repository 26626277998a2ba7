"""
Background job to expire time based licenses and subscriptions

This script should be run periodically (e.g., via cron) to mark licenses
and subscriptions whose end date has passed as expired.
"""

import sys
from datetime import datetime
from typing import Optional

from sqlmodel import Session, select
import structlog

from update_manager.core.config import get_settings
from update_manager.core.database import engine
from update_manager.core.logging import configure_logging
from update_manager.core.timeutil import utc_now
from update_manager.models.license import License, LicenseStatus, LicenseType
from update_manager.models.subscription import Subscription, SubscriptionStatus
from update_manager.services.license_service import LicenseService
from update_manager.services.subscription_service import SubscriptionService

logger = structlog.get_logger(__name__)


def expire_past_end(session: Session, now: Optional[datetime] = None) -> dict:
    """Find and expire licenses and subscriptions past their end date"""
    now = now or utc_now()
    try:
        licenses = session.exec(
            select(License).where(
                License.status == LicenseStatus.ACTIVE,
                License.license_type == LicenseType.TIME_BASED,
                License.end_date <= now
            )
        ).all()
        subscriptions = session.exec(
            select(Subscription).where(
                Subscription.status == SubscriptionStatus.ACTIVE,
                Subscription.end_date < now
            )
        ).all()

        if not licenses and not subscriptions:
            logger.info("Nothing to expire")
            return {"licenses_expired": 0, "subscriptions_expired": 0}

        license_service = LicenseService(session)
        subscription_service = SubscriptionService(session)

        expired_licenses = 0
        for license in licenses:
            if license_service.expire_if_past_end(license, now):
                expired_licenses += 1
                logger.info(f"Expired license {license.license_id} (ended {license.end_date})")

        expired_subscriptions = 0
        for subscription in subscriptions:
            if subscription_service.expire_if_past_end(subscription, now):
                expired_subscriptions += 1
                logger.info(f"Expired subscription {subscription.subscription_id}")

        session.commit()

        return {
            "licenses_expired": expired_licenses,
            "subscriptions_expired": expired_subscriptions,
        }

    except Exception as e:
        session.rollback()
        logger.error(f"Error expiring licenses: {e}")
        raise


def main():
    """Main entry point for the expiry job"""
    configure_logging(get_settings().LOG_LEVEL)
    logger.info("=" * 80)
    logger.info("Starting License Expiry Job")
    logger.info("=" * 80)

    try:
        with Session(engine) as session:
            results = expire_past_end(session)

            logger.info("=" * 80)
            logger.info("License Expiry Complete")
            logger.info(f"Results: {results}")
            logger.info("=" * 80)

    except Exception as e:
        logger.error(f"Fatal error in expiry job: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
