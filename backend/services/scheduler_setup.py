"""
scheduler_setup.py
------------------
APScheduler wiring for the background sweeps.

SCHEDULE:
  every 5 s    -> confirm simulated blockchain transactions past the delay
  every 15 min -> expire stale login approvals
  hourly       -> expire marketplace listings past expires_at
  hourly       -> renew due auto-renewing memberships

STARTUP USAGE:
    from services.scheduler_setup import setup_scheduler
    scheduler = AsyncIOScheduler()
    setup_scheduler(scheduler, db)
    scheduler.start()
"""

import logging

from services.crypto_service import CryptoService
from services.user_wallet_service import UserWalletService
from services.blockchain_service import BlockchainService
from services.login_approval_service import LoginApprovalService
from services.marketplace_service import MarketplaceService
from services.membership_service import MembershipService

logger = logging.getLogger(__name__)


def setup_scheduler(scheduler, db) -> None:
    """
    Register all sweep jobs with the provided APScheduler instance.

    Call this BEFORE scheduler.start().
    """
    scheduler.add_job(
        _make_confirmation_job(db),
        'interval',
        seconds=5,
        id='blockchain_confirmations',
        replace_existing=True,
        max_instances=1,
        coalesce=True
    )
    scheduler.add_job(
        _make_approval_expiry_job(db),
        'interval',
        minutes=15,
        id='login_approval_expiry',
        replace_existing=True
    )
    scheduler.add_job(
        _make_listing_expiry_job(db),
        'interval',
        hours=1,
        id='marketplace_listing_expiry',
        replace_existing=True
    )
    scheduler.add_job(
        _make_membership_renewal_job(db),
        'interval',
        hours=1,
        id='membership_auto_renewal',
        replace_existing=True
    )
    logger.info("Scheduler jobs registered: confirmations, approvals, listings, memberships")


def _make_confirmation_job(db):
    async def job():
        try:
            service = BlockchainService(db, CryptoService(db), UserWalletService(db))
            confirmed = await service.confirm_pending_transactions()
            if confirmed:
                logger.info(f"Confirmation sweep: {confirmed} transactions confirmed")
        except Exception as e:
            logger.error(f"Confirmation sweep failed: {e}")
    return job


def _make_approval_expiry_job(db):
    async def job():
        try:
            await LoginApprovalService(db).expire_stale_approvals()
        except Exception as e:
            logger.error(f"Login approval expiry failed: {e}")
    return job


def _make_listing_expiry_job(db):
    async def job():
        try:
            await MarketplaceService(db).expire_old_listings()
        except Exception as e:
            logger.error(f"Listing expiry failed: {e}")
    return job


def _make_membership_renewal_job(db):
    async def job():
        try:
            renewed = await MembershipService(db).process_auto_renewal()
            if renewed:
                logger.info(f"Membership renewal: {len(renewed)} memberships renewed")
        except Exception as e:
            logger.error(f"Membership renewal failed: {e}")
    return job
