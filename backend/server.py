from routes.auth import auth_router, privacy_router
from routes.login_approval import login_approval_router
from routes.friends import friends_router
from routes.blockchain import blockchain_router
from routes.wallets import wallets_router, wallet_requests_router
from routes.deposits import deposits_router
from routes.catalog import catalog_router
from routes.marketplace import marketplace_router
from routes.orders import orders_router
from routes.memberships import memberships_router
from routes.admin import admin_router
from utils.environment import ENVIRONMENT
from utils.errors import ServiceError
from utils.auth import hash_password
from database import db, client
from fastapi import FastAPI, APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware
import os
import logging
import secrets
import uuid
from datetime import datetime, timezone
from apscheduler.schedulers.asyncio import AsyncIOScheduler

# Create the main app
app = FastAPI(title="TCW1 - Wallet & Marketplace Platform")

api_router = APIRouter(prefix="/api")

scheduler = AsyncIOScheduler()


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@api_router.get("/")
async def root():
    return {"message": "TCW1 API - Wallet & Marketplace Platform", "version": "1.0.0"}


@api_router.get("/health")
async def health():
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


api_router.include_router(auth_router)
api_router.include_router(privacy_router)
api_router.include_router(login_approval_router)
api_router.include_router(friends_router)
api_router.include_router(blockchain_router)
api_router.include_router(wallets_router)
api_router.include_router(wallet_requests_router)
api_router.include_router(deposits_router)
api_router.include_router(catalog_router)
api_router.include_router(marketplace_router)
api_router.include_router(orders_router)
api_router.include_router(memberships_router)
api_router.include_router(admin_router)

app.include_router(api_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=[origin.strip() for origin in os.environ.get(
        'CORS_ORIGINS', 'http://localhost:3000').split(',')],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def ensure_default_admin():
    """Create a first admin from DEFAULT_ADMIN_EMAIL when no admin exists."""
    admin_email = os.environ.get("DEFAULT_ADMIN_EMAIL")
    if not admin_email:
        return

    admin = await db.users.find_one({"is_admin": True}, {"_id": 0, "id": 1})
    if admin:
        return

    temp_password = secrets.token_urlsafe(16)
    now = datetime.now(timezone.utc).isoformat()
    await db.users.insert_one({
        "id": str(uuid.uuid4()),
        "email": admin_email.strip().lower(),
        "first_name": "Admin",
        "last_name": None,
        "phone": None,
        "password": hash_password(temp_password),
        "is_admin": True,
        "two_factor_enabled": False,
        "backup_codes": [],
        "login_approval_enabled": False,
        "show_online_status": True,
        "show_profile_picture": True,
        "created_at": now,
        "updated_at": now
    })
    # Log to server only - never expose in UI
    logger.warning(
        f"FIRST RUN: Default admin created. Email: {admin_email}, Temp Password: {temp_password}")
    logger.warning(
        "SECURITY: Change the admin password immediately after first login!")


@app.on_event("startup")
async def startup():
    # Check database connection first - fail fast if database is unavailable
    from database import check_db_connection
    db_ok, db_error = await check_db_connection()
    if not db_ok:
        logger.critical(f"Database connection failed on startup: {db_error}")
        raise RuntimeError(
            f"Cannot start application - database connection failed: {db_error}")

    from services.db_indexes import create_all_indexes
    await create_all_indexes(db)

    await ensure_default_admin()

    from services.scheduler_setup import setup_scheduler
    setup_scheduler(scheduler, db)
    scheduler.start()

    logger.info(f"TCW1 API started (environment: {ENVIRONMENT})")


@app.on_event("shutdown")
async def shutdown_db_client():
    if scheduler.running:
        scheduler.shutdown(wait=False)
    client.close()
