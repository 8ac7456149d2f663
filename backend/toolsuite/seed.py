"""Bootstrap records created when the service starts."""
from __future__ import annotations

import logging
import os
from typing import List

from .schemas import AdSlotCreate, UserCreate, UserRole
from .storage import DuplicateKeyError, Storage

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_EMAIL = "admin@toolsuitepro.com"
DEFAULT_ADMIN_PASSWORD = "admin123"
PLACEHOLDER_AD_CODE = "<!-- Google AdSense code here -->"


def default_ad_slots() -> List[AdSlotCreate]:
    banner = {"size": "728x90"}
    return [
        AdSlotCreate(
            name="Home Page Top Banner",
            position="home-top",
            page="home",
            ad_provider="google-adsense",
            ad_code=PLACEHOLDER_AD_CODE,
            settings=dict(banner),
        ),
        AdSlotCreate(
            name="PDF Tools Banner",
            position="pdf-tools-top",
            page="pdf-tools",
            ad_provider="google-adsense",
            ad_code=PLACEHOLDER_AD_CODE,
            settings=dict(banner),
        ),
        AdSlotCreate(
            name="Tool Interface Top",
            position="tool-top",
            page="universal-tool",
            ad_provider="google-adsense",
            ad_code=PLACEHOLDER_AD_CODE,
            settings=dict(banner),
        ),
    ]


def seed_admin(storage: Storage) -> None:
    email = os.environ.get("TOOLSUITE_ADMIN_EMAIL", DEFAULT_ADMIN_EMAIL)
    password = os.environ.get("TOOLSUITE_ADMIN_PASSWORD")
    if storage.get_user_by_email(email) is not None:
        return
    if not password:
        logger.warning("TOOLSUITE_ADMIN_PASSWORD is not set; seeding the administrator with the default password")
        password = DEFAULT_ADMIN_PASSWORD
    try:
        storage.create_user(
            UserCreate(
                username=DEFAULT_ADMIN_USERNAME,
                email=email,
                password=password,
                role=UserRole.ADMIN,
            )
        )
    except DuplicateKeyError:
        logger.warning("Administrator username %r is taken; skipping admin seed", DEFAULT_ADMIN_USERNAME)


def seed_ad_slots(storage: Storage) -> None:
    if storage.list_ad_slots():
        return
    for slot in default_ad_slots():
        storage.create_ad_slot(slot)


def seed_defaults(storage: Storage) -> None:
    """Create the administrator and default ad slots unless they already exist."""
    seed_admin(storage)
    seed_ad_slots(storage)
