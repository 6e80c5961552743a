"""
Profile Updater - Keeps entity descriptors current.

Asks the active provider (via chat) for an entity's current party,
coalition, role, slogan and bio at most once a day. Changes to party,
coalition, role and slogan are logged as ProfileChange records; a
generated or missing portrait is replaced when a real one is found.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from pydantic import ValidationError

from core.clock import now_utc, parse_timestamp, to_iso8601
from core.models import Entity, ProfileChange
from providers import prompts
from providers.base import BaseProvider
from providers.schemas import ProfilePayload, parse_json


logger = logging.getLogger(__name__)


UPDATE_INTERVAL = timedelta(hours=24)
MIN_BIO_LENGTH = 20
TRACKED_FIELDS = ("party", "coalition", "role", "slogan")


def _needs_portrait(image: str) -> bool:
    return not image or "ui-avatars.com" in image


class ProfileUpdater:
    """
    Daily profile refresh.

    update() returns a dict of entity field changes suitable for
    PersistentStore.update_entity(), or None when skipped or failed.
    """

    def __init__(self, interval: timedelta = UPDATE_INTERVAL) -> None:
        self.interval = interval

    def is_due(self, entity: Entity, now: Optional[datetime] = None) -> bool:
        last = parse_timestamp(entity.last_profile_update)
        if last is None:
            return True
        return (now or now_utc()) - last >= self.interval

    async def update(
        self,
        entity: Entity,
        provider: BaseProvider,
        force: bool = False,
    ) -> Optional[dict[str, Any]]:
        now = now_utc()
        if not force and not self.is_due(entity, now):
            return None
        if not provider.is_configured:
            return None

        response = await provider.chat(prompts.profile_prompt(entity))
        if not response:
            return None
        data = parse_json(response)
        if not isinstance(data, dict):
            logger.warning(f"[profile_updater] Unparseable profile for {entity.name}")
            return None
        try:
            profile = ProfilePayload.model_validate(data)
        except ValidationError as e:
            logger.warning(f"[profile_updater] Invalid profile for {entity.name}: {e}")
            return None

        stamp = to_iso8601(now)
        updates: dict[str, Any] = {}
        changes: list[ProfileChange] = []

        for field_name in TRACKED_FIELDS:
            new_value = (getattr(profile, field_name) or "").strip()
            old_value = getattr(entity, field_name) or ""
            if new_value and new_value != old_value:
                updates[field_name] = new_value
                changes.append(
                    ProfileChange(
                        field=field_name,
                        old_value=old_value,
                        new_value=new_value,
                        detected_at=stamp,
                        source_url=profile.source_url,
                    )
                )

        bio = (profile.bio or "").strip()
        if len(bio) > MIN_BIO_LENGTH and bio != entity.bio:
            updates["bio"] = bio
        if profile.region and not entity.region:
            updates["region"] = profile.region.strip()
        if profile.endorsements and profile.endorsements != entity.endorsements:
            updates["endorsements"] = list(profile.endorsements)

        if _needs_portrait(entity.image):
            image = await provider.fetch_image(entity)
            if image and image != entity.image and not _needs_portrait(image):
                updates["image"] = image

        if changes:
            updates["profile_changes"] = [*entity.profile_changes, *changes]
            logger.info(
                f"[profile_updater] {entity.name}: "
                + ", ".join(f"{c.field} {c.old_value!r} -> {c.new_value!r}" for c in changes)
            )

        updates["last_profile_update"] = stamp
        return updates
