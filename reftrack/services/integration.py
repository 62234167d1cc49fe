"""
Tracking integration keys.

Each admin owns one IntegrationSettings row. The public key (pk_...) goes in the
embeddable snippet's data-api-key and authenticates /api/track/*; the secret
key (sk_...) is reserved for server-to-server use. Regenerating replaces both
and reactivates the integration.
"""
import logging
import secrets
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reftrack.errors import NotFoundError
from reftrack.models.integration import IntegrationSettings
from reftrack.schemas.admin import IntegrationUpdate

logger = logging.getLogger(__name__)

KEY_BYTES = 32


def new_key_pair() -> tuple[str, str]:
    return "pk_" + secrets.token_hex(KEY_BYTES), "sk_" + secrets.token_hex(KEY_BYTES)


async def get_integration(db: AsyncSession, user_id: uuid.UUID) -> Optional[IntegrationSettings]:
    result = await db.execute(
        select(IntegrationSettings).where(IntegrationSettings.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def generate_keys(db: AsyncSession, user_id: uuid.UUID) -> IntegrationSettings:
    public_key, api_key = new_key_pair()
    integration = await get_integration(db, user_id)

    if integration:
        integration.public_key = public_key
        integration.api_key = api_key
        integration.is_active = True
    else:
        integration = IntegrationSettings(
            user_id=user_id,
            public_key=public_key,
            api_key=api_key,
            provider="reftrack",
            is_active=True,
            config={},
        )
        db.add(integration)

    await db.flush()
    logger.info("Integration keys generated: %s...", public_key[:10])
    return integration


async def update_integration(
    db: AsyncSession,
    user_id: uuid.UUID,
    payload: IntegrationUpdate,
) -> IntegrationSettings:
    integration = await get_integration(db, user_id)
    if not integration:
        raise NotFoundError("No integration configured. Generate API keys to get started.")

    fields = payload.model_fields_set
    if "webhook_url" in fields:
        integration.webhook_url = payload.webhook_url
    if payload.is_active is not None:
        integration.is_active = payload.is_active
    if payload.config is not None:
        integration.config = payload.config

    await db.flush()
    return integration
