"""
Service handles constructed once at startup and shared by request handlers.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging

import httpx
import stripe

from ..config import Config
from ..database import Database
from .assembly_service import AssemblyAIService
from .auth_service import AuthService
from .billing_service import BillingService
from .storage_service import StorageService

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    config: Config
    database: Database
    http_client: httpx.AsyncClient
    provider: AssemblyAIService
    storage: StorageService
    auth: AuthService
    billing: BillingService

    @classmethod
    def from_config(cls, config: Config) -> "AppServices":
        config.validate()
        database = Database(config.database_url, echo=config.sql_echo)
        http_client = httpx.AsyncClient(timeout=config.http_timeout_seconds)
        stripe_client = stripe.StripeClient(
            config.stripe_secret_key,
            http_client=stripe.HTTPXClient(),
        )
        return cls(
            config=config,
            database=database,
            http_client=http_client,
            provider=AssemblyAIService(
                http_client,
                api_key=config.assembly_ai_api_key,
                base_url=config.assembly_ai_base_url,
            ),
            storage=StorageService(
                http_client,
                supabase_url=config.supabase_url,
                service_key=config.supabase_service_key,
                bucket=config.storage_bucket,
                max_upload_size_bytes=config.max_upload_size_bytes,
            ),
            auth=AuthService(
                http_client,
                supabase_url=config.supabase_url,
                anon_key=config.supabase_anon_key,
            ),
            billing=BillingService(
                stripe_client,
                webhook_secret=config.stripe_webhook_secret,
                app_origin=config.app_origin,
            ),
        )

    async def startup(self) -> None:
        await self.database.init_models()
        logger.info("Application services started")

    async def shutdown(self) -> None:
        await self.http_client.aclose()
        await self.database.dispose()
        logger.info("Application services stopped")
