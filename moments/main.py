"""Moments — Main entry point."""

import asyncio
import logging
import os

from .config import MomentsSettings, load_settings
from .channels.telegram import TelegramChannel
from .images import ImagePipeline
from .llm.gateway import MomentsGateway
from .llm.openai import OpenAIProvider
from .orchestrator import Orchestrator
from .session import PrincipalSession
from .store.github import GitHubStore

_log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("moments")


def setup_logging(log_file: str | None = "~/moments.log", level: int = logging.INFO):
    """Console logging, plus a file handler when log_file is set."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(os.path.expanduser(log_file), encoding="utf-8"))
    logging.basicConfig(level=level, format=_log_format, handlers=handlers)
    # httpx logs every request at INFO, including the bot token in Telegram URLs
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_orchestrator(settings: MomentsSettings, channel: TelegramChannel) -> Orchestrator:
    """Wire the leaves and the orchestrator from settings."""
    store = GitHubStore(
        token=settings.github_token,
        owner=settings.github_owner,
        repo=settings.github_repo,
        branch=settings.github_branch,
        moments_path=settings.moments_path,
        images_path=settings.moments_images_path,
        timezone=settings.timezone,
        api_url=settings.github_api_url,
    )
    provider = OpenAIProvider(
        api_key=settings.openrouter_api_key,
        chat_model=settings.ai_model,
        base_url=settings.llm_base_url,
    )
    images = ImagePipeline(
        store=store,
        downloader=channel.download_attachment,
        url_prefix=settings.moments_images_url_prefix,
        timezone=settings.timezone,
    )
    return Orchestrator(
        gateway=MomentsGateway(provider),
        store=store,
        images=images,
        authorized_user_id=settings.authorized_user_id,
        session=PrincipalSession(ttl_seconds=settings.clarification_ttl_seconds),
        recent_days=settings.recent_days,
        serialize=settings.serialize_events,
    )


async def run(settings: MomentsSettings | None = None):
    """Main run loop."""
    settings = settings or load_settings()
    channel = TelegramChannel(settings.telegram_bot_token)
    channel.bind(build_orchestrator(settings, channel))

    try:
        await channel.start()
        logger.info(
            f"Moments is running for {settings.github_owner}/{settings.github_repo} "
            f"(timezone {settings.timezone}). Press Ctrl+C to stop."
        )
        await asyncio.Event().wait()
    except (KeyboardInterrupt, asyncio.CancelledError):
        pass
    finally:
        await channel.stop()


def main():
    """Entry point."""
    settings = load_settings()
    setup_logging(settings.log_file)
    asyncio.run(run(settings))


if __name__ == "__main__":
    main()
