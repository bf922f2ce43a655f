"""Buddy entry point: wires everything together and runs the bot."""

from __future__ import annotations

import asyncio
import signal
import sys

import click

from buddy.capabilities import registry as slots
from buddy.capabilities.group_admin import GroupAdminCapability
from buddy.capabilities.registry import CapabilityRegistry
from buddy.capabilities.reminders import ReminderCapability
from buddy.capabilities.voice import Transcriber, VoiceNoteCapability
from buddy.config import Settings, load_settings
from buddy.core.admission import AdmissionGate
from buddy.core.conversation import ConversationHandler, SpeechSynthesizer
from buddy.core.dispatcher import ResponseDispatcher
from buddy.core.engine import Engine
from buddy.core.llm import create_provider
from buddy.core.rate_limit import RateLimiter, SpamTracker
from buddy.core.router import Router
from buddy.core.tool_executor import ToolExecutor
from buddy.core.tool_registry import ToolRegistry
from buddy.core.whitelist import Whitelist
from buddy.group.etiquette import Etiquette
from buddy.group.moderation import Moderator
from buddy.group.settings import GroupSettingsStore
from buddy.memory.history import ConversationHistory
from buddy.reminders.scheduler import ReminderScheduler
from buddy.reminders.store import ReminderStore
from buddy.transports.evolution import EvolutionTransport
from buddy.transports.webhook import WebhookServer
from buddy.utils.logging import get_logger, setup_logging

log = get_logger(__name__)


class Buddy:
    """Main application orchestrator."""

    def __init__(
        self,
        settings: Settings,
        dry_run: bool = False,
        transcriber: Transcriber | None = None,
        synthesizer: SpeechSynthesizer | None = None,
    ) -> None:
        """Speech collaborators are optional; without a transcriber voice notes
        fall through the audio waterfall unanswered.
        """
        self.settings = settings
        features = settings.features
        data_dir = settings.get_data_dir()

        self.transport = EvolutionTransport(settings.evolution)
        self.llm = create_provider(settings.llm)

        # Stores
        self.history = ConversationHistory(
            db_path=data_dir / "history.db",
            max_messages=settings.tool_loop.history_limit,
            max_context_tokens=settings.llm.max_context_tokens,
            count_tokens=self.llm.count_tokens,
        )
        self.group_settings = GroupSettingsStore(
            data_dir / "groups.db",
            default_response_rate=settings.group.default_response_rate,
        )
        self.reminders = ReminderStore(data_dir / "reminders.db")
        self.reminder_scheduler = ReminderScheduler(self.reminders, self.transport)

        # Capabilities
        self.capabilities = CapabilityRegistry(features)
        self.capabilities.register_many(ReminderCapability(self.reminders).handlers())
        self.capabilities.register(slots.GROUP_ADMIN, GroupAdminCapability(self.group_settings))

        tool_executor = ToolExecutor(
            self.llm,
            ToolRegistry(self.capabilities),
            max_iterations=settings.tool_loop.max_iterations,
        )
        conversation = ConversationHandler(
            self.llm,
            features,
            self.capabilities,
            tool_executor=tool_executor,
            history=self.history,
            synthesizer=synthesizer,
            bot_name=settings.bot_name,
            max_tokens=settings.llm.max_tokens,
        )
        self.capabilities.register(slots.CONVERSATION, conversation)
        if transcriber is not None:
            self.capabilities.register(slots.VOICE, VoiceNoteCapability(transcriber, conversation))

        # Pipeline
        self.rate_limiter = RateLimiter(settings.rate_limit)
        self._sweeper: asyncio.Task[None] | None = None
        bot_jid = settings.evolution.bot_jid
        self.engine = Engine(
            transport=self.transport,
            bot_jid=bot_jid,
            features=features,
            admission=AdmissionGate(bot_jid, Whitelist(settings.whitelist), self.rate_limiter),
            etiquette=Etiquette(settings.group),
            router=Router(self.capabilities),
            dispatcher=ResponseDispatcher(
                self.transport,
                settings.chunker,
                chunking=features.message_chunking,
            ),
            group_settings=self.group_settings,
            moderator=Moderator(
                self.transport,
                self.group_settings,
                SpamTracker(settings.moderation),
                max_warnings=settings.moderation.max_warnings,
            ),
            dry_run=dry_run,
        )
        self.webhook = WebhookServer(
            settings.webhook,
            on_messages=self.engine.handle_batch,
            on_participants=self.engine.handle_participants_update,
        )

    async def start(self) -> None:
        log.info("buddy_starting", version="0.1.0", provider=self.settings.llm.provider,
                 instance=self.settings.evolution.instance)

        await self.history.start()
        await self.group_settings.start()
        await self.reminders.start()
        await self.transport.start()

        if self.settings.features.reminder_system:
            await self.reminder_scheduler.start()

        self._sweeper = asyncio.create_task(self._sweep_counters(), name="counter-sweep")

        if self.settings.webhook.enabled:
            await self.webhook.start()

        log.info("buddy_ready")

    async def stop(self) -> None:
        log.info("buddy_stopping")
        if self._sweeper is not None:
            self._sweeper.cancel()
            await asyncio.gather(self._sweeper, return_exceptions=True)
            self._sweeper = None
        if self.settings.webhook.enabled:
            await self.webhook.stop()
        if self.settings.features.reminder_system:
            await self.reminder_scheduler.stop()
        await self.transport.stop()
        await self.reminders.stop()
        await self.group_settings.stop()
        await self.history.stop()
        await self.llm.close()
        log.info("buddy_stopped")

    async def _sweep_counters(self) -> None:
        while True:
            await asyncio.sleep(self.settings.rate_limit.window_seconds)
            dropped = self.rate_limiter.cleanup()
            if dropped:
                log.debug("rate_limit_entries_dropped", count=dropped)


async def run(settings: Settings, dry_run: bool = False) -> None:
    app = Buddy(settings, dry_run=dry_run)

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        log.info("shutdown_signal")
        stop_event.set()

    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _signal_handler)

    await app.start()

    try:
        if sys.platform == "win32":
            while not stop_event.is_set():
                await asyncio.sleep(1)
        else:
            await stop_event.wait()
    except KeyboardInterrupt:
        pass
    finally:
        await app.stop()


@click.command()
@click.option("--config", "config_path", default=None, help="Path to config YAML file")
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
@click.option("--dry-run", is_flag=True, help="Don't call capabilities, echo messages instead")
def cli(config_path: str | None, log_level: str | None, dry_run: bool) -> None:
    """Start Buddy, the WhatsApp assistant."""
    settings = load_settings(config_path)
    if log_level:
        settings.log_level = log_level
    setup_logging(level=settings.log_level, json_output=settings.log_json)
    asyncio.run(run(settings, dry_run=dry_run))


if __name__ == "__main__":
    cli()
