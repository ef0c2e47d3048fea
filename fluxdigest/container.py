"""组装各服务实例"""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .config_loader import SchedulerSettings, data_dir, load_scheduler_settings
from .infrastructure.clients.miniflux import MinifluxClient, get_miniflux_client
from .infrastructure.notifiers.webhook import PushDispatcher
from .services import (
    DigestGenerator,
    DigestScheduler,
    DigestService,
    DigestStore,
    PreferenceStore,
    ScheduleRunner,
)


@dataclass
class Services:
    preferences: PreferenceStore
    store: DigestStore
    generator: DigestGenerator
    digest_service: DigestService
    runner: ScheduleRunner
    scheduler: DigestScheduler
    settings: SchedulerSettings

    @property
    def client_provider(self) -> Callable[[], Optional[MinifluxClient]]:
        return self.runner.client_provider


def build_services(
    data_root: Optional[Path] = None,
    settings: Optional[SchedulerSettings] = None,
    client_provider: Callable[[], Optional[MinifluxClient]] = get_miniflux_client,
    dispatcher: Optional[PushDispatcher] = None,
) -> Services:
    root = Path(data_root) if data_root is not None else data_dir()
    settings = settings or load_scheduler_settings()

    preferences = PreferenceStore(root / "preferences")
    store = DigestStore(root / "digests")
    generator = DigestGenerator(store)
    runner = ScheduleRunner(generator, dispatcher or PushDispatcher(), client_provider=client_provider)
    return Services(
        preferences=preferences,
        store=store,
        generator=generator,
        digest_service=DigestService(generator, preferences),
        runner=runner,
        scheduler=DigestScheduler(preferences, runner, settings=settings),
        settings=settings,
    )
