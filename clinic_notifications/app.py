from dataclasses import dataclass
from typing import Callable, Optional
import logging

from .database.configuration_db import ConfigurationDB
from .database.log_db import LogDB
from .database.schedule_db import ScheduleDB
from .database.template_db import TemplateDB
from .models.appointment import Appointment
from .scheduler import NotificationScheduler
from .services.export_service import ExportService
from .services.notification_service import NotificationService
from .services.provider_registry import ProviderRegistry
from .utils.config import config

logger = logging.getLogger(__name__)


@dataclass
class NotificationApp:
    service: NotificationService
    scheduler: NotificationScheduler
    exporter: ExportService
    registry: ProviderRegistry


def build_app(db_path: Optional[str] = None, registry: Optional[ProviderRegistry] = None,
              appointment_loader: Optional[Callable[[str], Optional[Appointment]]] = None,
              export_dir: Optional[str] = None) -> NotificationApp:
    """Wire stores, providers, service and scheduler for one process"""
    db_path = db_path or config.DB_PATH
    registry = registry or ProviderRegistry.from_env()

    schedule_db = ScheduleDB(db_path)
    log_db = LogDB(db_path)
    service = NotificationService(
        registry,
        configuration_db=ConfigurationDB(db_path),
        template_db=TemplateDB(db_path),
        schedule_db=schedule_db,
        log_db=log_db,
        appointment_loader=appointment_loader
    )
    scheduler = NotificationScheduler(service)
    exporter = ExportService(log_db=log_db, schedule_db=schedule_db, export_dir=export_dir)

    logger.info(f"Notification engine ready (database: {db_path})")
    return NotificationApp(service=service, scheduler=scheduler, exporter=exporter, registry=registry)
