"""Select the persistence backend named in the configuration."""

import structlog

from adapters.storage.json_file import JsonFilePersistence
from adapters.storage.memory import InMemoryPersistence
from core.config import PersistenceConfig
from core.services.ports import PersistenceBackend

logger = structlog.get_logger(__name__)


def create_backend(config: PersistenceConfig) -> PersistenceBackend:
    if config.backend == "memory":
        logger.info("persistence_backend_selected", backend="memory")
        return InMemoryPersistence()
    logger.info("persistence_backend_selected", backend="json", path=config.data_file_path)
    return JsonFilePersistence(config.data_file_path)
