from fastapi import Depends

from decentralhire.core.config import Settings, get_settings
from decentralhire.projection.gate import IngestionGate
from decentralhire.services.repository import get_repository


def get_gate(settings: Settings = Depends(get_settings), repository=Depends(get_repository)) -> IngestionGate:
    return IngestionGate.from_settings(repository, settings)
