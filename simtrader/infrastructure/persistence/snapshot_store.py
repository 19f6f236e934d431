"""
SimTrader - JSON Snapshot Store
================================
Implementación de ISnapshotStore sobre un archivo JSON local.

ESCRITURA ATÓMICA:
  Se escribe a `<path>.tmp` y luego os.replace() → un lector nunca ve
  un archivo a medio escribir.

LECTURA:
  Archivo inexistente, JSON ilegible o schema_version desconocido →
  warning y None (arranque con defaults). Registros de métricas
  malformados se saltan uno a uno (ver parse_snapshot).
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional, Union

from simtrader.application.dto.snapshot_dto import EngineSnapshot, parse_snapshot
from simtrader.application.ports.snapshot_store import ISnapshotStore
from simtrader.domain.exceptions.domain_errors import SnapshotError
from simtrader.shared.logging.logger import get_logger

logger = get_logger("snapshot_store")


class JsonSnapshotStore(ISnapshotStore):

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[EngineSnapshot]:
        if not self._path.exists():
            return None

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("⚠️ Snapshot ilegible en %s: %s", self._path, exc)
            return None

        try:
            return parse_snapshot(raw)
        except SnapshotError as exc:
            logger.warning("⚠️ Snapshot descartado (%s): %s", self._path, exc.message)
            return None

    def save(self, snapshot: EngineSnapshot) -> None:
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(
                json.dumps(snapshot.to_json_dict(), indent=2),
                encoding="utf-8",
            )
            os.replace(tmp_path, self._path)
        except OSError as exc:
            raise SnapshotError(
                f"No se pudo escribir el snapshot: {exc}", path=str(self._path),
            ) from exc
