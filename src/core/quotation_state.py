"""
Offertens arbetsminne: kund, projekttyp, modulkatalog och urval.

All mutation går via namngivna övergångar på QuotationState så att
invarianterna hålls på ett ställe:

  - id är unika inom katalogen
  - next_id växer monotont och återanvänds aldrig (inte ens efter delete)
  - urvalet refererar bara till moduler som finns i katalogen
  - totalen räknas alltid fram ur katalog + urval, den lagras aldrig

Efter varje lyckad övergång anropas registrerade lyssnare med
lagringsformatet (se to_storage), t.ex. RecoveryStore.schedule.
Lyssnarna körs med låset hållet och ska därför vara snabba.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from pydantic import ValidationError

from src.core.catalog import default_catalog, next_id_for, normalize_modules
from src.core.errors import SnapshotImportError
from src.core.models import Module, ModuleData, QuotationSnapshot

log = logging.getLogger("webnova.state")

SNAPSHOT_VERSION = "3.0"

Listener = Callable[[Dict[str, Any]], None]
ModuleInput = Union[ModuleData, Dict[str, Any]]


def _as_module_data(data: ModuleInput) -> ModuleData:
    if isinstance(data, ModuleData):
        return ModuleData.model_validate(data.model_dump(exclude={"id"}))
    payload = {k: v for k, v in dict(data).items() if k != "id"}
    return ModuleData.model_validate(payload)


class QuotationState:
    def __init__(
        self,
        modules: Optional[List[Module]] = None,
        selected: Optional[List[int]] = None,
        *,
        client_name: str = "",
        project_type: str = "",
        next_id: Optional[int] = None,
    ) -> None:
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []

        self._modules: List[Module] = list(modules) if modules is not None else default_catalog()
        ids = {m.id for m in self._modules}
        self._selected: List[int] = []
        for mid in selected or []:
            if mid in ids and mid not in self._selected:
                self._selected.append(mid)

        self._client_name = client_name or ""
        self._project_type = project_type or ""
        self._next_id = next_id_for(self._modules, floor=next_id or 1)

    # -------------------------------------------------------------
    #  Läsning
    # -------------------------------------------------------------
    @property
    def client_name(self) -> str:
        return self._client_name

    @property
    def project_type(self) -> str:
        return self._project_type

    @property
    def next_id(self) -> int:
        return self._next_id

    def modules(self) -> List[Module]:
        with self._lock:
            return [m.model_copy() for m in self._modules]

    def get_module(self, module_id: int) -> Optional[Module]:
        with self._lock:
            for m in self._modules:
                if m.id == module_id:
                    return m.model_copy()
        return None

    def selected_ids(self) -> List[int]:
        with self._lock:
            return list(self._selected)

    def selected_modules(self) -> List[Module]:
        """Valda moduler i katalogens ordning."""
        with self._lock:
            chosen = set(self._selected)
            return [m.model_copy() for m in self._modules if m.id in chosen]

    def total_amount(self) -> int:
        return sum(m.price for m in self.selected_modules())

    @contextmanager
    def locked(self) -> Iterator["QuotationState"]:
        """
        Håller låset över flera anrop, t.ex. när en sparad offert ska
        stämmas av mot katalogen och sedan ersätta tillståndet.
        """
        with self._lock:
            yield self

    # -------------------------------------------------------------
    #  Lyssnare
    # -------------------------------------------------------------
    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _changed(self) -> None:
        # under låset: lyssnarna ser ändringarna i samma ordning som de gjordes
        with self._lock:
            payload = self.to_storage()
            for listener in list(self._listeners):
                try:
                    listener(payload)
                except Exception:  # noqa: BLE001
                    log.exception("Lyssnare kraschade efter tillståndsändring")

    # -------------------------------------------------------------
    #  Övergångar
    # -------------------------------------------------------------
    def set_client(
        self,
        client_name: Optional[str] = None,
        project_type: Optional[str] = None,
    ) -> None:
        with self._lock:
            if client_name is not None:
                self._client_name = client_name
            if project_type is not None:
                self._project_type = project_type
        self._changed()

    def toggle_select(self, module_id: int) -> bool:
        """
        Växlar om modulen är vald. Returnerar det nya läget.

        Ett id som inte finns i katalogen ignoreras (gamla referenser efter
        en import ska inte krascha något).
        """
        with self._lock:
            if not any(m.id == module_id for m in self._modules):
                return False
            if module_id in self._selected:
                self._selected.remove(module_id)
                now_selected = False
            else:
                self._selected.append(module_id)
                now_selected = True
        self._changed()
        return now_selected

    def clear_selection(self) -> None:
        with self._lock:
            self._selected = []
        self._changed()

    def add_module(self, data: ModuleInput) -> Module:
        fields = _as_module_data(data)
        with self._lock:
            module = Module(id=self._next_id, **fields.model_dump())
            self._modules.append(module)
            self._next_id += 1
        self._changed()
        return module.model_copy()

    def edit_module(self, module_id: int, data: ModuleInput) -> Module:
        """Ersätter modulens fält men behåller id och urval."""
        fields = _as_module_data(data)
        with self._lock:
            for idx, m in enumerate(self._modules):
                if m.id == module_id:
                    updated = Module(id=module_id, **fields.model_dump())
                    self._modules[idx] = updated
                    break
            else:
                raise KeyError(module_id)
        self._changed()
        return updated.model_copy()

    def delete_module(self, module_id: int) -> Module:
        """Tar bort modulen ur katalogen OCH ur urvalet i samma övergång."""
        with self._lock:
            for idx, m in enumerate(self._modules):
                if m.id == module_id:
                    removed = self._modules.pop(idx)
                    break
            else:
                raise KeyError(module_id)
            if module_id in self._selected:
                self._selected.remove(module_id)
        self._changed()
        return removed

    def replace(
        self,
        *,
        client_name: str,
        project_type: str,
        modules: List[Module],
        selected: List[int],
        next_id: Optional[int] = None,
    ) -> None:
        """
        Byter ut hela tillståndet i en övergång. Anroparen ansvarar för att
        modules/selected redan är validerade.
        """
        with self._lock:
            ids = {m.id for m in modules}
            clean_selected: List[int] = []
            for mid in selected:
                if mid in ids and mid not in clean_selected:
                    clean_selected.append(mid)
            self._client_name = client_name or ""
            self._project_type = project_type or ""
            self._modules = list(modules)
            self._selected = clean_selected
            self._next_id = next_id_for(self._modules, floor=next_id or 1)
        self._changed()

    # -------------------------------------------------------------
    #  Import / export
    # -------------------------------------------------------------
    def import_snapshot(self, data: Any) -> None:
        """
        Ersätter kund, projekttyp, katalog och urval från en exportfil.

        Hela filen valideras innan något ändras. Saknas en modules-lista
        (eller är någon modul trasig) kastas SnapshotImportError och
        tillståndet lämnas orört.
        """
        if not isinstance(data, dict) or not isinstance(data.get("modules"), list):
            raise SnapshotImportError("El archivo no tiene el formato correcto.")

        try:
            snapshot = QuotationSnapshot.model_validate(data)
        except ValidationError as e:
            raise SnapshotImportError("El archivo no tiene el formato correcto.") from e

        ids = [m.id for m in snapshot.modules]
        if len(ids) != len(set(ids)):
            raise SnapshotImportError("El archivo contiene módulos con id duplicado.")

        # next_id härleds alltid ur filens moduler, inte ur tidigare värde
        with self._lock:
            self._client_name = snapshot.client or ""
            self._project_type = snapshot.project_type or ""
            self._modules = list(snapshot.modules)
            self._selected = []
            for mid in snapshot.selected:
                if mid in ids and mid not in self._selected:
                    self._selected.append(mid)
            self._next_id = next_id_for(self._modules)
        self._changed()

    def export_snapshot(self, timestamp: Optional[datetime] = None) -> Dict[str, Any]:
        ts = timestamp or datetime.now(timezone.utc)
        with self._lock:
            snapshot = QuotationSnapshot(
                client=self._client_name,
                project_type=self._project_type,
                modules=[m.model_copy() for m in self._modules],
                selected=list(self._selected),
                timestamp=ts.isoformat(),
                version=SNAPSHOT_VERSION,
                total_amount=self.total_amount(),
            )
        return snapshot.to_json()

    # -------------------------------------------------------------
    #  Lokal lagring (återställning efter omstart)
    # -------------------------------------------------------------
    def to_storage(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "clientName": self._client_name,
                "projectType": self._project_type,
                "modules": [m.to_json() for m in self._modules],
                "selectedModuleIds": list(self._selected),
                "nextId": self._next_id,
            }

    @classmethod
    def from_storage(cls, data: Any, *, catalog_path: Optional[str] = None) -> "QuotationState":
        """
        Bygger upp tillståndet från lagringsformatet.

        Saknad eller trasig data ger standardkatalogen med tomt urval.
        next_id räknas om defensivt: max(sparat värde, max(id) + 1).
        """
        if not isinstance(data, dict):
            return cls(default_catalog(catalog_path))

        raw_modules = data.get("modules")
        modules = normalize_modules(raw_modules) if isinstance(raw_modules, list) else []
        # ingen giltig modul i en icke-tom lista räknas som trasig data
        broken = not isinstance(raw_modules, list) or bool(raw_modules and not modules)
        if broken:
            modules = default_catalog(catalog_path)

        selected = data.get("selectedModuleIds")
        if broken or not isinstance(selected, list):
            selected = []
        selected = [s for s in selected if isinstance(s, int) and not isinstance(s, bool)]

        stored_next = data.get("nextId")
        if not isinstance(stored_next, int) or isinstance(stored_next, bool):
            stored_next = None

        client_name = data.get("clientName")
        project_type = data.get("projectType")

        return cls(
            modules,
            selected,
            client_name=client_name if isinstance(client_name, str) else "",
            project_type=project_type if isinstance(project_type, str) else "",
            next_id=stored_next,
        )
