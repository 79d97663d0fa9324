"""
Schedule repository: maps employee schedule rows to ``WorkingWindow`` objects.

Rows in the store come in several shapes (nested schedule as an object, as a
one-element array, or missing and reachable only by id; column names in
lower, camel or snake case). All of that is resolved here so the rest of the
engine only sees typed windows.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

from ..domain.days import parse_day_labels
from ..domain.models import TimeOfDay, WorkingWindow
from .record_store import Record, RecordStore

logger = logging.getLogger(__name__)

EMPLOYEE_SCHEDULE_TABLE = "empleado_horario"
SCHEDULE_TABLE = "horario"


def first_present(row: Mapping[str, Any], *keys: str) -> Any:
    """Return the first value among ``keys`` that is present and not None."""
    for key in keys:
        value = row.get(key)
        if value is not None:
            return value
    return None


def unwrap_nested(value: Any) -> Optional[Mapping[str, Any]]:
    """A joined row may arrive as an object or as a one-element array."""
    if isinstance(value, list):
        value = value[0] if value else None
    return value if isinstance(value, Mapping) else None


class ScheduleRepository:
    """Reads working windows assigned to an employee."""

    def __init__(self, store: RecordStore):
        self._store = store

    def get_working_windows(self, employee_id: str) -> List[WorkingWindow]:
        """
        Fetch every working window configured for the employee.

        An empty list means the employee has no schedule assigned. Malformed
        rows are skipped and logged.

        Args:
            employee_id: Employee identifier

        Returns:
            List of WorkingWindow objects

        Raises:
            ValueError: If employee_id is empty
            RepositoryError: If the store cannot be queried
        """
        if not employee_id or not str(employee_id).strip():
            raise ValueError("employee_id must not be empty")

        assignments = self._store.select(
            EMPLOYEE_SCHEDULE_TABLE, {"idusuarioempleado": employee_id}
        )

        windows: List[WorkingWindow] = []
        skipped = 0

        for assignment in assignments:
            if assignment.get("activo") is False:
                continue

            schedule = self._resolve_schedule(assignment)
            if schedule is None:
                logger.warning(
                    "Skipping schedule assignment without schedule data for employee %s: %s",
                    employee_id, assignment,
                )
                skipped += 1
                continue

            window = self._to_window(str(employee_id), schedule)
            if window is None:
                skipped += 1
                continue
            windows.append(window)

        if skipped:
            logger.warning(
                "Skipped %d malformed schedule row(s) for employee %s", skipped, employee_id
            )
        return windows

    def _resolve_schedule(self, assignment: Record) -> Optional[Mapping[str, Any]]:
        nested = unwrap_nested(first_present(assignment, "horario", "Horario"))
        if nested is not None:
            return nested

        schedule_id = first_present(assignment, "idhorario", "idHorario", "id_horario")
        if schedule_id is None:
            return None

        rows = self._store.select(SCHEDULE_TABLE, {"idhorario": schedule_id})
        return rows[0] if rows else None

    @staticmethod
    def _to_window(employee_id: str, schedule: Mapping[str, Any]) -> Optional[WorkingWindow]:
        raw_start = first_present(schedule, "horainicio", "horaInicio", "hora_inicio")
        raw_end = first_present(schedule, "horafin", "horaFin", "hora_fin")
        raw_days = first_present(schedule, "diasemana", "diaSemana", "dia_semana")

        try:
            return WorkingWindow(
                employee_id=employee_id,
                start_time=TimeOfDay.parse(raw_start),
                end_time=TimeOfDay.parse(raw_end),
                applies_on=parse_day_labels(raw_days),
            )
        except (TypeError, ValueError) as e:
            logger.warning("Skipping malformed schedule for employee %s: %s", employee_id, e)
            return None
