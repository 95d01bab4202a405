"""Convenience imports for metadata discovery."""

from hawki.models.ado import AdoIteration, AdoProject, AdoTeam, AdoTeamIteration, AdoUser, AdoWorkItem
from hawki.models.employee import (
    BambooHREmployee,
    BambooHRTimeOff,
    EmployeeAttendance,
    EmployeeMapping,
    InatechEmployee,
)
from hawki.models.sync_history import SyncHistory  # noqa: F401
