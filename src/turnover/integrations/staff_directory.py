"""Staff directory used for auto-assignment."""

from typing import Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from turnover.db.repositories import StaffRepository
from turnover.models import StaffMember, TaskType

# Skills that qualify a staff member for each task type
SKILLS_BY_TASK_TYPE: dict[TaskType, frozenset[str]] = {
    TaskType.CLEANING: frozenset({"cleaning", "housekeeping"}),
    TaskType.INSPECTION: frozenset({"inspection", "quality_control"}),
    TaskType.MAINTENANCE: frozenset({"maintenance", "repair"}),
    TaskType.PRE_ARRIVAL_PREP: frozenset({"cleaning", "housekeeping", "setup"}),
    TaskType.CHECKOUT: frozenset({"guest_relations", "housekeeping"}),
}


def required_skills(task_type: TaskType) -> frozenset[str]:
    return SKILLS_BY_TASK_TYPE.get(task_type, frozenset())


class StaffDirectory(Protocol):
    async def get(self, staff_id: str) -> Optional[StaffMember]: ...

    async def find_available(self, skills: frozenset[str]) -> Optional[StaffMember]: ...


class SqlStaffDirectory:
    """Reads the staff roster table; first available match by name wins."""

    def __init__(self, session: AsyncSession):
        self.staff = StaffRepository(session)

    async def get(self, staff_id: str) -> Optional[StaffMember]:
        return await self.staff.get(staff_id)

    async def find_available(self, skills: frozenset[str]) -> Optional[StaffMember]:
        if not skills:
            return None
        for member in await self.staff.list_available():
            if skills.intersection(member.skills):
                return member
        return None
