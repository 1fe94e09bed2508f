from typing import List, Optional, Any

from homecare.core.constants import RoleEnum
from homecare.schemas.base import CamelModel


class DashboardStat(CamelModel):
    name: str
    value: Any

class DashboardSection(CamelModel):
    title: str
    items: List[Any] = []
    empty_message: Optional[str] = None

class DashboardView(CamelModel):
    role: RoleEnum
    title: str
    subtitle: str
    stats: List[DashboardStat] = []
    sections: List[DashboardSection] = []
