from typing import Optional

from homecare.schemas.base import CamelModel

class Patient(CamelModel):
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[str] = None

class PatientQueryParams(CamelModel):
    page: Optional[int] = None
    limit: Optional[int] = None
    status: Optional[str] = None
    search: Optional[str] = None
