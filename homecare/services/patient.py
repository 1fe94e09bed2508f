from typing import Optional

from homecare.clients.api import ApiClient
from homecare.clients.endpoints import PatientEndpoints, clamp_limit
from homecare.core.exceptions import NotFoundError
from homecare.schemas.patient import Patient, PatientQueryParams
from homecare.schemas.response import Page


class PatientService:

    def __init__(self, api: ApiClient):
        self.api = api

    async def get_patients(self, params: Optional[PatientQueryParams] = None) -> Page[Patient]:
        query = params.to_wire() if params else {}
        if "limit" in query:
            query["limit"] = clamp_limit(query["limit"])
        envelope = await self.api.get(PatientEndpoints.BASE, params=query)
        patients = envelope.data if isinstance(envelope.data, list) else []
        return Page[Patient](items=[Patient.model_validate(p) for p in patients], pagination=envelope.pagination)

    async def get_patient(self, patient_id: str) -> Patient:
        envelope = await self.api.get(PatientEndpoints.by_id(patient_id))
        if not envelope.data:
            raise NotFoundError("Patient not found.")
        return Patient.model_validate(envelope.data)
