import logging
from typing import List, Optional

from homecare.clients.api import ApiClient
from homecare.clients.endpoints import HealthRecordEndpoints, clamp_limit
from homecare.core.constants import RecordTypeEnum
from homecare.core.exceptions import NotFoundError
from homecare.schemas.health_record import (
    HealthRecordUpdate,
    HealthRecordPayload,
    HealthRecordSearchParams,
    VerifyRecordData,
)
from homecare.schemas.response import Page

logger = logging.getLogger(__name__)


def serialize_record_type(record_type: RecordTypeEnum) -> str:
    return RecordTypeEnum(record_type).value.upper()


def _records(data) -> List[HealthRecordUpdate]:
    if not isinstance(data, list):
        return []
    return [HealthRecordUpdate.model_validate(r) for r in data]


class HealthRecordService:

    def __init__(self, api: ApiClient):
        self.api = api

    def _body(self, payload: HealthRecordPayload) -> dict:
        body = payload.to_wire(exclude={"record_id"})
        body["recordType"] = serialize_record_type(payload.record_type)
        # the sparse data mapping is forwarded exactly as built
        body["data"] = dict(payload.data)
        return body

    async def get_health_records(self, params: Optional[HealthRecordSearchParams] = None) -> Page[HealthRecordUpdate]:
        query = params.to_wire() if params else {}
        if "limit" in query:
            query["limit"] = clamp_limit(query["limit"])
        if "recordType" in query:
            query["recordType"] = serialize_record_type(query["recordType"])
        envelope = await self.api.get(HealthRecordEndpoints.BASE, params=query)
        return Page[HealthRecordUpdate](items=_records(envelope.data), pagination=envelope.pagination)

    async def get_health_record(self, record_id: str) -> HealthRecordUpdate:
        envelope = await self.api.get(HealthRecordEndpoints.by_id(record_id))
        if not envelope.data:
            raise NotFoundError("Health record not found.")
        return HealthRecordUpdate.model_validate(envelope.data)

    async def create_health_record(self, payload: HealthRecordPayload) -> HealthRecordUpdate:
        envelope = await self.api.post(HealthRecordEndpoints.BASE, json=self._body(payload))
        record = HealthRecordUpdate.model_validate(envelope.data)
        logger.info(f"Created {record.record_type.value} record {record.id} for patient {record.patient_id}")
        return record

    async def update_health_record(self, record_id: str, payload: HealthRecordPayload) -> HealthRecordUpdate:
        envelope = await self.api.put(HealthRecordEndpoints.by_id(record_id), json=self._body(payload))
        record = HealthRecordUpdate.model_validate(envelope.data)
        logger.info(f"Updated record {record.id}")
        return record

    async def save(self, payload: HealthRecordPayload) -> HealthRecordUpdate:
        if payload.record_id:
            return await self.update_health_record(payload.record_id, payload)
        return await self.create_health_record(payload)

    async def get_patient_health_records(self, patient_id: str) -> List[HealthRecordUpdate]:
        envelope = await self.api.get(HealthRecordEndpoints.by_patient(patient_id))
        return _records(envelope.data)

    async def get_vital_signs(self, patient_id: str) -> List[HealthRecordUpdate]:
        envelope = await self.api.get(HealthRecordEndpoints.vitals(patient_id))
        return _records(envelope.data)

    async def get_medications(self, patient_id: str) -> List[HealthRecordUpdate]:
        envelope = await self.api.get(HealthRecordEndpoints.medications(patient_id))
        return _records(envelope.data)

    async def get_symptoms(self, patient_id: str) -> List[HealthRecordUpdate]:
        envelope = await self.api.get(HealthRecordEndpoints.symptoms(patient_id))
        return _records(envelope.data)

    async def verify_record(self, record_id: str, data: VerifyRecordData) -> HealthRecordUpdate:
        envelope = await self.api.patch(HealthRecordEndpoints.verify(record_id), json=data.to_wire())
        return HealthRecordUpdate.model_validate(envelope.data)
