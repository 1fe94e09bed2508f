from contextlib import asynccontextmanager

from homecare.core.cache import cache, CACHE_KEYS
from homecare.core.config import settings
from homecare.core.exceptions import InvalidStateError, NotFoundError
from homecare.services.exam import ExamService
from homecare.services.exam_attempt import ExamAttemptSession
from homecare.services.health_record_form import HealthRecordForm


async def save_attempt_session(user_id: str, session: ExamAttemptSession):
    key = CACHE_KEYS["attempt_session"].format(user_id, session.session_id)
    await cache.set(key, session.to_cache(), ttl=settings.SESSION_TTL)


async def load_attempt_session(user_id: str, session_id: str, exam_service: ExamService) -> ExamAttemptSession:
    cached = await cache.get(CACHE_KEYS["attempt_session"].format(user_id, session_id))
    if not cached:
        raise NotFoundError("Exam session not found or expired.")
    return ExamAttemptSession.from_cache(cached, exam_service)


async def save_record_form(user_id: str, form: HealthRecordForm):
    key = CACHE_KEYS["record_form"].format(user_id, form.form_id)
    await cache.set(key, form.to_cache(), ttl=settings.SESSION_TTL)


async def load_record_form(user_id: str, form_id: str) -> HealthRecordForm:
    cached = await cache.get(CACHE_KEYS["record_form"].format(user_id, form_id))
    if not cached:
        raise NotFoundError("Health record form not found or expired.")
    return HealthRecordForm.from_cache(cached)


async def discard_record_form(user_id: str, form_id: str) -> bool:
    return await cache.delete(CACHE_KEYS["record_form"].format(user_id, form_id))


@asynccontextmanager
async def submit_lock(user_id: str, resource_id: str):
    """Hold a short-lived cache lock so only one request submits a session at a time.

    Session objects are rebuilt from the cache on every request, so an in-memory
    flag cannot see a submit running in another request.
    """
    key = CACHE_KEYS["submit_lock"].format(user_id, resource_id)
    if not await cache.add(key, True, ttl=settings.SUBMIT_LOCK_TTL):
        raise InvalidStateError("A submission is already in progress.")
    try:
        yield
    finally:
        await cache.delete(key)
