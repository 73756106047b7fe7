import logging
import httpx
from typing import List, Optional
from ..models import CertificateRecord, EnrollmentRecord
from .http import build_http_client, clean_id

logger = logging.getLogger(__name__)

class EnrollmentClient:
    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self.client = client or build_http_client()

    async def list_mine(self) -> List[EnrollmentRecord]:
        try:
            resp = await self.client.get("/enrollments/me")
            resp.raise_for_status()
            return [EnrollmentRecord.model_validate(r) for r in resp.json() or []]
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch enrollments: {e}")
            raise

    async def is_enrolled(self, email: str, course_id: str) -> bool:
        e = clean_id(email).lower()
        c = clean_id(course_id)
        return any(
            r.course_id == c and r.email.lower() == e
            for r in await self.list_mine()
        )

class CertificateClient:
    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self.client = client or build_http_client()

    async def list_mine(self) -> List[CertificateRecord]:
        try:
            resp = await self.client.get("/certificates/me")
            resp.raise_for_status()
            return [CertificateRecord.model_validate(r) for r in resp.json() or []]
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch certificates: {e}")
            raise

    async def get_by_id(self, cert_id: str) -> Optional[CertificateRecord]:
        cid = clean_id(cert_id)
        if not cid:
            return None
        resp = await self.client.get(f"/certificates/{cid}")
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return CertificateRecord.model_validate(resp.json())

    async def get_by_course(self, email: str, course_id: str) -> Optional[CertificateRecord]:
        e = clean_id(email).lower()
        c = clean_id(course_id)
        for record in await self.list_mine():
            if record.course_id == c and record.user_email.lower() == e:
                return record
        return None
