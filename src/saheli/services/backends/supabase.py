"""
Supabase backend

PostgREST tables ``users``, ``emergency_contacts`` and ``user_locations``
plus the GoTrue ``/auth/v1/user`` endpoint, reached over aiohttp with the
project's anon key and the signed-in user's access token.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import aiohttp

from ...models.sos import EmergencyContact, Location, UserProfile
from ..sos.errors import RecordNotFound, RecordStoreError
from ..sos.interfaces import RecordStore, SessionProvider


class SupabaseClient:
    """Shared aiohttp session for the REST and auth endpoints"""

    def __init__(self, url: str, anon_key: str, access_token: Optional[str] = None,
                 timeout: float = 15.0):
        self.logger = logging.getLogger(__name__)
        self.url = (url or "").rstrip('/')
        self.anon_key = anon_key
        self.access_token = access_token
        self.timeout = timeout
        self.session: Optional[aiohttp.ClientSession] = None

    def headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            'apikey': self.anon_key or "",
            'Authorization': f"Bearer {self.access_token or self.anon_key or ''}",
            'Content-Type': 'application/json'
        }
        if extra:
            headers.update(extra)
        return headers

    async def start(self):
        """Initialize the HTTP session"""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={'User-Agent': 'Saheli/1.0'}
            )

    async def close(self):
        """Close the HTTP session"""
        if self.session:
            await self.session.close()
            self.session = None

    async def request(self, method: str, path: str, params: Optional[Dict[str, str]] = None,
                      json: Any = None, prefer: Optional[str] = None) -> Any:
        """
        Issue a request and decode the JSON body.

        Returns:
            Decoded payload, or None for an empty body

        Raises:
            RecordStoreError: transport failure, timeout, non-2xx status or
                a body that is not JSON.
                The status is kept on ``status`` for callers that care.
        """
        await self.start()
        extra = {'Prefer': prefer} if prefer else None

        try:
            async with self.session.request(
                method,
                f"{self.url}{path}",
                params=params,
                json=json,
                headers=self.headers(extra)
            ) as response:
                if 200 <= response.status < 300:
                    text = await response.text()
                    if not text:
                        return None
                    try:
                        return await response.json(content_type=None)
                    except (aiohttp.ContentTypeError, ValueError) as e:
                        raise RecordStoreError(
                            f"Supabase {method} {path} returned an unreadable body",
                            status=response.status
                        ) from e

                body = await response.text()
                raise RecordStoreError(
                    f"Supabase {method} {path} returned {response.status}: {body}",
                    status=response.status
                )
        except asyncio.TimeoutError as e:
            raise RecordStoreError(f"Supabase {method} {path} timed out") from e
        except aiohttp.ClientError as e:
            raise RecordStoreError(f"Supabase {method} {path} failed: {e}") from e


class SupabaseSession(SessionProvider):
    """Resolves the current user from a Supabase access token"""

    def __init__(self, client: SupabaseClient):
        self.logger = logging.getLogger(__name__)
        self.client = client

    async def get_current_user_id(self) -> Optional[str]:
        if not self.client.access_token:
            return None

        try:
            user = await self.client.request('GET', '/auth/v1/user')
        except RecordStoreError as e:
            if e.status in (401, 403):
                self.logger.warning("Supabase access token rejected")
                return None
            raise

        if user is not None and not isinstance(user, dict):
            raise RecordStoreError("Unexpected Supabase response for the current user")
        return (user or {}).get('id')


class SupabaseRecordStore(RecordStore):
    """Record store over Supabase PostgREST tables"""

    def __init__(self, client: SupabaseClient):
        self.logger = logging.getLogger(__name__)
        self.client = client

    async def get_user_profile(self, user_id: str) -> UserProfile:
        rows = await self.client.request('GET', '/rest/v1/users', params={
            'id': f"eq.{user_id}",
            'select': 'id,name,address,occupation'
        })
        rows = _rows(rows, 'users')
        if not rows:
            raise RecordNotFound(f"User profile {user_id} not found")

        row = rows[0]
        return UserProfile(
            id=str(row['id']),
            name=row.get('name') or '',
            address=row.get('address'),
            occupation=row.get('occupation')
        )

    async def list_emergency_contacts(self, user_id: str) -> List[EmergencyContact]:
        rows = await self.client.request('GET', '/rest/v1/emergency_contacts', params={
            'user_id': f"eq.{user_id}",
            'select': 'id,user_id,name,phone',
            'order': 'created_at.asc'
        })
        return [EmergencyContact.from_dict(row) for row in _rows(rows, 'emergency_contacts')]

    async def add_emergency_contact(self, user_id: str, name: str, phone: str) -> EmergencyContact:
        rows = await self.client.request(
            'POST',
            '/rest/v1/emergency_contacts',
            json={'user_id': user_id, 'name': name, 'phone': phone},
            prefer='return=representation'
        )
        if not rows:
            raise RecordStoreError("Supabase did not return the created contact")
        return EmergencyContact.from_dict(rows[0])

    async def delete_emergency_contact(self, contact_id: str) -> None:
        rows = await self.client.request(
            'DELETE',
            '/rest/v1/emergency_contacts',
            params={'id': f"eq.{contact_id}"},
            prefer='return=representation'
        )
        if not rows:
            raise RecordNotFound(f"Emergency contact {contact_id} not found")

    async def save_live_location(self, user_id: str, location: Location) -> None:
        await self.client.request(
            'POST',
            '/rest/v1/user_locations',
            params={'on_conflict': 'user_id'},
            json={
                'user_id': user_id,
                'latitude': location.latitude,
                'longitude': location.longitude,
                'accuracy': location.accuracy,
                'updated_at': datetime.utcnow().isoformat()
            },
            prefer='resolution=merge-duplicates'
        )

    async def close(self) -> None:
        await self.client.close()


def _rows(payload: Any, table: str) -> List[Dict[str, Any]]:
    """PostgREST row list; anything else means the response was not understood"""
    if payload is None:
        return []
    if not isinstance(payload, list) or not all(isinstance(row, dict) for row in payload):
        raise RecordStoreError(f"Unexpected Supabase response for {table}")
    return payload
