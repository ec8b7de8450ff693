"""
Firebase backend

Firestore collections ``users/{uid}``, ``emergency_contacts`` (keyed back
to the user by ``user_id``) and ``user_locations/{uid}``, with sessions
established from a Firebase ID token. The Admin SDK is blocking, so every
call runs in a worker thread.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import firebase_admin
from firebase_admin import auth, credentials, firestore
from firebase_admin.exceptions import FirebaseError
from google.api_core.exceptions import GoogleAPIError
from google.cloud.firestore_v1.base_query import FieldFilter

from ...models.sos import EmergencyContact, Location, UserProfile
from ..sos.errors import RecordNotFound, RecordStoreError
from ..sos.interfaces import RecordStore, SessionProvider


USERS = 'users'
EMERGENCY_CONTACTS = 'emergency_contacts'
USER_LOCATIONS = 'user_locations'

STORE_ERRORS = (GoogleAPIError, FirebaseError)


def initialize_firebase_app(credentials_file: Optional[str] = None,
                            project_id: Optional[str] = None) -> firebase_admin.App:
    """Initialize (or reuse) the default Firebase app"""
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    cred = credentials.Certificate(credentials_file) if credentials_file else None
    options = {'projectId': project_id} if project_id else None
    return firebase_admin.initialize_app(cred, options)


class FirebaseSession(SessionProvider):
    """Resolves the current user from a Firebase ID token"""

    def __init__(self, id_token: Optional[str], app: Optional[firebase_admin.App] = None):
        self.logger = logging.getLogger(__name__)
        self.id_token = id_token
        self.app = app

    async def get_current_user_id(self) -> Optional[str]:
        if not self.id_token:
            return None

        try:
            decoded = await asyncio.to_thread(auth.verify_id_token, self.id_token, self.app)
        except (auth.InvalidIdTokenError, auth.RevokedIdTokenError, ValueError) as e:
            self.logger.warning(f"Firebase ID token rejected: {e}")
            return None
        except FirebaseError as e:
            raise RecordStoreError(f"Firebase auth unavailable: {e}") from e

        return decoded.get('uid')


class FirestoreRecordStore(RecordStore):
    """Record store over Cloud Firestore"""

    def __init__(self, client: Any):
        self.logger = logging.getLogger(__name__)
        self.client = client

    @classmethod
    def from_app(cls, app: firebase_admin.App) -> 'FirestoreRecordStore':
        return cls(firestore.client(app))

    async def get_user_profile(self, user_id: str) -> UserProfile:
        try:
            snapshot = await asyncio.to_thread(
                self.client.collection(USERS).document(user_id).get
            )
        except STORE_ERRORS as e:
            raise RecordStoreError(f"Failed to read user {user_id}: {e}") from e

        if not snapshot.exists:
            raise RecordNotFound(f"User profile {user_id} not found")

        data = snapshot.to_dict() or {}
        return UserProfile(
            id=user_id,
            name=data.get('name', ''),
            address=data.get('address'),
            occupation=data.get('occupation')
        )

    async def list_emergency_contacts(self, user_id: str) -> List[EmergencyContact]:
        query = self.client.collection(EMERGENCY_CONTACTS).where(
            filter=FieldFilter('user_id', '==', user_id)
        )
        try:
            documents = await asyncio.to_thread(lambda: list(query.stream()))
        except STORE_ERRORS as e:
            raise RecordStoreError(f"Failed to read contacts for {user_id}: {e}") from e

        records = []
        for doc in documents:
            data = doc.to_dict() or {}
            data['id'] = doc.id
            records.append(data)

        # Firestore streams in document-id order; present contacts in the order they were added
        records.sort(key=_created_at_key)
        return [EmergencyContact.from_dict(record) for record in records]

    async def add_emergency_contact(self, user_id: str, name: str, phone: str) -> EmergencyContact:
        try:
            _, ref = await asyncio.to_thread(
                self.client.collection(EMERGENCY_CONTACTS).add,
                {
                    'user_id': user_id,
                    'name': name,
                    'phone': phone,
                    'created_at': firestore.SERVER_TIMESTAMP
                }
            )
        except STORE_ERRORS as e:
            raise RecordStoreError(f"Failed to add contact: {e}") from e

        return EmergencyContact(name=name, phone=phone, id=ref.id, user_id=user_id)

    async def delete_emergency_contact(self, contact_id: str) -> None:
        try:
            await asyncio.to_thread(
                self.client.collection(EMERGENCY_CONTACTS).document(contact_id).delete
            )
        except STORE_ERRORS as e:
            raise RecordStoreError(f"Failed to delete contact {contact_id}: {e}") from e

    async def save_live_location(self, user_id: str, location: Location) -> None:
        document = self.client.collection(USER_LOCATIONS).document(user_id)
        payload: Dict[str, Any] = {
            'latitude': location.latitude,
            'longitude': location.longitude,
            'accuracy': location.accuracy,
            'updated_at': firestore.SERVER_TIMESTAMP
        }
        try:
            await asyncio.to_thread(document.set, payload, merge=True)
        except STORE_ERRORS as e:
            raise RecordStoreError(f"Failed to save location for {user_id}: {e}") from e


def _created_at_key(record: Dict[str, Any]):
    created_at = record.get('created_at')
    if isinstance(created_at, datetime):
        return (0, created_at.timestamp())
    return (1, 0.0)
