"""
Local SQLite record store

Offline backend for single-device deployments and tests. The signed-in user
is the one configured as ``backend.local_user_id``.
"""

import logging
import sqlite3
from datetime import datetime
from typing import List, Optional

from ...core.database import DatabaseError, DatabaseManager
from ...models.sos import EmergencyContact, Location, UserProfile
from ..sos.errors import RecordNotFound, RecordStoreError
from ..sos.interfaces import RecordStore, SessionProvider


class StaticSession(SessionProvider):
    """Session pinned to a configured user id"""

    def __init__(self, user_id: Optional[str]):
        self.user_id = user_id

    async def get_current_user_id(self) -> Optional[str]:
        return self.user_id or None


class SQLiteRecordStore(RecordStore):
    """Record store over the local migrated SQLite database"""

    def __init__(self, db: DatabaseManager):
        self.logger = logging.getLogger(__name__)
        self.db = db

    async def get_user_profile(self, user_id: str) -> UserProfile:
        try:
            rows = self.db.execute_query(
                "SELECT id, name, address, occupation FROM users WHERE id = ?",
                (user_id,)
            )
        except (sqlite3.Error, DatabaseError) as e:
            raise RecordStoreError(f"Failed to read user {user_id}: {e}") from e

        if not rows:
            raise RecordNotFound(f"User profile {user_id} not found")

        row = rows[0]
        return UserProfile(
            id=row['id'],
            name=row['name'],
            address=row['address'],
            occupation=row['occupation']
        )

    async def list_emergency_contacts(self, user_id: str) -> List[EmergencyContact]:
        try:
            rows = self.db.execute_query(
                "SELECT id, user_id, name, phone FROM emergency_contacts "
                "WHERE user_id = ? ORDER BY id",
                (user_id,)
            )
        except (sqlite3.Error, DatabaseError) as e:
            raise RecordStoreError(f"Failed to read contacts for {user_id}: {e}") from e

        return [EmergencyContact.from_dict(dict(row)) for row in rows]

    async def add_emergency_contact(self, user_id: str, name: str, phone: str) -> EmergencyContact:
        try:
            contact_id = self.db.execute_insert(
                "INSERT INTO emergency_contacts (user_id, name, phone) VALUES (?, ?, ?)",
                (user_id, name, phone)
            )
        except (sqlite3.Error, DatabaseError) as e:
            raise RecordStoreError(f"Failed to add contact: {e}") from e

        return EmergencyContact(name=name, phone=phone, id=str(contact_id), user_id=user_id)

    async def delete_emergency_contact(self, contact_id: str) -> None:
        try:
            deleted = self.db.execute_update(
                "DELETE FROM emergency_contacts WHERE id = ?",
                (int(contact_id),)
            )
        except (sqlite3.Error, DatabaseError, ValueError) as e:
            raise RecordStoreError(f"Failed to delete contact {contact_id}: {e}") from e

        if not deleted:
            raise RecordNotFound(f"Emergency contact {contact_id} not found")

    async def save_live_location(self, user_id: str, location: Location) -> None:
        try:
            self.db.execute_update(
                """
                INSERT INTO user_locations (user_id, latitude, longitude, accuracy, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    latitude = excluded.latitude,
                    longitude = excluded.longitude,
                    accuracy = excluded.accuracy,
                    updated_at = excluded.updated_at
                """,
                (user_id, location.latitude, location.longitude, location.accuracy,
                 datetime.utcnow().isoformat())
            )
        except (sqlite3.Error, DatabaseError) as e:
            raise RecordStoreError(f"Failed to save location for {user_id}: {e}") from e

    async def get_live_location(self, user_id: str) -> Optional[Location]:
        """Last shared position, if any"""
        try:
            rows = self.db.execute_query(
                "SELECT latitude, longitude, accuracy, updated_at FROM user_locations WHERE user_id = ?",
                (user_id,)
            )
        except (sqlite3.Error, DatabaseError) as e:
            raise RecordStoreError(f"Failed to read location for {user_id}: {e}") from e

        if not rows:
            return None
        row = rows[0]
        return Location(
            latitude=row['latitude'],
            longitude=row['longitude'],
            accuracy=row['accuracy'],
            timestamp=datetime.fromisoformat(row['updated_at'])
        )

    async def upsert_user_profile(self, profile: UserProfile) -> None:
        """Create or rename the local user"""
        try:
            self.db.execute_update(
                """
                INSERT INTO users (id, name, address, occupation, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    address = excluded.address,
                    occupation = excluded.occupation,
                    updated_at = excluded.updated_at
                """,
                (profile.id, profile.name, profile.address, profile.occupation,
                 datetime.utcnow().isoformat())
            )
        except (sqlite3.Error, DatabaseError) as e:
            raise RecordStoreError(f"Failed to save user {profile.id}: {e}") from e

    async def close(self) -> None:
        self.db.close()
