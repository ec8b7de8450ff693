"""
Emergency Contact Directory

Reads the authenticated user's profile and emergency contacts from the
record store, and manages additions and removals within the contact limit.
"""

import logging
from typing import List, Optional

from ...models.sos import ContactList, EmergencyContact
from .errors import (
    ContactLimitReached,
    ContactValidationError,
    LastContactRemoval,
    NoContacts,
    NotAuthenticated,
    RecordNotFound,
    RecordStoreError,
    StoreUnavailable
)
from .interfaces import RecordStore, SessionProvider


DEFAULT_MAX_CONTACTS = 5


class ContactDirectory:
    """Backend-agnostic access to a user's emergency contacts"""

    def __init__(self, session: SessionProvider, store: RecordStore,
                 max_contacts: int = DEFAULT_MAX_CONTACTS):
        self.logger = logging.getLogger(__name__)
        self.session = session
        self.store = store
        self.max_contacts = max_contacts

    async def current_user_id(self) -> str:
        """
        Resolve the signed-in user.

        Raises:
            NotAuthenticated: no current session
            StoreUnavailable: the session backend could not be reached
        """
        try:
            user_id = await self.session.get_current_user_id()
        except RecordStoreError as e:
            self.logger.error(f"Session lookup failed: {e}")
            raise StoreUnavailable(str(e)) from e
        if not user_id:
            raise NotAuthenticated()
        return user_id

    async def load_contacts(self, user_id: Optional[str]) -> ContactList:
        """
        Load the user's name and non-empty contact list.

        Raises:
            NotAuthenticated: user_id is missing
            NoContacts: the user has no emergency contacts
            StoreUnavailable: the record store could not be read
        """
        if not user_id:
            raise NotAuthenticated()

        try:
            profile = await self.store.get_user_profile(user_id)
            contacts = await self.store.list_emergency_contacts(user_id)
        except RecordNotFound as e:
            self.logger.error(f"User profile not found for {user_id}")
            raise StoreUnavailable(f"User profile not found: {e}") from e
        except RecordStoreError as e:
            self.logger.error(f"Get user data error: {e}")
            raise StoreUnavailable(str(e)) from e

        if not contacts:
            self.logger.warning(f"User {user_id} has no emergency contacts")
            raise NoContacts()

        return ContactList(user_id=user_id, name=profile.name, contacts=list(contacts))

    async def list_contacts(self, user_id: str) -> List[EmergencyContact]:
        """All contacts, possibly empty"""
        try:
            return await self.store.list_emergency_contacts(user_id)
        except RecordStoreError as e:
            raise StoreUnavailable(str(e)) from e

    async def add_contact(self, user_id: str, name: str, phone: str) -> EmergencyContact:
        """
        Add a contact after trimming and validating it.

        Raises:
            ContactValidationError: blank name or phone
            ContactLimitReached: the user already has max_contacts contacts
        """
        name = (name or "").strip()
        phone = (phone or "").strip()
        if not name or not phone:
            raise ContactValidationError()

        existing = await self.list_contacts(user_id)
        if len(existing) >= self.max_contacts:
            raise ContactLimitReached(f"You can add up to {self.max_contacts} emergency contacts.")

        try:
            contact = await self.store.add_emergency_contact(user_id, name, phone)
        except RecordStoreError as e:
            self.logger.error(f"Add emergency contact error: {e}")
            raise StoreUnavailable(str(e)) from e

        self.logger.info(f"Emergency contact added for {user_id}")
        return contact

    async def remove_contact(self, user_id: str, contact_id: str) -> None:
        """
        Remove one of the user's contacts, never the last one.

        Raises:
            RecordNotFound: contact_id is not one of the user's contacts
            LastContactRemoval: it is the only remaining contact
        """
        existing = await self.list_contacts(user_id)
        if not any(c.id == str(contact_id) for c in existing):
            raise RecordNotFound(f"Emergency contact {contact_id} not found")
        if len(existing) == 1:
            raise LastContactRemoval()

        try:
            await self.store.delete_emergency_contact(str(contact_id))
        except RecordStoreError as e:
            self.logger.error(f"Delete emergency contact error: {e}")
            raise StoreUnavailable(str(e)) from e

        self.logger.info(f"Emergency contact {contact_id} deleted")
