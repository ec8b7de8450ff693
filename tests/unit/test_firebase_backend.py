"""
Unit tests for the Firestore record store and Firebase session
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from firebase_admin import auth
from firebase_admin.exceptions import UnavailableError
from google.api_core.exceptions import ServiceUnavailable

from saheli.models.sos import Location
from saheli.services.backends.firebase import FirebaseSession, FirestoreRecordStore
from saheli.services.sos.errors import RecordNotFound, RecordStoreError


def make_doc(doc_id, data):
    doc = MagicMock()
    doc.id = doc_id
    doc.to_dict.return_value = dict(data)
    return doc


@pytest.fixture
def firestore_client():
    return MagicMock()


@pytest.fixture
def store(firestore_client):
    return FirestoreRecordStore(firestore_client)


class TestFirestoreRecordStore:

    @pytest.mark.asyncio
    async def test_get_user_profile(self, store, firestore_client):
        snapshot = MagicMock(exists=True)
        snapshot.to_dict.return_value = {"name": "Priya", "occupation": "Engineer"}
        firestore_client.collection.return_value.document.return_value.get.return_value = snapshot

        profile = await store.get_user_profile("uid-1")

        assert profile.id == "uid-1"
        assert profile.name == "Priya"
        assert profile.occupation == "Engineer"
        firestore_client.collection.assert_called_with("users")
        firestore_client.collection.return_value.document.assert_called_with("uid-1")

    @pytest.mark.asyncio
    async def test_missing_profile(self, store, firestore_client):
        firestore_client.collection.return_value.document.return_value.get.return_value = MagicMock(exists=False)

        with pytest.raises(RecordNotFound):
            await store.get_user_profile("uid-1")

    @pytest.mark.asyncio
    async def test_read_failure(self, store, firestore_client):
        firestore_client.collection.return_value.document.return_value.get.side_effect = (
            ServiceUnavailable("backend down")
        )

        with pytest.raises(RecordStoreError):
            await store.get_user_profile("uid-1")

    @pytest.mark.asyncio
    async def test_contacts_filtered_by_user_and_ordered_by_creation(self, store, firestore_client):
        query = firestore_client.collection.return_value.where.return_value
        query.stream.return_value = iter([
            make_doc("zz", {"user_id": "uid-1", "name": "Meera", "phone": "+2",
                            "created_at": datetime(2024, 1, 2, tzinfo=timezone.utc)}),
            make_doc("aa", {"user_id": "uid-1", "name": "Asha", "phone": "+1",
                            "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc)})
        ])

        contacts = await store.list_emergency_contacts("uid-1")

        assert [(c.id, c.name) for c in contacts] == [("aa", "Asha"), ("zz", "Meera")]
        firestore_client.collection.assert_called_with("emergency_contacts")
        field_filter = firestore_client.collection.return_value.where.call_args.kwargs["filter"]
        assert (field_filter.field_path, field_filter.op_string, field_filter.value) == ("user_id", "==", "uid-1")

    @pytest.mark.asyncio
    async def test_add_contact(self, store, firestore_client):
        ref = MagicMock(id="new-doc")
        firestore_client.collection.return_value.add.return_value = (None, ref)

        contact = await store.add_emergency_contact("uid-1", "Ravi", "+3")

        assert (contact.id, contact.name, contact.phone, contact.user_id) == ("new-doc", "Ravi", "+3", "uid-1")
        payload = firestore_client.collection.return_value.add.call_args.args[0]
        assert payload["user_id"] == "uid-1"
        assert "created_at" in payload

    @pytest.mark.asyncio
    async def test_delete_contact(self, store, firestore_client):
        await store.delete_emergency_contact("doc-1")

        firestore_client.collection.return_value.document.assert_called_with("doc-1")
        firestore_client.collection.return_value.document.return_value.delete.assert_called_once()

    @pytest.mark.asyncio
    async def test_save_live_location_merges(self, store, firestore_client):
        await store.save_live_location("uid-1", Location(latitude=1.0, longitude=2.0, accuracy=4.0))

        document = firestore_client.collection.return_value.document.return_value
        args, kwargs = document.set.call_args
        assert args[0]["latitude"] == 1.0 and args[0]["longitude"] == 2.0
        assert kwargs == {"merge": True}
        firestore_client.collection.assert_called_with("user_locations")


class TestFirebaseSession:

    @pytest.mark.asyncio
    async def test_valid_token(self):
        with patch("saheli.services.backends.firebase.auth.verify_id_token",
                   return_value={"uid": "uid-1"}) as verify:
            assert await FirebaseSession("token").get_current_user_id() == "uid-1"
        verify.assert_called_once_with("token", None)

    @pytest.mark.asyncio
    async def test_invalid_token(self):
        with patch("saheli.services.backends.firebase.auth.verify_id_token",
                   side_effect=auth.InvalidIdTokenError("bad token")):
            assert await FirebaseSession("token").get_current_user_id() is None

    @pytest.mark.asyncio
    async def test_no_token(self):
        with patch("saheli.services.backends.firebase.auth.verify_id_token") as verify:
            assert await FirebaseSession(None).get_current_user_id() is None
        verify.assert_not_called()

    @pytest.mark.asyncio
    async def test_auth_outage(self):
        with patch("saheli.services.backends.firebase.auth.verify_id_token",
                   side_effect=UnavailableError("down")):
            with pytest.raises(RecordStoreError):
                await FirebaseSession("token").get_current_user_id()
