"""
Record store and session backends

``create_backend`` builds the (session, store) pair for the configured
provider. Provider modules are imported on demand so that a local SQLite
deployment does not need the Firebase SDK loaded.
"""

import logging
from typing import Tuple

from ...core.config import ConfigurationError, ConfigurationManager
from ..sos.interfaces import RecordStore, SessionProvider


logger = logging.getLogger(__name__)


def create_backend(config: ConfigurationManager) -> Tuple[SessionProvider, RecordStore]:
    """Build the session provider and record store for ``backend.provider``"""
    provider = config.get_backend_provider()
    logger.info(f"Using {provider} record store")

    if provider == 'sqlite':
        from ...core.database import DatabaseManager
        from .sqlite import SQLiteRecordStore, StaticSession

        db = DatabaseManager(
            config.get('database.path', 'data/saheli.db'),
            config.get('database.max_connections', 5)
        )
        user_id = config.get('backend.local_user_id')
        session = StaticSession(str(user_id) if user_id is not None else None)
        return session, SQLiteRecordStore(db)

    if provider == 'firebase':
        from .firebase import FirebaseSession, FirestoreRecordStore, initialize_firebase_app

        firebase = config.get_section('firebase')
        app = initialize_firebase_app(firebase.get('credentials_file'), firebase.get('project_id'))
        return FirebaseSession(firebase.get('id_token'), app), FirestoreRecordStore.from_app(app)

    if provider == 'supabase':
        from .supabase import SupabaseClient, SupabaseRecordStore, SupabaseSession

        supabase = config.get_section('supabase')
        if not supabase.get('url') or not supabase.get('anon_key'):
            raise ConfigurationError("supabase.url and supabase.anon_key are required")
        client = SupabaseClient(
            supabase['url'],
            supabase['anon_key'],
            access_token=supabase.get('access_token'),
            timeout=supabase.get('timeout', 15)
        )
        return SupabaseSession(client), SupabaseRecordStore(client)

    raise ConfigurationError(f"Unknown backend provider: {provider}")


__all__ = ['create_backend']
