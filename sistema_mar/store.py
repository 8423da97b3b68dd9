"""
Data store contract shared by the Supabase client wrapper and the local
SQL backend.

Filters are plain equality filters ({'user_id': uid}); ``gte`` holds lower
bounds ({'created_at': '2026-01-01'}). Every failure is raised as
StoreError so services handle one exception type.
"""

MODULES = 'quiz_modules'
QUESTIONS = 'quiz_questions'
OPTIONS = 'quiz_options'
SUBMISSIONS = 'quiz_submissions'
ANSWERS = 'quiz_answers'
RESPOSTAS = 'quiz_respostas_completas'
MATERIALS = 'materials'
MATERIAL_ACCESSES = 'material_accesses'
PROFILES = 'profiles'
USER_ROLES = 'user_roles'
AUDIT_LOG = 'admin_audit_log'
SYSTEM_CONFIG = 'system_config'

# Used to express "delete every row" through a filter the hosted API accepts.
NIL_UUID = '00000000-0000-0000-0000-000000000000'


class Store:
    backend = 'abstract'

    def select(self, table, columns='*', filters=None, order=None, desc=False, limit=None, gte=None):
        raise NotImplementedError

    def select_one(self, table, columns='*', filters=None, order=None, desc=False):
        rows = self.select(table, columns=columns, filters=filters, order=order, desc=desc, limit=1)
        return rows[0] if rows else None

    def count(self, table, filters=None, gte=None):
        raise NotImplementedError

    def insert(self, table, rows):
        raise NotImplementedError

    def update(self, table, values, filters):
        raise NotImplementedError

    def delete(self, table, filters=None, everything=False):
        raise NotImplementedError

    def upsert(self, table, rows, on_conflict):
        raise NotImplementedError

    def rpc(self, name, params=None):
        raise NotImplementedError

    def upload(self, bucket, path, content, content_type=None):
        """Stores a blob and returns its public URL."""
        raise NotImplementedError

    # --- Auth ---
    def sign_in(self, email, password):
        """Returns {'id', 'email', 'user_metadata'} or raises StoreError."""
        raise NotImplementedError

    def create_user(self, email, password, metadata=None):
        raise NotImplementedError

    def get_auth_user(self, user_id):
        raise NotImplementedError

    def list_auth_users(self):
        raise NotImplementedError

    def delete_auth_user(self, user_id):
        raise NotImplementedError
