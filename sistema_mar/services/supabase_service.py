import logging
import httpx
from postgrest.exceptions import APIError
from supabase import create_client, Client

from sistema_mar.errors import StoreError
from sistema_mar.store import Store, NIL_UUID

logger = logging.getLogger(__name__)


def init_supabase(app):
    url = app.config.get('SUPABASE_URL')
    # Service role key bypasses RLS for backend operations, anon key otherwise
    key = app.config.get('SUPABASE_SERVICE_ROLE_KEY') or app.config.get('SUPABASE_KEY')

    if not url or not key:
        return None

    return create_client(url, key)


def _wrap(error, operation, target=None, origin='supabase'):
    """Converts client exceptions into StoreError keeping code/hint/details."""
    if isinstance(error, StoreError):
        return error
    if isinstance(error, APIError):
        return StoreError(
            error.message or str(error),
            code=error.code,
            details=error.details,
            hint=error.hint,
            origin=origin,
        )
    if isinstance(error, httpx.TimeoutException):
        return StoreError(str(error) or 'Tempo de conexão esgotado', code='TIMEOUT', details=f"{operation} {target}", origin=origin)
    if isinstance(error, httpx.HTTPError):
        return StoreError(str(error) or 'Erro de rede', code='NETWORK_ERROR', details=f"{operation} {target}", origin=origin)
    code = getattr(error, 'code', None) or getattr(error, 'status', None)
    return StoreError(
        getattr(error, 'message', None) or str(error),
        code=str(code) if code else None,
        details=f"{operation} {target}",
        origin=origin,
    )


def _user_dict(user):
    if user is None:
        return None
    created_at = getattr(user, 'created_at', None)
    last_sign_in_at = getattr(user, 'last_sign_in_at', None)
    return {
        'id': str(user.id),
        'email': user.email,
        'user_metadata': getattr(user, 'user_metadata', None) or {},
        'created_at': created_at.isoformat() if hasattr(created_at, 'isoformat') else created_at,
        'last_sign_in_at': last_sign_in_at.isoformat() if hasattr(last_sign_in_at, 'isoformat') else last_sign_in_at,
    }


class SupabaseStore(Store):
    """Store over a supabase-py Client (PostgREST + GoTrue + Storage)."""

    backend = 'supabase'

    def __init__(self, client: Client):
        self.client = client

    def _execute(self, builder, operation, table):
        try:
            return builder.execute()
        except (APIError, httpx.HTTPError) as e:
            logger.error(f"[Supabase] {operation} on {table} failed: {e}")
            raise _wrap(e, operation, table)

    @staticmethod
    def _apply(query, filters=None, gte=None):
        for key, value in (filters or {}).items():
            if isinstance(value, (list, tuple, set)):
                query = query.in_(key, list(value))
            elif value is None:
                query = query.is_(key, 'null')
            else:
                query = query.eq(key, value)
        for key, value in (gte or {}).items():
            query = query.gte(key, value)
        return query

    @staticmethod
    def _as_list(rows):
        if isinstance(rows, dict):
            return [rows]
        return list(rows)

    def select(self, table, columns='*', filters=None, order=None, desc=False, limit=None, gte=None):
        query = self._apply(self.client.table(table).select(columns), filters, gte)
        if order:
            query = query.order(order, desc=desc)
        if limit:
            query = query.limit(limit)
        return self._execute(query, 'select', table).data or []

    def count(self, table, filters=None, gte=None):
        query = self._apply(self.client.table(table).select('id', count='exact'), filters, gte)
        return self._execute(query, 'count', table).count or 0

    def insert(self, table, rows):
        query = self.client.table(table).insert(self._as_list(rows))
        return self._execute(query, 'insert', table).data or []

    def update(self, table, values, filters):
        if not filters:
            raise StoreError('UPDATE requires a WHERE clause', code='21000')
        query = self._apply(self.client.table(table).update(values), filters)
        return self._execute(query, 'update', table).data or []

    def delete(self, table, filters=None, everything=False):
        if not filters and not everything:
            raise StoreError('DELETE requires a WHERE clause', code='21000')
        query = self.client.table(table).delete()
        if filters:
            query = self._apply(query, filters)
        else:
            # PostgREST refuses unfiltered deletes
            query = query.neq('id', NIL_UUID)
        return self._execute(query, 'delete', table).data or []

    def upsert(self, table, rows, on_conflict):
        query = self.client.table(table).upsert(self._as_list(rows), on_conflict=on_conflict)
        return self._execute(query, 'upsert', table).data or []

    def rpc(self, name, params=None):
        query = self.client.rpc(name, params or {})
        return self._execute(query, 'rpc', name).data

    def upload(self, bucket, path, content, content_type=None):
        options = {'upsert': 'true'}
        if content_type:
            options['content-type'] = content_type
        try:
            storage = self.client.storage.from_(bucket)
            storage.upload(path, content, options)
            return storage.get_public_url(path)
        except Exception as e:
            logger.error(f"[Supabase] upload to {bucket}/{path} failed: {e}")
            raise _wrap(e, 'upload', bucket, origin='storage')

    def sign_in(self, email, password):
        try:
            res = self.client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as e:
            logger.warning(f"[Supabase] sign in failed for {email}: {e}")
            raise _wrap(e, 'sign_in', 'auth', origin='auth')
        if not res.user:
            raise StoreError('Invalid login credentials', code='invalid_credentials', origin='auth')
        return _user_dict(res.user)

    def create_user(self, email, password, metadata=None):
        try:
            res = self.client.auth.admin.create_user({
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": metadata or {},
            })
        except Exception as e:
            raise _wrap(e, 'create_user', 'auth', origin='auth')
        user = _user_dict(res.user)
        # The hosted trigger may already have created the profile row
        self.upsert('profiles', {
            'id': user['id'],
            'user_email': user['email'],
            'full_name': (metadata or {}).get('full_name'),
        }, on_conflict='id')
        return user

    def get_auth_user(self, user_id):
        try:
            res = self.client.auth.admin.get_user_by_id(user_id)
        except Exception as e:
            raise _wrap(e, 'get_user', 'auth', origin='auth')
        return _user_dict(res.user) if res else None

    def list_auth_users(self):
        try:
            users = self.client.auth.admin.list_users()
        except Exception as e:
            raise _wrap(e, 'list_users', 'auth', origin='auth')
        return [_user_dict(u) for u in users or []]

    def delete_auth_user(self, user_id):
        try:
            self.client.auth.admin.delete_user(user_id)
        except Exception as e:
            raise _wrap(e, 'delete_user', 'auth', origin='auth')
