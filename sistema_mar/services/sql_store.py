import os
import logging
from contextlib import contextmanager
from sqlalchemy import DateTime
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.security import generate_password_hash, check_password_hash
from werkzeug.utils import secure_filename

from sistema_mar.errors import StoreError
from sistema_mar.models import (
    db, TABLES, AuthUser, Profile, UserRole, QuizSubmission, Material,
    ROLE_ADMIN, STATUS_COMPLETED,
)
from sistema_mar.store import Store
from sistema_mar.utils import parse_datetime
from datetime import datetime

logger = logging.getLogger(__name__)


def _integrity_code(error):
    pgcode = getattr(error.orig, 'pgcode', None)
    if pgcode:
        return pgcode
    message = str(error.orig).upper()
    if 'UNIQUE' in message or 'DUPLICATE' in message:
        return '23505'
    if 'NOT NULL' in message:
        return '23502'
    if 'FOREIGN KEY' in message:
        return '23503'
    return '23000'


class SqlStore(Store):
    """
    Store backed by Flask-SQLAlchemy. Used for local development, tests and
    whenever Supabase is not configured. Remote procedures are emulated here
    with the same contract as supabase/schema.sql.
    """

    backend = 'sql'

    def __init__(self, upload_folder=None, public_url_prefix='/uploads'):
        self.upload_folder = upload_folder or '/tmp/sistema_mar_uploads'
        self.public_url_prefix = public_url_prefix.rstrip('/')
        self.procedures = {
            'is_admin': self._rpc_is_admin,
            'complete_quiz': self._rpc_complete_quiz,
            'increment_material_access_count': self._rpc_increment_material_access_count,
        }

    # --- Internals ---
    @contextmanager
    def _guard(self, operation, table=None):
        try:
            yield
        except StoreError:
            db.session.rollback()
            raise
        except IntegrityError as e:
            db.session.rollback()
            code = _integrity_code(e)
            logger.warning(f"[SqlStore] {operation} on {table} violated a constraint ({code}): {e.orig}")
            raise StoreError(str(e.orig), code=code, details=f"{operation} {table}")
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"[SqlStore] {operation} on {table} failed: {e}")
            raise StoreError(str(e), code='DB_ERROR', details=f"{operation} {table}")

    def _model(self, table):
        model = TABLES.get(table)
        if model is None:
            raise StoreError(f'relation "{table}" does not exist', code='42P01')
        return model

    def _coerce(self, model, values):
        columns = model.__table__.columns
        result = {}
        for key, value in values.items():
            if key not in columns:
                raise StoreError(
                    f"Could not find the '{key}' column of '{model.__tablename__}'",
                    code='PGRST204',
                )
            if isinstance(columns[key].type, DateTime) and isinstance(value, str):
                try:
                    value = parse_datetime(value)
                except ValueError:
                    raise StoreError(f'invalid input syntax for type timestamp: "{value}"', code='22007')
            result[key] = value
        return result

    def _query(self, model, filters=None, gte=None):
        query = model.query
        for key, value in (filters or {}).items():
            column = getattr(model, key, None)
            if column is None:
                raise StoreError(f"column {model.__tablename__}.{key} does not exist", code='42703')
            if isinstance(value, (list, tuple, set)):
                query = query.filter(column.in_(list(value)))
            elif value is None:
                query = query.filter(column.is_(None))
            else:
                query = query.filter(column == value)
        for key, value in (gte or {}).items():
            column = getattr(model, key, None)
            if column is None:
                raise StoreError(f"column {model.__tablename__}.{key} does not exist", code='42703')
            if isinstance(model.__table__.columns[key].type, DateTime):
                value = parse_datetime(value)
            query = query.filter(column >= value)
        return query

    @staticmethod
    def _project(row, columns):
        data = row.to_dict()
        if not columns or columns.strip() == '*':
            return data
        wanted = [c.strip() for c in columns.split(',') if c.strip()]
        return {c: data.get(c) for c in wanted}

    @staticmethod
    def _as_list(rows):
        if isinstance(rows, dict):
            return [rows]
        return list(rows)

    # --- CRUD ---
    def select(self, table, columns='*', filters=None, order=None, desc=False, limit=None, gte=None):
        model = self._model(table)
        with self._guard('select', table):
            query = self._query(model, filters, gte)
            if order:
                column = getattr(model, order, None)
                if column is None:
                    raise StoreError(f"column {model.__tablename__}.{order} does not exist", code='42703')
                query = query.order_by(column.desc() if desc else column.asc())
            if limit:
                query = query.limit(limit)
            return [self._project(row, columns) for row in query.all()]

    def count(self, table, filters=None, gte=None):
        model = self._model(table)
        with self._guard('count', table):
            return self._query(model, filters, gte).count()

    def insert(self, table, rows):
        model = self._model(table)
        with self._guard('insert', table):
            objects = [model(**self._coerce(model, row)) for row in self._as_list(rows)]
            db.session.add_all(objects)
            db.session.commit()
            return [obj.to_dict() for obj in objects]

    def update(self, table, values, filters):
        model = self._model(table)
        if not filters:
            raise StoreError('UPDATE requires a WHERE clause', code='21000')
        with self._guard('update', table):
            values = self._coerce(model, values)
            objects = self._query(model, filters).all()
            for obj in objects:
                for key, value in values.items():
                    setattr(obj, key, value)
            db.session.commit()
            return [obj.to_dict() for obj in objects]

    def delete(self, table, filters=None, everything=False):
        model = self._model(table)
        if not filters and not everything:
            raise StoreError('DELETE requires a WHERE clause', code='21000')
        with self._guard('delete', table):
            objects = self._query(model, filters).all()
            deleted = [obj.to_dict() for obj in objects]
            for obj in objects:
                db.session.delete(obj)
            db.session.commit()
            return deleted

    def upsert(self, table, rows, on_conflict):
        model = self._model(table)
        conflict_columns = [c.strip() for c in on_conflict.split(',') if c.strip()]
        with self._guard('upsert', table):
            objects = []
            for row in self._as_list(rows):
                values = self._coerce(model, row)
                missing = [c for c in conflict_columns if c not in values]
                if missing:
                    raise StoreError(f"upsert row is missing conflict column(s) {missing}", code='42P10')
                existing = self._query(model, {c: values[c] for c in conflict_columns}).first()
                if existing:
                    for key, value in values.items():
                        if key != 'id':
                            setattr(existing, key, value)
                    objects.append(existing)
                else:
                    obj = model(**values)
                    db.session.add(obj)
                    objects.append(obj)
                db.session.flush()
            db.session.commit()
            return [obj.to_dict() for obj in objects]

    # --- Remote procedures ---
    def rpc(self, name, params=None):
        procedure = self.procedures.get(name)
        if procedure is None:
            raise StoreError(
                f"Could not find the function public.{name} in the schema cache",
                code='PGRST202',
            )
        with self._guard('rpc', name):
            return procedure(**(params or {}))

    def _rpc_is_admin(self, user_id=None):
        if not user_id:
            return False
        return UserRole.query.filter_by(user_id=user_id, role=ROLE_ADMIN).first() is not None

    def _rpc_complete_quiz(self, p_user_id=None):
        submission = QuizSubmission.query.filter_by(user_id=p_user_id).first()
        if not submission:
            return False
        if not submission.completed_at:
            submission.completed_at = datetime.utcnow()
        submission.completed = True
        submission.status = STATUS_COMPLETED
        db.session.commit()
        return True

    def _rpc_increment_material_access_count(self, material_id=None):
        material = db.session.get(Material, material_id)
        if not material:
            raise StoreError('Material não encontrado', code='P0002')
        material.access_count = (material.access_count or 0) + 1
        db.session.commit()
        return material.access_count

    # --- Storage ---
    def upload(self, bucket, path, content, content_type=None):
        parts = [secure_filename(p) for p in path.split('/') if p]
        if not parts:
            raise StoreError('Caminho de arquivo inválido', code='VALIDATION_ERROR')
        target_dir = os.path.join(self.upload_folder, secure_filename(bucket), *parts[:-1])
        try:
            os.makedirs(target_dir, exist_ok=True)
            with open(os.path.join(target_dir, parts[-1]), 'wb') as f:
                f.write(content)
        except OSError as e:
            logger.error(f"[SqlStore] upload to {bucket}/{path} failed: {e}")
            raise StoreError(str(e), code='STORAGE_ERROR')
        return f"{self.public_url_prefix}/{secure_filename(bucket)}/{'/'.join(parts)}"

    # --- Auth ---
    @staticmethod
    def _auth_dict(user):
        return {
            'id': user.id,
            'email': user.email,
            'user_metadata': user.user_metadata or {},
            'created_at': user.created_at.isoformat() if user.created_at else None,
            'last_sign_in_at': user.last_sign_in_at.isoformat() if user.last_sign_in_at else None,
        }

    def sign_in(self, email, password):
        user = AuthUser.query.filter_by(email=(email or '').strip().lower()).first()
        if not user or not check_password_hash(user.password_hash, password or ''):
            raise StoreError('Invalid login credentials', code='invalid_credentials', origin='auth')
        with self._guard('sign_in', 'auth_users'):
            user.last_sign_in_at = datetime.utcnow()
            db.session.commit()
        return self._auth_dict(user)

    def create_user(self, email, password, metadata=None):
        email = (email or '').strip().lower()
        if AuthUser.query.filter_by(email=email).first():
            raise StoreError('User already registered', code='email_exists', origin='auth')
        metadata = metadata or {}
        with self._guard('create_user', 'auth_users'):
            user = AuthUser(email=email, password_hash=generate_password_hash(password), user_metadata=metadata)
            db.session.add(user)
            db.session.flush()
            db.session.add(Profile(id=user.id, user_email=email, full_name=metadata.get('full_name')))
            db.session.commit()
            return self._auth_dict(user)

    def get_auth_user(self, user_id):
        user = db.session.get(AuthUser, user_id)
        return self._auth_dict(user) if user else None

    def list_auth_users(self):
        return [self._auth_dict(u) for u in AuthUser.query.order_by(AuthUser.created_at.desc()).all()]

    def delete_auth_user(self, user_id):
        with self._guard('delete_user', 'auth_users'):
            user = db.session.get(AuthUser, user_id)
            if user:
                db.session.delete(user)
                db.session.commit()
