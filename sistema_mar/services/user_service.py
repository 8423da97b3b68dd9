import csv
import logging
import re
import secrets
import uuid
from io import StringIO

from sistema_mar.errors import StoreError, QuizError, ValidationError
from sistema_mar.models import ROLE_ADMIN
from sistema_mar.store import PROFILES, USER_ROLES, SUBMISSIONS
from sistema_mar.utils import now_iso

logger = logging.getLogger(__name__)

AVATARS_BUCKET = 'avatars'
AVATAR_TYPES = {'image/jpeg': 'jpg', 'image/png': 'png', 'image/gif': 'gif'}
AVATAR_MAX_BYTES = 5 * 1024 * 1024
MIN_PASSWORD_LENGTH = 6
PROFILE_FIELDS = ('full_name', 'phone', 'company_name')

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def validate_email(email):
    email = (email or '').strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationError('Email inválido', details={'email': email})
    return email


class UserService:
    def __init__(self, store, admin_service=None):
        self.store = store
        self.admin = admin_service

    def is_admin(self, user_id):
        try:
            return bool(self.store.rpc('is_admin', {'user_id': user_id}))
        except StoreError as e:
            # Fall back to reading the roles table directly
            logger.warning(f"[Users] is_admin rpc failed ({e.code}), checking user_roles")
            return self.store.select_one(USER_ROLES, filters={'user_id': user_id, 'role': ROLE_ADMIN}) is not None

    def list_users(self):
        auth_users = {u['id']: u for u in self.store.list_auth_users()}
        profiles = {p['id']: p for p in self.store.select(PROFILES)}
        admins = {r['user_id'] for r in self.store.select(USER_ROLES, filters={'role': ROLE_ADMIN})}
        submissions = {s['user_id']: s for s in self.store.select(SUBMISSIONS, columns='user_id, completed')}

        users = []
        for user_id in set(auth_users) | set(profiles):
            auth_user = auth_users.get(user_id, {})
            profile = profiles.get(user_id, {})
            submission = submissions.get(user_id)
            users.append({
                'id': user_id,
                'email': auth_user.get('email') or profile.get('user_email') or '',
                'full_name': profile.get('full_name') or '',
                'avatar_url': profile.get('avatar_url'),
                'created_at': auth_user.get('created_at') or profile.get('created_at'),
                'last_sign_in_at': auth_user.get('last_sign_in_at'),
                'is_admin': user_id in admins,
                'has_submission': submission is not None,
                'quiz_completed': bool(submission and submission.get('completed')),
            })
        users.sort(key=lambda u: u['created_at'] or '', reverse=True)
        return users

    def create_user(self, email, password, full_name=None, is_admin=False, admin_id=None):
        email = validate_email(email)
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f'A senha deve ter pelo menos {MIN_PASSWORD_LENGTH} caracteres')
        user = self.store.create_user(email, password, {'full_name': full_name or ''})
        if is_admin:
            self.store.insert(USER_ROLES, {'user_id': user['id'], 'role': ROLE_ADMIN})
        logger.info(f"[Users] Created {email} (admin={bool(is_admin)})")
        if self.admin and admin_id:
            self.admin.log_action(admin_id, 'create_user', user['id'], {'email': email, 'is_admin': bool(is_admin)})
        return user

    def set_admin(self, user_id, make_admin, admin_id=None):
        if make_admin:
            if not self.store.select_one(USER_ROLES, filters={'user_id': user_id, 'role': ROLE_ADMIN}):
                self.store.insert(USER_ROLES, {'user_id': user_id, 'role': ROLE_ADMIN})
        else:
            if admin_id and admin_id == user_id:
                raise ValidationError('Você não pode remover seu próprio acesso de administrador')
            self.store.delete(USER_ROLES, {'user_id': user_id, 'role': ROLE_ADMIN})
        if self.admin and admin_id:
            self.admin.log_action(admin_id, 'grant_admin' if make_admin else 'revoke_admin', user_id)
        return make_admin

    def import_csv(self, content, admin_id=None):
        """
        Creates users from CSV rows (email, nome/name, optional senha/password).
        Row failures are collected, they never stop the import.
        """
        if not (content or '').strip():
            raise ValidationError('Por favor, carregue um arquivo CSV válido.')

        reader = csv.DictReader(StringIO(content))
        headers = [h.strip().lower() for h in (reader.fieldnames or [])]
        if 'email' not in headers:
            raise ValidationError('Coluna obrigatória ausente: email')

        success, failure = [], []
        for line, raw in enumerate(reader, start=2):
            row = {(k or '').strip().lower(): (v or '').strip() for k, v in raw.items()}
            email = row.get('email')
            name = row.get('nome') or row.get('name') or ''
            if not email:
                failure.append(f"Linha {line}: dados incompletos")
                continue
            password = row.get('senha') or row.get('password') or secrets.token_urlsafe(12)
            try:
                self.create_user(email, password, full_name=name)
            except (StoreError, ValidationError) as e:
                failure.append(f"{email}: {e.message}")
                continue
            success.append(email)

        if self.admin and admin_id:
            self.admin.log_action(admin_id, 'import_users', details={'success': len(success), 'failure': len(failure)})
        return {
            'success': success,
            'failure': failure,
            'message': f"Importação concluída: {len(success)} usuários importados com sucesso e {len(failure)} falhas.",
        }

    # --- Profile ---
    def get_profile(self, user_id):
        profile = self.store.select_one(PROFILES, filters={'id': user_id})
        if not profile:
            raise QuizError('Perfil não encontrado', code='NOT_FOUND', details={'user_id': user_id})
        return profile

    def update_profile(self, user_id, data):
        values = {k: (data.get(k) or '').strip() for k in PROFILE_FIELDS if k in data}
        if not values:
            raise ValidationError('Nenhum campo para atualizar')
        values['updated_at'] = now_iso()
        rows = self.store.update(PROFILES, values, {'id': user_id})
        if not rows:
            raise QuizError('Perfil não encontrado', code='NOT_FOUND', details={'user_id': user_id})
        return rows[0]

    def upload_avatar(self, user_id, content, content_type):
        if content_type not in AVATAR_TYPES:
            raise ValidationError('Apenas imagens JPEG, PNG e GIF são permitidas')
        if len(content) > AVATAR_MAX_BYTES:
            raise ValidationError('O arquivo deve ter no máximo 5MB')
        path = f"{user_id}/{uuid.uuid4()}.{AVATAR_TYPES[content_type]}"
        url = self.store.upload(AVATARS_BUCKET, path, content, content_type)
        self.store.update(PROFILES, {'avatar_url': url, 'updated_at': now_iso()}, {'id': user_id})
        logger.info(f"[Users] Avatar updated for {user_id}")
        return url
