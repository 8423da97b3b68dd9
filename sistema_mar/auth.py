from functools import wraps
from flask import Blueprint, request, current_app, abort
from flask_login import UserMixin, login_user, logout_user, login_required, current_user

from sistema_mar.errors import StoreError, format_error
from sistema_mar.store import PROFILES
from sistema_mar.utils import api_response

auth = Blueprint('auth', __name__)


class User(UserMixin):
    """Session user built from the store's profile row."""

    def __init__(self, id, email, full_name=None, avatar_url=None, is_admin=False):
        self.id = id
        self.email = email
        self.full_name = full_name
        self.avatar_url = avatar_url
        self.is_admin = is_admin

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'full_name': self.full_name,
            'avatar_url': self.avatar_url,
            'is_admin': self.is_admin,
        }


def load_user(user_id):
    store = current_app.store
    try:
        profile = store.select_one(PROFILES, filters={'id': user_id})
        if not profile:
            auth_user = store.get_auth_user(user_id)
            if not auth_user:
                return None
            profile = {'id': user_id, 'user_email': auth_user['email']}
        is_admin = current_app.services.users.is_admin(user_id)
    except StoreError as e:
        current_app.logger.error(f"Could not load session user {user_id}: {e.message}")
        return None
    return User(
        id=profile['id'],
        email=profile.get('user_email'),
        full_name=profile.get('full_name'),
        avatar_url=profile.get('avatar_url'),
        is_admin=is_admin,
    )


def admin_required(view):
    @wraps(view)
    @login_required
    def wrapper(*args, **kwargs):
        if not current_user.is_admin:
            abort(403)
        return view(*args, **kwargs)
    return wrapper


@auth.route('/auth/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or request.form
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    if not email or not password:
        return api_response(False, error={'message': 'Email e senha são obrigatórios', 'code': 'VALIDATION_ERROR'}, status=400)

    try:
        auth_user = current_app.store.sign_in(email, password)
    except StoreError as e:
        current_app.logger.warning(f"Login failed for {email}: {e.code}")
        return api_response(False, error=format_error(e, context='login'), status=401)

    user = load_user(auth_user['id'])
    if not user:
        return api_response(False, error={'message': 'Perfil do usuário não encontrado', 'code': 'PROFILE_NOT_FOUND'}, status=401)

    login_user(user, remember=bool(data.get('remember')))
    current_app.logger.info(f"User {email} logged in (admin={user.is_admin})")
    return api_response(True, data=user.to_dict())


@auth.route('/auth/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return api_response(True)


@auth.route('/auth/me')
@login_required
def me():
    return api_response(True, data=current_user.to_dict())
