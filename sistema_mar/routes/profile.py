from flask import Blueprint, request, current_app
from flask_login import login_required, current_user

from sistema_mar.utils import api_response

profile_bp = Blueprint('profile', __name__)


@profile_bp.route('/profile')
@login_required
def show():
    profile = current_app.services.users.get_profile(current_user.id)
    profile['is_admin'] = current_user.is_admin
    return api_response(True, data=profile)


@profile_bp.route('/profile', methods=['PUT', 'POST'])
@login_required
def update():
    data = request.get_json(silent=True) or request.form
    profile = current_app.services.users.update_profile(current_user.id, data)
    return api_response(True, data=profile)


@profile_bp.route('/profile/avatar', methods=['POST'])
@login_required
def upload_avatar():
    file = request.files.get('avatar')
    if not file or not file.filename:
        return api_response(False, error={'message': 'Nenhum arquivo enviado', 'code': 'VALIDATION_ERROR'}, status=400)
    url = current_app.services.users.upload_avatar(current_user.id, file.read(), file.mimetype)
    return api_response(True, data={'avatar_url': url})
