from flask import Blueprint, request, current_app
from flask_login import login_required, current_user

from sistema_mar.utils import api_response

materials_bp = Blueprint('materials', __name__)


@materials_bp.route('/materials')
@login_required
def list_materials():
    service = current_app.services.materials
    category = request.args.get('category') or None
    return api_response(True, data={
        'materials': service.list_materials(category),
        'categories': service.categories(),
    })


@materials_bp.route('/materials/<material_id>/access', methods=['POST'])
@login_required
def access_material(material_id):
    url = current_app.services.materials.register_access(material_id, current_user.id)
    return api_response(True, data={'url': url})
