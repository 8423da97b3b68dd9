from flask import Blueprint, request, current_app, abort, Response
from flask_login import login_required, current_user

from sistema_mar.errors import ValidationError
from sistema_mar.services.pdf_service import PdfService
from sistema_mar.utils import api_response, is_truthy

admin_bp = Blueprint('admin', __name__)


@admin_bp.before_request
@login_required
def check_admin_access():
    """Every /admin route requires the admin role."""
    if not current_user.is_admin:
        current_app.logger.warning(f"Non-admin {current_user.id} tried {request.path}")
        abort(403)


def _json():
    return request.get_json(silent=True) or {}


def _csv_response(content, filename):
    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-disposition": f"attachment; filename={filename}"}
    )


# --- Users ---
@admin_bp.route('/admin/users')
def users():
    return api_response(True, data=current_app.services.users.list_users())


@admin_bp.route('/admin/users', methods=['POST'])
def new_user():
    data = _json() or request.form
    user = current_app.services.users.create_user(
        data.get('email'),
        data.get('password'),
        full_name=data.get('full_name'),
        is_admin=is_truthy(data.get('is_admin')),
        admin_id=current_user.id,
    )
    return api_response(True, data=user, status=201)


@admin_bp.route('/admin/users/<user_id>/admin', methods=['POST'])
def toggle_admin(user_id):
    make_admin = is_truthy(_json().get('isAdmin'))
    current_app.services.users.set_admin(user_id, make_admin, admin_id=current_user.id)
    return api_response(True, data={'id': user_id, 'is_admin': make_admin})


@admin_bp.route('/admin/users/import', methods=['POST'])
def import_users():
    file = request.files.get('file')
    if file:
        content = file.read().decode('utf-8-sig')
    else:
        content = _json().get('csv', '')
    result = current_app.services.users.import_csv(content, admin_id=current_user.id)
    return api_response(True, data=result)


@admin_bp.route('/admin/users/<user_id>/complete-quiz', methods=['POST'])
def complete_quiz_for_user(user_id):
    result = current_app.services.completion.complete_quiz_manually(user_id)
    current_app.services.admin.log_action(current_user.id, 'complete_quiz', user_id, {
        'success': result.success, 'method': result.method,
    })
    if not result.success:
        return api_response(False, data=result.to_dict(), error=result.error, status=500)
    return api_response(True, data=result.to_dict())


# --- Submissions ---
@admin_bp.route('/admin/submissions')
def submissions():
    status = request.args.get('status', 'all')
    return api_response(True, data=current_app.services.admin.list_submissions(status))


@admin_bp.route('/admin/submissions/export.csv')
def export_submissions():
    ids = [i for i in request.args.get('ids', '').split(',') if i]
    content = current_app.services.exports.submissions_summary_csv(ids or None)
    return _csv_response(content, 'respostas_mar.csv')


@admin_bp.route('/admin/submissions/<submission_id>')
def submission_details(submission_id):
    services = current_app.services
    report = services.exports.submission_report(submission_id)
    report['consolidated'] = services.consolidation.get(submission_id)
    return api_response(True, data=report)


@admin_bp.route('/admin/submissions/<submission_id>', methods=['DELETE'])
def delete_submission(submission_id):
    submission = current_app.services.admin.delete_submission(submission_id, admin_id=current_user.id)
    return api_response(True, data={'id': submission['id']})


@admin_bp.route('/admin/submissions/<submission_id>/consolidate', methods=['POST'])
def consolidate_submission(submission_id):
    respostas = current_app.services.consolidation.rebuild(submission_id)
    return api_response(True, data={'respostas': respostas})


@admin_bp.route('/admin/submissions/<submission_id>/webhook', methods=['POST'])
def resend_webhook(submission_id):
    result = current_app.services.webhook.send_quiz_data(submission_id)
    current_app.services.admin.log_action(current_user.id, 'resend_webhook', submission_id, {'success': result.success})
    if not result.success:
        return api_response(False, data=result.to_dict(), error={'message': result.error, 'code': 'WEBHOOK_FAILED'}, status=502)
    return api_response(True, data=result.to_dict())


@admin_bp.route('/admin/submissions/<submission_id>/processed', methods=['POST'])
def mark_processed(submission_id):
    processed = is_truthy(_json().get('processed', True))
    submission = current_app.services.admin.mark_processed(submission_id, processed)
    return api_response(True, data=submission)


@admin_bp.route('/admin/submissions/<submission_id>/export.csv')
def export_submission(submission_id):
    content = current_app.services.exports.submission_detail_csv(submission_id)
    return _csv_response(content, f'respostas_{submission_id}.csv')


@admin_bp.route('/admin/submissions/<submission_id>/respostas.csv')
def export_respostas(submission_id):
    content = current_app.services.exports.respostas_csv(submission_id)
    return _csv_response(content, f'respostas_completas_{submission_id}.csv')


@admin_bp.route('/admin/submissions/<submission_id>/report.pdf')
def export_submission_pdf(submission_id):
    report = current_app.services.exports.submission_report(submission_id)
    return Response(
        PdfService.generate_report(report),
        mimetype="application/pdf",
        headers={"Content-disposition": f"attachment; filename=relatorio_{submission_id}.pdf"}
    )


# --- Quiz editor & recovery ---
@admin_bp.route('/admin/quiz')
def quiz_structure():
    structure = current_app.services.quiz.load_structure()
    data = structure.to_dict()
    data['problems'] = structure.validate()
    return api_response(True, data=data)


@admin_bp.route('/admin/quiz/validate')
def validate_quiz():
    problems = current_app.services.quiz.load_structure().validate()
    return api_response(True, data={'valid': not problems, 'problems': problems})


@admin_bp.route('/admin/quiz/seed', methods=['POST'])
def seed_quiz():
    result = current_app.services.recovery.seed_quiz_data()
    current_app.services.admin.log_action(current_user.id, 'seed_quiz', details=result)
    return api_response(True, data=result)


@admin_bp.route('/admin/quiz/recover', methods=['POST'])
def recover_quiz():
    force = is_truthy(_json().get('force'))
    result = current_app.services.recovery.recover_quiz_data(force=force)
    current_app.services.admin.log_action(current_user.id, 'recover_quiz', details={'force': force, 'success': result['success']})
    return api_response(result['success'], data=result, error=result.get('error'), status=200 if result['success'] else 500)


@admin_bp.route('/admin/quiz/modules', methods=['POST'])
def create_module():
    module = current_app.services.recovery.save_module(_json(), admin_id=current_user.id)
    return api_response(True, data=module, status=201)


@admin_bp.route('/admin/quiz/modules/<module_id>', methods=['PUT'])
def update_module(module_id):
    module = current_app.services.recovery.save_module(_json(), module_id=module_id, admin_id=current_user.id)
    return api_response(True, data=module)


@admin_bp.route('/admin/quiz/modules/<module_id>', methods=['DELETE'])
def delete_module(module_id):
    current_app.services.recovery.delete_module(module_id, admin_id=current_user.id)
    return api_response(True)


@admin_bp.route('/admin/quiz/questions', methods=['POST'])
def create_question():
    question = current_app.services.recovery.save_question(_json(), admin_id=current_user.id)
    return api_response(True, data=question, status=201)


@admin_bp.route('/admin/quiz/questions/<question_id>', methods=['PUT'])
def update_question(question_id):
    question = current_app.services.recovery.save_question(_json(), question_id=question_id, admin_id=current_user.id)
    return api_response(True, data=question)


@admin_bp.route('/admin/quiz/questions/<question_id>', methods=['DELETE'])
def delete_question(question_id):
    current_app.services.recovery.delete_question(question_id, admin_id=current_user.id)
    return api_response(True)


@admin_bp.route('/admin/quiz/questions/<question_id>/options', methods=['PUT'])
def replace_options(question_id):
    options = _json().get('options')
    if not isinstance(options, list):
        raise ValidationError('options deve ser uma lista de textos')
    saved = current_app.services.recovery.replace_options(question_id, options, admin_id=current_user.id)
    return api_response(True, data=saved)


# --- Materials ---
@admin_bp.route('/admin/materials')
def materials():
    return api_response(True, data=current_app.services.materials.list_materials())


@admin_bp.route('/admin/materials', methods=['POST'])
def create_material():
    service = current_app.services.materials
    data = _json() or request.form.to_dict()
    file = request.files.get('file')
    if file and file.filename:
        data['file_url'] = service.upload_file(file)
    material = service.create(data, admin_id=current_user.id)
    return api_response(True, data=material, status=201)


@admin_bp.route('/admin/materials/<material_id>', methods=['PUT'])
def update_material(material_id):
    material = current_app.services.materials.update(material_id, _json(), admin_id=current_user.id)
    return api_response(True, data=material)


@admin_bp.route('/admin/materials/<material_id>', methods=['DELETE'])
def delete_material(material_id):
    current_app.services.materials.delete(material_id, admin_id=current_user.id)
    return api_response(True)


# --- Metrics, audit & settings ---
@admin_bp.route('/admin/metrics')
def metrics():
    return api_response(True, data=current_app.services.admin.metrics())


@admin_bp.route('/admin/audit-log')
def audit_log():
    try:
        limit = min(int(request.args.get('limit', 50)), 500)
    except ValueError:
        limit = 50
    return api_response(True, data=current_app.services.admin.recent_actions(limit))


@admin_bp.route('/admin/settings')
def settings():
    return api_response(True, data=current_app.services.admin.all_config())


@admin_bp.route('/admin/settings/webhook')
def webhook_settings():
    return api_response(True, data={'url': current_app.services.webhook.get_url()})


@admin_bp.route('/admin/settings/webhook', methods=['PUT'])
def update_webhook_settings():
    url = current_app.services.webhook.configure_url(_json().get('url'))
    current_app.services.admin.log_action(current_user.id, 'update_webhook_url', details={'url': url})
    return api_response(True, data={'url': url})


@admin_bp.route('/admin/settings/webhook/test', methods=['POST'])
def test_webhook():
    result = current_app.services.webhook.test_connection(_json().get('url'))
    return api_response(result.success, data=result.to_dict(), status=200 if result.success else 502)
