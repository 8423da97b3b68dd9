from flask import Blueprint, request, current_app, session, Response
from flask_login import login_required, current_user

from sistema_mar.errors import QuizError
from sistema_mar.services.navigation import QuizNavigator, QuizState
from sistema_mar.services.pdf_service import PdfService
from sistema_mar.utils import api_response, is_truthy

quiz_bp = Blueprint('quiz', __name__)

SESSION_KEY = 'quiz_nav'
OVERRIDE_PARAMS = ('admin', 'review', 'force')


def _override_requested():
    return any(is_truthy(request.args.get(p)) for p in OVERRIDE_PARAMS)


def _navigator(override=False):
    services = current_app.services
    nav = QuizNavigator(services.quiz, services.completion, current_user.id, current_user.email)
    return nav.load(override=override, snapshot=session.get(SESSION_KEY))


def _respond(nav, status=200, **extra):
    session[SESSION_KEY] = nav.snapshot()
    data = nav.to_dict()
    data.update(extra)
    if nav.state == QuizState.CONFIG_ERROR:
        return api_response(False, data=data, error=nav.last_error, status=503)
    if nav.last_error:
        return api_response(False, data=data, error=nav.last_error, status=500)
    return api_response(True, data=data, status=status)


@quiz_bp.route('/quiz')
@login_required
def show():
    nav = _navigator(override=_override_requested())
    if nav.state == QuizState.COMPLETED:
        current_app.logger.info(f"User {current_user.id} already completed the quiz, redirecting to answers")
    return _respond(nav)


@quiz_bp.route('/quiz/answer', methods=['POST'])
@login_required
def save_answer():
    data = request.get_json(silent=True) or {}
    question_id = data.get('questionId')
    if not question_id:
        return api_response(False, error={'message': 'questionId é obrigatório', 'code': 'VALIDATION_ERROR'}, status=400)

    result = current_app.services.quiz.save_answer(current_user.id, question_id, data.get('answer'), current_user.email)
    if not result.success:
        return api_response(False, error=result.error, status=result.status_code)
    return api_response(True, data=result.to_dict())


@quiz_bp.route('/quiz/next', methods=['POST'])
@login_required
def next_question():
    data = request.get_json(silent=True) or {}
    return _respond(_navigator().next(data.get('questionId'), data.get('answer')))


@quiz_bp.route('/quiz/previous', methods=['POST'])
@login_required
def previous_question():
    return _respond(_navigator().previous())


@quiz_bp.route('/quiz/edit', methods=['POST'])
@login_required
def edit_question():
    data = request.get_json(silent=True) or {}
    try:
        module_index = int(data.get('moduleIndex', 0))
        question_index = int(data.get('questionIndex', 0))
    except (TypeError, ValueError):
        return api_response(False, error={'message': 'Posição inválida', 'code': 'VALIDATION_ERROR'}, status=400)
    return _respond(_navigator().edit(module_index, question_index))


@quiz_bp.route('/quiz/confirm', methods=['POST'])
@login_required
def confirm():
    data = request.get_json(silent=True) or {}
    return _respond(_navigator().confirm(is_truthy(data.get('agreed'))))


@quiz_bp.route('/quiz/complete', methods=['POST'])
@login_required
def complete():
    nav = _navigator()
    result = nav.complete()
    if not result.success:
        session[SESSION_KEY] = nav.snapshot()
        return api_response(False, data=nav.to_dict(), error=nav.last_error, status=500)
    session.pop(SESSION_KEY, None)
    current_app.logger.info(f"Quiz completed by {current_user.id} via {result.method} (webhook={result.webhook_sent})")
    return api_response(True, data=result.to_dict())


def _own_submission():
    submission = current_app.services.quiz.get_submission(current_user.id)
    if not submission:
        raise QuizError('Você ainda não iniciou o questionário', code='NOT_FOUND')
    return submission


@quiz_bp.route('/quiz/answers')
@login_required
def view_answers():
    submission = _own_submission()
    report = current_app.services.exports.submission_report(submission['id'])
    return api_response(True, data=report)


@quiz_bp.route('/quiz/answers.csv')
@login_required
def export_answers_csv():
    submission = _own_submission()
    content = current_app.services.exports.submission_detail_csv(submission['id'])
    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-disposition": "attachment; filename=minhas_respostas_mar.csv"}
    )


@quiz_bp.route('/quiz/report.pdf')
@login_required
def export_answers_pdf():
    submission = _own_submission()
    report = current_app.services.exports.submission_report(submission['id'])
    pdf_bytes = PdfService.generate_report(report)
    return Response(
        pdf_bytes,
        mimetype="application/pdf",
        headers={"Content-disposition": "attachment; filename=relatorio_mar.pdf"}
    )
