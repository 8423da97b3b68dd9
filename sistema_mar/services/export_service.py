import csv
import logging
from io import StringIO

from sistema_mar.answers import answer_text
from sistema_mar.errors import QuizError
from sistema_mar.store import SUBMISSIONS, ANSWERS, QUESTIONS, MODULES, PROFILES, RESPOSTAS
from sistema_mar.utils import format_date_br

logger = logging.getLogger(__name__)


def _to_csv(header, rows):
    si = StringIO()
    cw = csv.writer(si)
    cw.writerow(header)
    cw.writerows(rows)
    return si.getvalue()


class ExportService:
    def __init__(self, store):
        self.store = store

    def submission_report(self, submission_id):
        """
        Everything needed to render one submission: user data plus answers
        grouped by module in quiz order.
        """
        submission = self.store.select_one(SUBMISSIONS, filters={'id': submission_id})
        if not submission:
            raise QuizError('Submissão não encontrada', code='NOT_FOUND', details={'submission_id': submission_id})

        profile = self.store.select_one(PROFILES, filters={'id': submission['user_id']}) or {}
        modules = self.store.select(MODULES, order='order_number')
        questions = self.store.select(QUESTIONS, order='order_number')
        answers = {a['question_id']: a['answer'] for a in self.store.select(ANSWERS, filters={'submission_id': submission_id})}

        grouped = []
        for module in modules:
            items = []
            for question in questions:
                if question['module_id'] != module['id']:
                    continue
                items.append({
                    'question_id': question['id'],
                    'question': question['text'],
                    'type': question['type'],
                    'answer': answer_text(answers.get(question['id'])),
                    'answered': question['id'] in answers,
                })
            if items:
                grouped.append({'module': module['title'], 'order_number': module['order_number'], 'answers': items})

        return {
            'submission': submission,
            'user_name': profile.get('full_name') or '',
            'user_email': submission.get('user_email') or profile.get('user_email') or '',
            'modules': grouped,
        }

    def submissions_summary_csv(self, submission_ids=None):
        filters = {'id': list(submission_ids)} if submission_ids else None
        submissions = self.store.select(SUBMISSIONS, filters=filters, order='started_at', desc=True)
        names = {p['id']: p.get('full_name') for p in self.store.select(PROFILES, columns='id, full_name')}

        rows = []
        for s in submissions:
            rows.append([
                s['id'],
                names.get(s['user_id']) or '',
                s.get('user_email') or '',
                format_date_br(s.get('started_at')),
                format_date_br(s.get('completed_at')),
                'Completo' if s.get('completed') else 'Incompleto',
            ])
        return _to_csv(['ID', 'Usuário', 'Email', 'Data de Início', 'Data de Conclusão', 'Status'], rows)

    def submission_detail_csv(self, submission_id):
        report = self.submission_report(submission_id)
        rows = []
        for module in report['modules']:
            for item in module['answers']:
                if not item['answered']:
                    continue
                rows.append([item['question_id'], item['question'], module['module'], item['type'], item['answer']])
        return _to_csv(['ID da Pergunta', 'Texto da Pergunta', 'Módulo', 'Tipo', 'Resposta'], rows)

    def respostas_csv(self, submission_id):
        """Pergunta/Resposta pairs from the consolidated row."""
        row = self.store.select_one(RESPOSTAS, filters={'submission_id': submission_id})
        if not row:
            raise QuizError('Respostas consolidadas não encontradas', code='NOT_FOUND', details={'submission_id': submission_id})
        respostas = row.get('respostas') or {}
        pairs = []
        index = 1
        while f'Pergunta_{index}' in respostas:
            pairs.append([respostas[f'Pergunta_{index}'], respostas.get(f'Resposta_{index}', '')])
            index += 1
        return _to_csv(['Pergunta', 'Resposta'], pairs)
