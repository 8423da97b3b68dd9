import logging

from sistema_mar.answers import answer_text
from sistema_mar.errors import QuizError
from sistema_mar.store import SUBMISSIONS, ANSWERS, QUESTIONS, MODULES, PROFILES, RESPOSTAS

logger = logging.getLogger(__name__)


class ConsolidationService:
    """
    Flattens a submission's answers into quiz_respostas_completas.respostas.

    For the i-th answered question (module order, then question order):
        Pergunta_i -> question text
        Resposta_i -> answer
        <question text> -> answer
    """

    def __init__(self, store):
        self.store = store

    def build_respostas(self, submission_id):
        answers = self.store.select(ANSWERS, filters={'submission_id': submission_id})
        answers = [a for a in answers if a.get('answer') is not None]
        if not answers:
            return {}

        question_ids = sorted({a['question_id'] for a in answers})
        questions = {q['id']: q for q in self.store.select(QUESTIONS, filters={'id': question_ids})}
        module_order = {m['id']: m['order_number'] for m in self.store.select(MODULES, columns='id, order_number')}

        def sort_key(row):
            question = questions.get(row['question_id'])
            if not question:
                # Orphan answers go last, by id
                return (float('inf'), float('inf'), row['question_id'])
            return (
                module_order.get(question['module_id'], float('inf')),
                question['order_number'],
                question['id'],
            )

        respostas = {}
        for index, row in enumerate(sorted(answers, key=sort_key), start=1):
            question = questions.get(row['question_id'])
            text = question['text'] if question else row['question_id']
            value = answer_text(row['answer'])
            respostas[f'Pergunta_{index}'] = text
            respostas[f'Resposta_{index}'] = value
            respostas[text] = value
        return respostas

    def rebuild(self, submission_id):
        """Replaces the consolidated row for the submission. Returns respostas."""
        submission = self.store.select_one(SUBMISSIONS, filters={'id': submission_id})
        if not submission:
            raise QuizError('Submissão não encontrada', code='NOT_FOUND', details={'submission_id': submission_id})

        respostas = self.build_respostas(submission_id)
        profile = self.store.select_one(PROFILES, filters={'id': submission['user_id']}) or {}

        self.store.upsert(RESPOSTAS, {
            'submission_id': submission_id,
            'user_id': submission['user_id'],
            'user_email': submission.get('user_email') or profile.get('user_email'),
            'full_name': profile.get('full_name'),
            'data_submissao': submission.get('completed_at') or submission.get('started_at'),
            'respostas': respostas,
        }, on_conflict='submission_id')

        logger.info(f"[Consolidation] Submission {submission_id}: {len(respostas)} chaves consolidadas")
        return respostas

    def get(self, submission_id):
        return self.store.select_one(RESPOSTAS, filters={'submission_id': submission_id})
