import logging
import requests
from dataclasses import dataclass

from sistema_mar.answers import decode_answer
from sistema_mar.errors import QuizError, StoreError, ValidationError
from sistema_mar.store import SUBMISSIONS, ANSWERS, QUESTIONS, PROFILES, RESPOSTAS, SYSTEM_CONFIG
from sistema_mar.utils import retry_request, now_iso

logger = logging.getLogger(__name__)

WEBHOOK_URL_KEY = 'webhook_url'
SOURCE_HEADER = 'Sistema MAR - Crie Valor'


@dataclass
class WebhookResult:
    success: bool
    status_code: int = None
    error: str = None

    def to_dict(self):
        return {'success': self.success, 'statusCode': self.status_code, 'error': self.error}


class WebhookService:
    """Best-effort delivery of completed submissions to the configured endpoint."""

    def __init__(self, store, default_url=None, timeout=10):
        self.store = store
        self.default_url = default_url
        self.timeout = timeout

    def get_url(self):
        row = self.store.select_one(SYSTEM_CONFIG, filters={'key': WEBHOOK_URL_KEY})
        if row and row.get('value'):
            return row['value']
        return self.default_url

    def configure_url(self, url):
        url = (url or '').strip()
        if not url.startswith('https://'):
            raise ValidationError('A URL do webhook deve começar com https://', details={'url': url})
        self.store.upsert(SYSTEM_CONFIG, {'key': WEBHOOK_URL_KEY, 'value': url, 'updated_at': now_iso()}, on_conflict='key')
        return url

    def build_payload(self, submission_id):
        submission = self.store.select_one(SUBMISSIONS, filters={'id': submission_id})
        if not submission:
            raise QuizError('Submissão não encontrada', code='NOT_FOUND', details={'submission_id': submission_id})

        profile = self.store.select_one(PROFILES, filters={'id': submission['user_id']}) or {}
        rows = self.store.select(ANSWERS, filters={'submission_id': submission_id})
        question_ids = [r['question_id'] for r in rows]
        questions = {}
        if question_ids:
            questions = {q['id']: q for q in self.store.select(QUESTIONS, filters={'id': question_ids})}
        consolidated = self.store.select_one(RESPOSTAS, filters={'submission_id': submission_id}) or {}

        answers = []
        for row in rows:
            question = questions.get(row['question_id'], {})
            decoded = decode_answer(row['answer'])
            answers.append({
                'questionId': row['question_id'],
                'questionText': question.get('text', ''),
                'answer': decoded.to_json() if decoded is not None else None,
                'questionType': question.get('type'),
                'moduleId': question.get('module_id'),
            })

        return {
            'userId': submission['user_id'],
            'submissionId': submission_id,
            'userName': profile.get('full_name') or '',
            'userEmail': submission.get('user_email') or profile.get('user_email') or '',
            'completedAt': submission.get('completed_at'),
            'answers': answers,
            'respostas': consolidated.get('respostas') or {},
        }

    @retry_request(retries=2, backoff_factor=0.5)
    def _post(self, url, payload):
        response = requests.post(
            url,
            json=payload,
            headers={'Content-Type': 'application/json', 'X-Source': SOURCE_HEADER},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response

    def send_quiz_data(self, submission_id):
        """Never raises: any failure is logged and reported as success=False."""
        try:
            url = self.get_url()
            if not url:
                logger.warning(f"[Webhook] No webhook URL configured, skipping submission {submission_id}")
                return WebhookResult(success=False, error='URL do webhook não configurada')

            payload = self.build_payload(submission_id)
            response = self._post(url, payload)
        except requests.exceptions.RequestException as e:
            status = e.response.status_code if getattr(e, 'response', None) is not None else None
            logger.error(f"[Webhook] Delivery failed for submission {submission_id}: {e}")
            return WebhookResult(success=False, status_code=status, error=str(e))
        except QuizError as e:
            logger.error(f"[Webhook] Could not prepare submission {submission_id}: {e.message}")
            return WebhookResult(success=False, error=e.message)
        except Exception as e:
            logger.exception(f"[Webhook] Unexpected failure for submission {submission_id}: {e}")
            return WebhookResult(success=False, error=str(e))

        logger.info(f"[Webhook] Submission {submission_id} delivered ({response.status_code})")
        self._mark_processed(submission_id)
        return WebhookResult(success=True, status_code=response.status_code)

    def _mark_processed(self, submission_id):
        try:
            self.store.update(SUBMISSIONS, {'webhook_processed': True}, {'id': submission_id})
            self.store.update(RESPOSTAS, {'webhook_processed': True}, {'submission_id': submission_id})
        except StoreError as e:
            logger.warning(f"[Webhook] Delivered but could not flag submission {submission_id}: {e.message}")

    def test_connection(self, url=None):
        """Posts a test payload to the given (or configured) URL."""
        url = url or self.get_url()
        if not url:
            return WebhookResult(success=False, error='URL do webhook não configurada')
        payload = {
            'test': True,
            'source': SOURCE_HEADER,
            'timestamp': now_iso(),
            'message': 'Teste de conexão do webhook',
        }
        try:
            response = self._post(url, payload)
        except requests.exceptions.RequestException as e:
            status = e.response.status_code if getattr(e, 'response', None) is not None else None
            logger.warning(f"[Webhook] Test to {url} failed: {e}")
            return WebhookResult(success=False, status_code=status, error=str(e))
        return WebhookResult(success=True, status_code=response.status_code)
