"""
Marking a submission as completed.

Each tier is a named strategy returning a TierResult. The service walks
them in order until one reports CONFIRMED:

    rpc     complete_quiz(p_user_id) on the store
    direct  update the user's submission, then read it back
    create  no submission at all: insert a completed one, then read it back

A confirmed completion is followed by consolidation and a webhook call.
Neither of those can turn a confirmed completion into a failure.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum

from sistema_mar.errors import QuizError, StoreError, VerificationError, format_error
from sistema_mar.models import STATUS_COMPLETED
from sistema_mar.store import SUBMISSIONS, MODULES, PROFILES
from sistema_mar.utils import now_iso

logger = logging.getLogger(__name__)


class TierOutcome(str, Enum):
    CONFIRMED = 'confirmed'
    NOT_CONFIRMED = 'not_confirmed'
    ERROR = 'error'


@dataclass
class TierResult:
    outcome: TierOutcome
    method: str
    submission: dict = None
    error: dict = None

    @property
    def confirmed(self):
        return self.outcome == TierOutcome.CONFIRMED


def _is_confirmation(value):
    """Only an explicit success value counts. None, False, {} or [] do not."""
    if value is True:
        return True
    if isinstance(value, list):
        return len(value) == 1 and _is_confirmation(value[0])
    if isinstance(value, dict):
        return value.get('success') is True or value.get('completed') is True
    return False


class RpcCompletionTier:
    name = 'rpc'

    def __init__(self, store):
        self.store = store

    def attempt(self, user_id):
        try:
            result = self.store.rpc('complete_quiz', {'p_user_id': user_id})
        except StoreError as e:
            logger.warning(f"[Completion:rpc] complete_quiz failed for {user_id}: {e.message} ({e.code})")
            return TierResult(TierOutcome.ERROR, self.name, error=format_error(e, context='complete_quiz_rpc'))
        if not _is_confirmation(result):
            logger.info(f"[Completion:rpc] complete_quiz did not confirm for {user_id} (returned {result!r})")
            return TierResult(TierOutcome.NOT_CONFIRMED, self.name)

        submission = None
        try:
            submission = self.store.select_one(SUBMISSIONS, filters={'user_id': user_id})
        except StoreError as e:
            # Completion already happened; the service looks the row up again
            logger.warning(f"[Completion:rpc] Confirmed for {user_id} but the read-back failed: {e.message} ({e.code})")
        return TierResult(TierOutcome.CONFIRMED, self.name, submission=submission)


class DirectUpdateCompletionTier:
    name = 'direct'

    def __init__(self, store):
        self.store = store

    def attempt(self, user_id):
        try:
            submission = self.store.select_one(SUBMISSIONS, filters={'user_id': user_id})
            if not submission:
                return TierResult(TierOutcome.NOT_CONFIRMED, self.name)

            if submission.get('completed') and submission.get('completed_at'):
                logger.info(f"[Completion:direct] Submission {submission['id']} was already completed")
                return TierResult(TierOutcome.CONFIRMED, self.name, submission=submission)

            self.store.update(SUBMISSIONS, {
                'completed': True,
                'completed_at': submission.get('completed_at') or now_iso(),
                'status': STATUS_COMPLETED,
            }, {'id': submission['id']})

            verified = self.store.select_one(SUBMISSIONS, filters={'id': submission['id']})
            if not verified or not verified.get('completed'):
                raise VerificationError(
                    'A atualização foi enviada mas a submissão não aparece como concluída',
                    details={'submission_id': submission['id']},
                    origin='direct',
                )
        except (StoreError, VerificationError) as e:
            logger.error(f"[Completion:direct] {user_id}: {e.message}")
            return TierResult(TierOutcome.ERROR, self.name, error=format_error(e, context='complete_quiz_direct'))
        return TierResult(TierOutcome.CONFIRMED, self.name, submission=verified)


class CreateCompleteCompletionTier:
    name = 'create'

    def __init__(self, store):
        self.store = store

    def _user_email(self, user_id):
        try:
            user = self.store.get_auth_user(user_id)
            if user and user.get('email'):
                return user['email']
        except StoreError as e:
            logger.warning(f"[Completion:create] Auth lookup failed for {user_id}: {e.message}")
        profile = self.store.select_one(PROFILES, columns='user_email', filters={'id': user_id})
        return (profile or {}).get('user_email') or ''

    def attempt(self, user_id):
        try:
            if self.store.select_one(SUBMISSIONS, filters={'user_id': user_id}):
                # Exists but could not be updated by the previous tier
                return TierResult(TierOutcome.NOT_CONFIRMED, self.name)

            module_count = self.store.count(MODULES)
            timestamp = now_iso()
            self.store.insert(SUBMISSIONS, {
                'user_id': user_id,
                'user_email': self._user_email(user_id),
                'current_module': module_count + 1,
                'status': STATUS_COMPLETED,
                'completed': True,
                'started_at': timestamp,
                'completed_at': timestamp,
            })

            verified = self.store.select_one(SUBMISSIONS, filters={'user_id': user_id})
            if not verified or not verified.get('completed'):
                raise VerificationError(
                    'A submissão foi criada mas não aparece como concluída',
                    details={'user_id': user_id},
                    origin='create',
                )
        except (StoreError, VerificationError) as e:
            logger.error(f"[Completion:create] {user_id}: {e.message}")
            return TierResult(TierOutcome.ERROR, self.name, error=format_error(e, context='complete_quiz_create'))
        return TierResult(TierOutcome.CONFIRMED, self.name, submission=verified)


@dataclass
class CompletionResult:
    success: bool
    method: str = None
    webhook_sent: bool = False
    consolidated: bool = False
    submission_id: str = None
    error: dict = None
    attempts: list = field(default_factory=list)

    def to_dict(self):
        if not self.success:
            return {'success': False, 'error': self.error, 'attempts': self.attempts}
        return {
            'success': True,
            'method': self.method,
            'webhookSent': self.webhook_sent,
            'consolidated': self.consolidated,
            'submissionId': self.submission_id,
        }


class CompletionService:
    def __init__(self, store, consolidation, webhook, tiers=None):
        self.store = store
        self.consolidation = consolidation
        self.webhook = webhook
        self.tiers = tiers if tiers is not None else [
            RpcCompletionTier(store),
            DirectUpdateCompletionTier(store),
            CreateCompleteCompletionTier(store),
        ]

    def _confirm(self, user_id):
        attempts = []
        last_error = None
        for tier in self.tiers:
            result = tier.attempt(user_id)
            attempts.append({'method': tier.name, 'outcome': result.outcome.value})
            if result.confirmed:
                return result, attempts, None
            if result.error:
                last_error = result.error
        return None, attempts, last_error

    def _lookup_submission(self, user_id):
        try:
            return self.store.select_one(SUBMISSIONS, filters={'user_id': user_id})
        except StoreError as e:
            logger.error(f"[Completion] Could not read the completed submission for {user_id}: {e.message} ({e.code})")
            return None

    def complete_quiz_manually(self, user_id):
        logger.info(f"[Completion] Completing quiz for user {user_id}")
        confirmed, attempts, last_error = self._confirm(user_id)

        if not confirmed:
            error = last_error or format_error(
                'Não foi possível concluir o questionário',
                context='complete_quiz',
                code='COMPLETION_FAILED',
                hint='Tente novamente ou entre em contato com o suporte',
            )
            logger.error(f"[Completion] All strategies failed for {user_id}: {error.get('message')}")
            return CompletionResult(success=False, error=error, attempts=attempts)

        submission = confirmed.submission or self._lookup_submission(user_id) or {}
        submission_id = submission.get('id')
        logger.info(f"[Completion] Confirmed via {confirmed.method} (submission {submission_id})")

        consolidated = False
        if submission_id:
            try:
                self.consolidation.rebuild(submission_id)
                consolidated = True
            except QuizError as e:
                logger.error(f"[Completion] Consolidation failed for {submission_id}: {e.message}")

        webhook_sent = False
        if submission_id:
            webhook_sent = self.webhook.send_quiz_data(submission_id).success

        return CompletionResult(
            success=True,
            method=confirmed.method,
            webhook_sent=webhook_sent,
            consolidated=consolidated,
            submission_id=submission_id,
            attempts=attempts,
        )
