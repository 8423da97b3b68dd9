import logging
from datetime import datetime, timedelta

from sistema_mar.errors import StoreError, QuizError
from sistema_mar.store import (
    AUDIT_LOG, SYSTEM_CONFIG, PROFILES, SUBMISSIONS, ANSWERS, RESPOSTAS,
)
from sistema_mar.utils import now_iso, parse_datetime

logger = logging.getLogger(__name__)

SUBMISSION_FILTERS = ('all', 'completed', 'in_progress', 'review_pending')


class AdminService:
    def __init__(self, store):
        self.store = store

    # --- Audit log ---
    def log_action(self, admin_id, action, target_id=None, details=None):
        """Audit failures never block the audited action."""
        try:
            self.store.insert(AUDIT_LOG, {
                'admin_user_id': admin_id,
                'action': action,
                'target_id': str(target_id) if target_id is not None else None,
                'details': details,
            })
        except StoreError as e:
            logger.warning(f"[Audit] Could not record '{action}' by {admin_id}: {e.message}")

    def recent_actions(self, limit=50):
        rows = self.store.select(AUDIT_LOG, order='created_at', desc=True, limit=limit)
        admin_ids = list({r['admin_user_id'] for r in rows})
        emails = {}
        if admin_ids:
            emails = {p['id']: p.get('user_email') for p in self.store.select(PROFILES, columns='id, user_email', filters={'id': admin_ids})}
        for row in rows:
            row['admin_email'] = emails.get(row['admin_user_id']) or ''
        return rows

    # --- System config ---
    def get_config(self, key, default=None):
        row = self.store.select_one(SYSTEM_CONFIG, filters={'key': key})
        return row['value'] if row and row.get('value') is not None else default

    def set_config(self, key, value):
        self.store.upsert(SYSTEM_CONFIG, {'key': key, 'value': value, 'updated_at': now_iso()}, on_conflict='key')

    def all_config(self):
        return {row['key']: row.get('value') for row in self.store.select(SYSTEM_CONFIG, order='key')}

    # --- Metrics ---
    def metrics(self):
        now = datetime.utcnow()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        total_users = self.store.count(PROFILES)
        new_this_month = self.store.count(PROFILES, gte={'created_at': month_start.isoformat()})
        completed = self.store.count(SUBMISSIONS, filters={'completed': True})
        started = self.store.count(SUBMISSIONS)

        active_cutoff = now - timedelta(days=30)
        active = 0
        for user in self.store.list_auth_users():
            last_sign_in = parse_datetime(user.get('last_sign_in_at'))
            if last_sign_in and last_sign_in >= active_cutoff:
                active += 1

        return {
            'totalUsers': total_users,
            'activeUsers': active,
            'newUsersThisMonth': new_this_month,
            'completedSubmissions': completed,
            'inProgressSubmissions': started - completed,
            'notStarted': max(total_users - started, 0),
        }

    # --- Submissions ---
    def list_submissions(self, status='all'):
        if status not in SUBMISSION_FILTERS:
            status = 'all'
        filters = None
        if status == 'completed':
            filters = {'completed': True}
        elif status in ('in_progress', 'review_pending'):
            filters = {'completed': False, 'status': status}

        submissions = self.store.select(SUBMISSIONS, filters=filters, order='started_at', desc=True)
        user_ids = list({s['user_id'] for s in submissions})
        profiles = {}
        if user_ids:
            profiles = {p['id']: p for p in self.store.select(PROFILES, filters={'id': user_ids})}
        for s in submissions:
            profile = profiles.get(s['user_id'], {})
            s['full_name'] = profile.get('full_name') or ''
            s['user_email'] = s.get('user_email') or profile.get('user_email') or ''
        return submissions

    def delete_submission(self, submission_id, admin_id=None):
        submission = self.store.select_one(SUBMISSIONS, filters={'id': submission_id})
        if not submission:
            raise QuizError('Submissão não encontrada', code='NOT_FOUND', details={'submission_id': submission_id})
        self.store.delete(ANSWERS, {'submission_id': submission_id})
        self.store.delete(RESPOSTAS, {'submission_id': submission_id})
        self.store.delete(SUBMISSIONS, {'id': submission_id})
        logger.info(f"[Admin] Submission {submission_id} deleted")
        if admin_id:
            self.log_action(admin_id, 'delete_submission', submission_id, {'user_id': submission['user_id']})
        return submission

    def mark_processed(self, submission_id, processed=True):
        rows = self.store.update(SUBMISSIONS, {'webhook_processed': processed}, {'id': submission_id})
        if not rows:
            raise QuizError('Submissão não encontrada', code='NOT_FOUND', details={'submission_id': submission_id})
        self.store.update(RESPOSTAS, {'webhook_processed': processed}, {'submission_id': submission_id})
        return rows[0]
