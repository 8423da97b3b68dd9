from datetime import datetime, timedelta
from flask import jsonify
import time
import functools
import requests


def get_now_br():
    """Returns the current time in Brasília (UTC-3)"""
    return datetime.utcnow() - timedelta(hours=3)


def now_iso():
    """UTC timestamp as stored in the database."""
    return datetime.utcnow().isoformat()


def parse_datetime(value):
    """Accepts datetime or ISO strings (with or without Z/offset). Returns naive UTC."""
    if value is None or isinstance(value, datetime):
        return value
    text = str(value).strip()
    if not text:
        return None
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None) - parsed.utcoffset()
    return parsed


def format_date_br(value, with_time=True):
    """10/02/2026 14:30 in Brasília time. Empty string for missing dates."""
    try:
        parsed = parse_datetime(value)
    except ValueError:
        return str(value)
    if not parsed:
        return ''
    local = parsed - timedelta(hours=3)
    return local.strftime('%d/%m/%Y %H:%M' if with_time else '%d/%m/%Y')


def get_date_extenso_br():
    """Returns current date in format: 10 de Fevereiro de 2026"""
    now = get_now_br()
    months = {
        1: 'Janeiro', 2: 'Fevereiro', 3: 'Março', 4: 'Abril',
        5: 'Maio', 6: 'Junho', 7: 'Julho', 8: 'Agosto',
        9: 'Setembro', 10: 'Outubro', 11: 'Novembro', 12: 'Dezembro'
    }
    return f"{now.day} de {months[now.month]} de {now.year}"


def api_response(success=True, data=None, error=None, status=200):
    """Standardized JSON response for all API routes."""
    response = {
        'success': success,
        'data': data,
        'error': error
    }
    return jsonify(response), status


def is_truthy(value):
    """Query-string style booleans: 1/true/yes/on."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on', 'sim')


def retry_request(retries=3, backoff_factor=0.3, status_codes=(500, 502, 503, 504)):
    """
    Decorator for retrying requests with exponential backoff.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            last_exception = None
            for i in range(retries + 1):
                try:
                    return func(*args, **kwargs)
                except requests.exceptions.RequestException as e:
                    last_exception = e
                    # Only retry server errors and transport failures
                    is_retryable = False
                    if getattr(e, 'response', None) is not None:
                        if e.response.status_code in status_codes:
                            is_retryable = True
                    elif isinstance(e, (requests.exceptions.Timeout, requests.exceptions.ConnectionError)):
                        is_retryable = True

                    if not is_retryable or i == retries:
                        raise

                    wait_time = backoff_factor * (2 ** i)
                    time.sleep(wait_time)
            raise last_exception
        return wrapper
    return decorator
