# exams/remarks.py

"""
Report card remarks.

Remarks are phrased by a chat-completions service (OpenRouter) when one is
configured. Whatever happens on the network, a grade based remark is always
available, so a marksheet is never held back by the remark.

The client class is read from settings.MARKSHEET_REMARK_CLIENT (dotted path)
and only needs a ``complete(messages, temperature, max_tokens)`` method that
returns text or raises RemarkServiceUnavailable.
"""

from django.conf import settings
from django.utils.module_loading import import_string
import requests
import logging

from .exceptions import RemarkServiceUnavailable

logger = logging.getLogger(__name__)


FALLBACK_REMARKS = {
    'A+': "Excellent",
    'A': "Excellent",
    'B': "Very Good",
    'C': "Good",
    'D': "Fair",
    'F': "Needs Improvement",
}

REMARK_SYSTEM_PROMPT = "You are a kind, concise, and experienced school teacher providing feedback."
REMARK_TEMPERATURE = 0.6
REMARK_MAX_TOKENS = 30


def fallback_remark(grade):
    return FALLBACK_REMARKS.get(grade, FALLBACK_REMARKS['F'])


# =============================================================================
# OPENROUTER CLIENT
# =============================================================================

_http_session = None


def get_http_session():
    """One pooled session shared by every client in the process"""
    global _http_session
    if _http_session is None:
        _http_session = requests.Session()
    return _http_session


class OpenRouterClient:
    """Minimal OpenRouter chat-completions client"""

    def __init__(self, api_key=None, base_url=None, model=None, timeout=None, session=None):
        config = getattr(settings, 'OPENROUTER', {})
        self.api_key = api_key if api_key is not None else config.get('API_KEY', '')
        self.base_url = (base_url or config.get('BASE_URL') or 'https://openrouter.ai/api/v1').rstrip('/')
        self.model = model or config.get('MODEL') or 'meta-llama/llama-3.3-70b-instruct:free'
        self.timeout = timeout if timeout is not None else config.get('TIMEOUT', 10)
        self.referer = config.get('REFERER', '')
        self.title = config.get('TITLE', '')
        self.session = session or get_http_session()

    @property
    def is_configured(self):
        return bool(self.api_key)

    def _headers(self):
        headers = {
            'Authorization': f"Bearer {self.api_key}",
            'Content-Type': 'application/json',
        }
        if self.referer:
            headers['HTTP-Referer'] = self.referer
        if self.title:
            headers['X-Title'] = self.title
        return headers

    def complete(self, messages, temperature=REMARK_TEMPERATURE, max_tokens=None):
        """
        Run one chat completion and return the stripped text.

        Raises:
            RemarkServiceUnavailable: not configured, network failure,
                timeout, HTTP error or an empty/unexpected answer
        """
        if not self.is_configured:
            raise RemarkServiceUnavailable("OpenRouter API key is not configured")

        payload = {
            'model': self.model,
            'messages': messages,
            'temperature': temperature,
        }
        if max_tokens:
            payload['max_tokens'] = max_tokens

        try:
            response = self.session.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise RemarkServiceUnavailable(f"OpenRouter request failed: {e}") from e
        except ValueError as e:
            raise RemarkServiceUnavailable("OpenRouter returned invalid JSON") from e

        try:
            text = data['choices'][0]['message']['content']
        except (KeyError, IndexError, TypeError) as e:
            raise RemarkServiceUnavailable("OpenRouter response has no completion") from e

        text = (text or '').strip()
        if not text:
            raise RemarkServiceUnavailable("OpenRouter returned an empty completion")
        return text


# =============================================================================
# REMARK SYNTHESIZER
# =============================================================================

class RemarkSynthesizer:
    """Turns an aggregated result into a short teacher's remark"""

    def __init__(self, client=None):
        self.client = client

    @staticmethod
    def build_prompt(student_name, subject_results):
        lines = "\n".join(
            f"• {row['subject_name']}: {row['marks_obtained']}/{row['total_marks']} ({row['grade']})"
            for row in subject_results
        )
        return (
            "You are a teacher writing brief report card feedback.\n"
            "Analyze the student's performance based on subjects and grades.\n\n"
            f"Student: {student_name or 'Unknown Student'}\n\n"
            f"Subjects and marks:\n{lines}\n\n"
            "Write a short, 1-2 sentence remark focusing on strengths and improvement areas.\n"
            "Keep it encouraging and personalized."
        )

    def generate(self, student_name, subject_results, overall_grade):
        """
        Returns:
            dict: {'text': remark, 'source': 'generated' | 'fallback'}
        """
        fallback = {'text': fallback_remark(overall_grade), 'source': 'fallback'}

        if self.client is None or not getattr(self.client, 'is_configured', True):
            return fallback

        messages = [
            {'role': 'system', 'content': REMARK_SYSTEM_PROMPT},
            {'role': 'user', 'content': self.build_prompt(student_name, subject_results)},
        ]
        try:
            text = self.client.complete(
                messages,
                temperature=REMARK_TEMPERATURE,
                max_tokens=REMARK_MAX_TOKENS,
            )
        except RemarkServiceUnavailable as e:
            logger.warning(f"Remark service unavailable for {student_name}, using grade remark: {e}")
            return fallback
        except Exception as e:
            logger.warning(f"Remark client error for {student_name}, using grade remark: {e}")
            return fallback

        text = (text or '').strip()
        if not text:
            return fallback
        return {'text': text, 'source': 'generated'}

    def synthesize(self, student_name, subject_results, overall_grade):
        return self.generate(student_name, subject_results, overall_grade)['text']


def get_remark_client():
    """Instantiate the configured remark client, or None when disabled"""
    path = getattr(settings, 'MARKSHEET_REMARK_CLIENT', None)
    if not path:
        return None
    try:
        client_class = import_string(path)
    except ImportError:
        logger.error(f"MARKSHEET_REMARK_CLIENT '{path}' cannot be imported, remarks fall back to grades")
        return None
    return client_class()


def get_remark_synthesizer():
    return RemarkSynthesizer(get_remark_client())
