import logging
import secrets
import string
from typing import Callable, Optional

from shortener.config import settings
from shortener.exceptions import InvalidCodeError, CodeTakenError
from shortener.utils import is_valid_short_code

logger = logging.getLogger(__name__)

ALPHABET = string.ascii_lowercase + string.ascii_uppercase + string.digits

# Однокомпонентные пути самого приложения: такой код никогда не дошел бы до редиректа
RESERVED_CODES = frozenset({"docs", "redoc", "urls"})


class ShortCodeGenerator:
    """Генерирует уникальные короткие коды или проверяет пользовательские.

    Алфавит и источник случайных байтов хранятся в экземпляре, чтобы в тестах
    их можно было подменить детерминированными.
    """

    def __init__(
        self,
        alphabet: str = ALPHABET,
        random_bytes: Callable[[int], bytes] = secrets.token_bytes,
        code_length: int = settings.DEFAULT_SHORT_CODE_LENGTH,
        max_attempts: int = settings.CODE_GENERATION_ATTEMPTS,
        min_custom_length: int = settings.MIN_CUSTOM_CODE_LENGTH,
        max_custom_length: int = settings.MAX_CUSTOM_CODE_LENGTH,
        reserved_codes: frozenset = RESERVED_CODES,
    ):
        if not alphabet:
            raise ValueError("alphabet must not be empty")
        self.alphabet = alphabet
        self.random_bytes = random_bytes
        self.code_length = code_length
        self.max_attempts = max_attempts
        self.min_custom_length = min_custom_length
        self.max_custom_length = max_custom_length
        self.reserved_codes = reserved_codes

    def random_code(self, length: int) -> str:
        """Случайный код: каждый байт отображается в символ как byte % len(alphabet)"""
        size = len(self.alphabet)
        return "".join(self.alphabet[b % size] for b in self.random_bytes(length))

    def validate_custom_code(self, custom_code: str) -> str:
        code = custom_code.strip()
        if not is_valid_short_code(code, self.min_custom_length, self.max_custom_length):
            raise InvalidCodeError(
                f"Custom code must be {self.min_custom_length}-{self.max_custom_length} "
                "characters: letters, digits, '-' or '_'"
            )
        if code in self.reserved_codes:
            raise InvalidCodeError(f"Custom code '{code}' is reserved")
        return code

    def generate(self, exists_check: Callable[[str], bool], custom_code: Optional[str] = None) -> str:
        """Предлагает код; вставку с проверкой уникальности выполняет вызывающий"""
        if custom_code is not None and custom_code.strip():
            code = self.validate_custom_code(custom_code)
            if exists_check(code):
                raise CodeTakenError(code)
            return code

        for attempt in range(self.max_attempts):
            code = self.random_code(self.code_length)
            if not exists_check(code):
                return code
            logger.debug("Short code collision on attempt %d", attempt + 1)

        # Последняя попытка длиннее и без проверки: финальный арбитр - уникальный индекс
        logger.warning("Exhausted %d attempts, falling back to length %d", self.max_attempts, self.code_length + 1)
        return self.random_code(self.code_length + 1)
