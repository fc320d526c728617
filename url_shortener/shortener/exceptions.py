class ShortenerError(Exception):
    """Базовое исключение сервиса сокращения ссылок"""


class ValidationError(ShortenerError):
    """Входные данные отклонены, операция не выполнялась"""


class InvalidUrlError(ValidationError):
    pass


class InvalidCodeError(ValidationError):
    pass


class ConflictError(ShortenerError):
    pass


class CodeTakenError(ConflictError):
    def __init__(self, short_code: str):
        super().__init__(f"Short code '{short_code}' is already taken")
        self.short_code = short_code


class NotFoundError(ShortenerError):
    pass


class AuthorizationError(ShortenerError):
    pass


class ExternalServiceError(ShortenerError):
    """Сбой внешнего сервиса (геолокация); наружу не пробрасывается"""


class TransientStoreConflict(ShortenerError):
    """Нарушение уникальности при вставке; повторяется генерацией нового кода"""

    def __init__(self, short_code: str):
        super().__init__(f"Short code '{short_code}' collided on insert")
        self.short_code = short_code


class CodeGenerationError(ShortenerError):
    pass
