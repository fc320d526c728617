import orjson
from typing import Any, Union

def dumps(obj: Any, **kwargs) -> str:
    """Сериализует объект в JSON-строку с поддержкой datetime."""
    options = orjson.OPT_NON_STR_KEYS
    if kwargs.get('indent'):
        options |= orjson.OPT_INDENT_2
    if kwargs.get('sort_keys'):
        options |= orjson.OPT_SORT_KEYS
    return orjson.dumps(obj, default=str, option=options).decode('utf-8')

def loads(s: Union[str, bytes], **kwargs) -> Any:
    """Десериализует JSON в объект Python; ошибка формата - ValueError."""
    if isinstance(s, str):
        s = s.encode('utf-8')
    return orjson.loads(s)
