from typing import Any, NoReturn, TypeVar

from pydantic import BaseModel


def assert_never(v: Any) -> NoReturn:
    """For exhaustive enum checks etc"""
    raise TypeError(v)


B = TypeVar("B", bound=BaseModel)
def pyd_replace(model: B, **kwargs) -> B:
    """Like dataclasses.replace but for pydantic"""
    return model.model_copy(update=kwargs)
