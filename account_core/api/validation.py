"""Request validation decorator for Flask endpoints.

@validate_request inspects the view function's signature:
- parameters named in the URL rule (path parameters) are passed through
- any other parameter must be annotated with a Pydantic BaseModel subclass
  and receives the JSON body parsed into that model

    @students_bp.post("/registrations")
    @validate_request
    def register(data: StudentRegistrationRequest):
        ...

Validation failures raise ValidationError with details:
- model: name of the schema that rejected the body
- received: the JSON body as sent, with secret fields masked
- errors: list of {field, message, expected_type}
"""

import inspect
from functools import wraps

from flask import request
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ValidationError

REDACTED_FIELDS = frozenset({"password", "new_password", "token"})
REDACTED = "***"


def _format_errors(exc: PydanticValidationError) -> list[dict]:
    return [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "expected_type": error["type"],
        }
        for error in exc.errors()
    ]


def _redact(body):
    if not isinstance(body, dict):
        return body
    return {key: REDACTED if key in REDACTED_FIELDS else value for key, value in body.items()}


def validate_request(func):
    """Parse and validate the JSON body into the annotated Pydantic model.

    Raises:
        TypeError: At decoration time if the function has no parameters or
            its first parameter is unannotated; at request time if a body
            parameter is not annotated with a BaseModel subclass
    """
    signature = inspect.signature(func)
    params = list(signature.parameters.values())

    if not params:
        raise TypeError(f"{func.__name__} has no parameters to validate")
    if params[0].annotation is inspect.Parameter.empty:
        raise TypeError(f"First parameter of {func.__name__} lacks a type annotation")

    @wraps(func)
    def wrapper(*args, **kwargs):
        view_args = request.view_args or {}

        for param in params:
            if param.name in view_args or param.name in kwargs:
                continue

            model = param.annotation
            if not (inspect.isclass(model) and issubclass(model, BaseModel)):
                raise TypeError(
                    f"Parameter '{param.name}' of {func.__name__} must be annotated "
                    f"with a Pydantic BaseModel subclass"
                )

            body = request.get_json(silent=True)
            if body is None:
                body = {}

            try:
                kwargs[param.name] = model.model_validate(body)
            except PydanticValidationError as e:
                raise ValidationError(
                    "Invalid request data",
                    {
                        "model": model.__name__,
                        "received": _redact(body),
                        "errors": _format_errors(e),
                    }
                )

        return func(*args, **kwargs)

    return wrapper
