"""Prompt templates for the alteration and docstring flows.

Each template declares the dataclass holding its fields and the stop marker
that ends generation once the model closes the fenced answer block.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from string import Template
from typing import Any, Generic, Mapping, TypeVar

__all__ = [
    "AlterFields",
    "DocstringFields",
    "PromptTemplate",
    "TEMPLATES",
    "TemplateFieldError",
    "get_template",
]

STOP_CODE = "```"


class TemplateFieldError(ValueError):
    """Raised when a template is rendered with missing or mistyped fields."""


@dataclass(frozen=True, slots=True)
class AlterFields:
    language: str
    task: str
    snippet: str


@dataclass(frozen=True, slots=True)
class DocstringFields:
    language: str
    snippet: str


FieldsT = TypeVar("FieldsT", AlterFields, DocstringFields)


@dataclass(frozen=True, slots=True)
class PromptTemplate(Generic[FieldsT]):
    """Named ``string.Template`` bound to a typed field structure."""

    name: str
    body: str
    fields_type: type[FieldsT]
    stop_code: str = STOP_CODE

    def render(self, values: FieldsT | Mapping[str, Any]) -> str:
        """Fill the template; mappings are coerced into the template's field type first."""

        data = self._coerce(values)
        payload: dict[str, str] = {}
        for item in fields(data):
            value = getattr(data, item.name)
            if not isinstance(value, str):
                raise TemplateFieldError(
                    f"Template '{self.name}' field '{item.name}' must be a string, got {type(value).__name__}"
                )
            payload[item.name] = value
        return Template(self.body).substitute(payload)

    def _coerce(self, values: FieldsT | Mapping[str, Any]) -> FieldsT:
        if isinstance(values, self.fields_type):
            return values
        if not isinstance(values, Mapping):
            raise TemplateFieldError(f"Template '{self.name}' expects {self.fields_type.__name__} fields")
        try:
            return self.fields_type(**dict(values))
        except TypeError as exc:
            raise TemplateFieldError(f"Template '{self.name}': {exc}") from exc


_ALTER_BODY = """\
This is some ${language} code.

```${language}
${snippet}
```

The same code, altered to ${task}:

```${language}
"""

_DOCSTRING_BODY = """\
This is some ${language} code.

```${language}
${snippet}
```

The same code, with a concise and accurate docstring (or doc comment) added in the idiomatic style for ${language}:

```${language}
"""

TEMPLATES: dict[str, PromptTemplate[Any]] = {
    "alter": PromptTemplate(name="alter", body=_ALTER_BODY, fields_type=AlterFields),
    "docstring": PromptTemplate(name="docstring", body=_DOCSTRING_BODY, fields_type=DocstringFields),
}


def get_template(name: str) -> PromptTemplate[Any]:
    try:
        return TEMPLATES[name]
    except KeyError as exc:
        raise KeyError(f"Unknown prompt template: {name}") from exc
