"""Input validation for identifiers and WHERE fragments."""

import re
from typing import Any, Iterable, Mapping, Optional, Union

from pydantic import BaseModel, ValidationError

from db_services.exceptions import DbValidationError

Pairs = Union[Mapping[str, Any], Iterable[tuple[str, Any]]]


class Validator:
    """Rejects malformed or unsafe names before SQL generation.

    The WHERE check is a conservative denylist, not a parser. It is a second
    line of defense behind parameterized values.
    """

    IDENTIFIER_PATTERN = re.compile(r"[A-Za-z][A-Za-z0-9_]*")
    MAX_IDENTIFIER_LENGTH = 128
    UNSAFE_WHERE_PATTERN = re.compile(r"'|;|--|\*|\||<|>")

    @classmethod
    def validate_identifier(cls, name: Any, kind: str = "identifier") -> bool:
        """
        Check a table, column or procedure name.

        Args:
            name: Candidate identifier
            kind: Label used in the error message

        Returns:
            True when the name is acceptable

        Raises:
            DbValidationError: If the name is empty, too long or malformed
        """
        if not isinstance(name, str) or not name:
            raise DbValidationError(f"{kind} must be a non-empty string", field_name=name)
        if len(name) > cls.MAX_IDENTIFIER_LENGTH:
            raise DbValidationError(
                f"{kind} exceeds {cls.MAX_IDENTIFIER_LENGTH} characters",
                field_name=name,
            )
        if not cls.IDENTIFIER_PATTERN.fullmatch(name):
            raise DbValidationError(
                f"Invalid {kind} '{name}': must start with a letter and contain "
                "only letters, digits and underscores",
                field_name=name,
            )
        return True

    @classmethod
    def validate_table_name(cls, name: Any) -> bool:
        return cls.validate_identifier(name, "table name")

    @classmethod
    def validate_field_name(cls, name: Any) -> bool:
        return cls.validate_identifier(name, "field name")

    @classmethod
    def validate_where_clause(cls, text: Optional[str]) -> bool:
        """
        Check a raw WHERE fragment. Blank text means "no filter" and passes.

        Raises:
            DbValidationError: If the fragment contains ' ; -- * | < or >
        """
        if text is None or not text.strip():
            return True
        match = cls.UNSAFE_WHERE_PATTERN.search(text)
        if match:
            raise DbValidationError(
                f"Unsafe token {match.group(0)!r} in WHERE clause", field_name="where"
            )
        return True

    @classmethod
    def normalize_pairs(cls, pairs: Pairs) -> list[tuple[str, Any]]:
        """
        Validate field/value pairs and return them as an ordered list.

        Raises:
            DbValidationError: On an invalid or duplicated field name
        """
        items = list(pairs.items()) if isinstance(pairs, Mapping) else list(pairs)
        seen: set[str] = set()
        for name, _ in items:
            cls.validate_field_name(name)
            folded = name.casefold()
            if folded in seen:
                raise DbValidationError(f"Duplicate field '{name}'", field_name=name)
            seen.add(folded)
        return items

    @classmethod
    def validate_object(cls, obj: BaseModel) -> bool:
        """
        Re-run pydantic validation on a (possibly mutated) model instance.

        Raises:
            DbValidationError: If any field no longer satisfies its declaration
        """
        try:
            type(obj).model_validate(obj.model_dump())
        except ValidationError as exc:
            error = exc.errors()[0]
            field_name = ".".join(str(p) for p in error.get("loc", ()))
            raise DbValidationError(
                f"{type(obj).__name__} failed validation: {error.get('msg')}",
                field_name=field_name or None,
            ) from exc
        return True
