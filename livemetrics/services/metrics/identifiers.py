"""Naming rules for metric identifiers."""

from .errors import InvalidArgumentError

# Characters an identifier must never contain
INVALID_CHARS = frozenset('"!°^+-*:;,?=(){}[]$%&/@<>|\'')


def validate_identifier(metric_id: str) -> str:
    """Check a metric identifier against the naming rules.

    Args:
        metric_id: Candidate identifier

    Returns:
        The identifier, unchanged

    Raises:
        InvalidArgumentError: If the identifier is empty, contains whitespace,
            starts with a digit or contains a blacklisted character
    """
    if not isinstance(metric_id, str):
        raise InvalidArgumentError(f"Identifier must be a string, got {type(metric_id).__name__}")
    if not metric_id:
        raise InvalidArgumentError("Identifier must not be empty")
    if any(ch.isspace() for ch in metric_id):
        raise InvalidArgumentError(f"Identifier '{metric_id}' must not contain whitespace", metric_id)
    if metric_id[0].isdigit():
        raise InvalidArgumentError(f"Identifier '{metric_id}' must not start with a digit", metric_id)

    bad = sorted(INVALID_CHARS.intersection(metric_id))
    if bad:
        raise InvalidArgumentError(
            f"Identifier '{metric_id}' contains invalid characters: {''.join(bad)}", metric_id
        )
    return metric_id


def is_valid_identifier(metric_id: str) -> bool:
    """Non-raising variant of validate_identifier()."""
    try:
        validate_identifier(metric_id)
    except InvalidArgumentError:
        return False
    return True
