"""Request parsing helpers shared by the API blueprints."""

from flask import current_app, request

from grc_portal.core.exceptions import ValidationError


def json_body() -> dict:
    """Return the JSON object body of the current request or raise ValidationError."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def actor_id() -> int | None:
    """Acting account id from the X-User-Id header (set by the upstream auth proxy)."""
    raw = request.headers.get("X-User-Id")
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError("X-User-Id header must be an integer", details={"X-User-Id": raw}) from None


def pagination_args(default_limit: int = 200) -> tuple[int, int]:
    """Parse limit/offset pagination query parameters from the current request.

    Returns:
        Tuple of (limit, offset); limit is capped at MAX_PAGE_SIZE, offset >= 0.
    """
    ceiling = current_app.config.get("MAX_PAGE_SIZE", 1000)
    try:
        limit = max(min(int(request.args.get("limit", default_limit)), ceiling), 1)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    return limit, offset
