from functools import wraps

from flask import g, request

from storefront.errors import PermissionDenied, ValidationError

# Identity is asserted by the fronting auth service; this service trusts it
ADMIN_HEADER = "X-Admin-Id"
USER_HEADER = "X-User-Id"


def admin_required(f):
    """
    Reject the request unless the upstream auth layer marked it as an admin.

    Usage:
        @bp.route("/api/admin/payouts/<int:payout_id>/approve", methods=["POST"])
        @admin_required
        def approve(payout_id):
            ...
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        admin_id = request.headers.get(ADMIN_HEADER)
        if not admin_id:
            raise PermissionDenied("Admin access required")
        g.admin_id = admin_id
        return f(*args, **kwargs)
    return decorated_function


def current_user_id():
    return request.headers.get(USER_HEADER)


def json_body(*required):
    """The request's JSON object, checked for ``required`` keys."""
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    missing = [key for key in required if data.get(key) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", payload={"missing": missing})
    return data
