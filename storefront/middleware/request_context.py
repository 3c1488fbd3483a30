import uuid

from flask import g, request, session


REQUEST_ID_HEADER = "X-Request-ID"
SHOP_ID_HEADER = "X-Shop-Id"
SESSION_KEY = "sid"
SESSION_SHOP_KEY = "shop_id"


def init_request_context(app):
    """
    Attach per-request context used by the payment flows:

    - ``g.request_id``: correlation id echoed back in the response headers
    - ``g.session_key``: stable id of the browser session (minted on first use)
    - ``g.shop_id``: the caller's shop once it is known, else None
    """

    @app.before_request
    def before_request():
        incoming = request.headers.get(REQUEST_ID_HEADER)
        g.request_id = incoming or str(uuid.uuid4())

        if SESSION_KEY not in session:
            session[SESSION_KEY] = uuid.uuid4().hex
        g.session_key = session[SESSION_KEY]

        g.shop_id = resolve_shop_id()

    @app.after_request
    def after_request(response):
        response.headers[REQUEST_ID_HEADER] = g.get("request_id", "")
        return response


def resolve_shop_id():
    """Shop of the current caller: explicit header first, then the session."""
    raw = request.headers.get(SHOP_ID_HEADER) or session.get(SESSION_SHOP_KEY)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None
