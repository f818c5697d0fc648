"""Request helpers shared by blueprints and error handlers."""
from flask import request


def is_htmx() -> bool:
    return request.headers.get('HX-Request') == 'true'


def wants_json() -> bool:
    """JSON body, or an Accept header that prefers JSON over HTML."""
    if request.is_json:
        return True
    best = request.accept_mimetypes.best_match(['application/json', 'text/html'])
    return best == 'application/json' and request.accept_mimetypes[best] > request.accept_mimetypes['text/html']
