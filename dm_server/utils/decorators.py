"""Route decorators for common patterns like error handling and authentication.

This module provides reusable decorators to reduce boilerplate in route handlers.
"""
import functools
import logging
from typing import Callable

from flask import request

from dm_server.exception.UnauthorizedError import UnauthorizedError
from dm_server.exception.NotFoundError import NotFoundError
from dm_server.exception.ConcurrentUpdateError import ConcurrentUpdateError
from dm_server.exception.InvalidTransitionError import InvalidTransitionError
from dm_server.utils.helpers import respond_error
from dm_server.security.authentication import get_auth_payload

logger = logging.getLogger(__name__)


def handle_errors(func: Callable) -> Callable:
    """Decorator to handle common exceptions in route handlers.

    Catches:
    - UnauthorizedError -> 401
    - NotFoundError -> 404
    - InvalidTransitionError -> 409
    - ConcurrentUpdateError -> 409
    - ValueError -> 400
    - Other exceptions -> 500

    Usage:
        @app.route('/example')
        @handle_errors
        def example_route():
            ...
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except UnauthorizedError as e:
            logger.warning("Unauthorized: %s", e)
            return respond_error(str(e), status=401)
        except NotFoundError as e:
            logger.info("Not found: %s", e)
            return respond_error(str(e), status=404)
        except InvalidTransitionError as e:
            logger.info("Rejected transition: %s", e)
            return respond_error(str(e), status=409)
        except ConcurrentUpdateError as e:
            logger.warning("Update conflict: %s", e)
            return respond_error(str(e), status=409)
        except ValueError as e:
            logger.warning("Validation error: %s", e)
            return respond_error(str(e), status=400)
        except Exception:
            logger.exception("Unexpected error in %s", func.__name__)
            return respond_error('Server error', status=500)
    return wrapper


def require_auth(func: Callable) -> Callable:
    """Decorator to require authentication and inject payload into handler.

    The decorated function receives `auth_payload` as a keyword argument.

    Usage:
        @app.route('/protected')
        @require_auth
        def protected_route(auth_payload):
            user_id = auth_payload.get('user_id')
            ...
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        payload = get_auth_payload(request)
        kwargs['auth_payload'] = payload
        return func(*args, **kwargs)
    return wrapper


def log_request(func: Callable) -> Callable:
    """Decorator to log request details."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger.info("%s %s called", request.method, request.path)
        return func(*args, **kwargs)
    return wrapper


# Composite decorators for common patterns

def protected_route(func: Callable) -> Callable:
    """Composite decorator: handle_errors + require_auth + log_request."""
    return handle_errors(require_auth(log_request(func)))
