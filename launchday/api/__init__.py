"""HTTP surface."""

from .server import create_app, outcome_response, actor_from_request, API_PREFIX

__all__ = ['create_app', 'outcome_response', 'actor_from_request', 'API_PREFIX']
