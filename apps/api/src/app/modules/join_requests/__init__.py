"""
School Join Requests Module

Handles admitting users into schools:
1. Join requests (self-submitted or seeded by school administration)
2. Acceptance, which atomically creates the role membership and issues a
   school-scoped token
3. Rejection, edit and delete of requests
4. Direct join by school username and per-role join code

API Endpoints are mounted under /school-join-requests.
"""

from .router import router

__all__ = ["router"]
