"""Server-rendered administration UI.

- served by the Core FastAPI service
- Jinja2 pages and fragments; fragments are returned inside JSON envelopes or as
  bare HTML for the popups that refresh parts of a page

Auth: an API token (or the install token) stored in an HttpOnly cookie.
"""
