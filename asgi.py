"""
asgi.py -- Application assembly for F1 Stats.

This is the ONLY file that imports from both api/ and web/. It joins the two
independent layers into a single ASGI app without coupling them to each other.
api/main.py knows nothing about web/; web/routes.py knows nothing about api/.

HTTP errors are split here too: paths under /api/ keep the JSON envelope from
api/main.py, every other path gets the HTML error page from web/routes.py.

Run with:  uvicorn asgi:app --reload
"""

from fastapi import Request
from fastapi.responses import Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.main import app, http_exception_handler
from web.routes import render_http_error
from web.routes import router as web_router

# Mount the web UI router here, not in api/main.py.
app.include_router(web_router, tags=["Web UI"])


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> Response:
    if request.url.path.startswith("/api/"):
        return await http_exception_handler(request, exc)
    return render_http_error(request, exc)
