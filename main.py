import time
from contextlib import closing

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse, Response

import db
from auth import (
    SESSION_COOKIE, STATE_COOKIE, OAuthError, authorize_url, build_user, exchange_code, new_state,
)
from config import is_production, load_config
from extension_zip import build_zip, ensure_extension_files
from github_api.client import GitHubClient
from github_api.errors import GitHubError
from pages import render_template
import routes

BROWSERS = [
    ("Chrome", "chrome://extensions"),
    ("Edge", "edge://extensions"),
    ("Brave", "brave://extensions"),
]


def create_app(cfg: dict | None = None) -> FastAPI:
    cfg = cfg or load_config()
    app = FastAPI(title=cfg["app_name"], version="1.0.0")
    app.state.cfg = cfg

    with closing(db.init_db(cfg["sessions"]["db_path"])) as con:
        purged = db.purge_expired(con)
    print(f">> Sessions: {cfg['sessions']['db_path']} ({purged} expired purged)", flush=True)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg["cors"]["origins"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        t0 = time.perf_counter()
        response = await call_next(request)
        ms = (time.perf_counter() - t0) * 1000
        print(f">> {request.method} {request.url.path} {response.status_code} {ms:.0f}ms", flush=True)
        return response

    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    app.include_router(routes.router)

    @app.get("/", response_class=PlainTextResponse)
    def root():
        return f"{cfg['app_name']} API is running"

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/login", response_class=HTMLResponse)
    def login(error: str | None = None):
        return render_template("login.html", {"title": "GitHub Authentication", "error": error})

    @app.get("/success", response_class=HTMLResponse)
    def success(request: Request):
        username = request.query_params.get("user", "GitHub")
        return render_template("success.html", {"title": "Authentication Successful", "username": username})

    @app.get("/auth/github")
    def auth_github():
        state = new_state()
        resp = RedirectResponse(authorize_url(cfg, state), status_code=302)
        resp.set_cookie(STATE_COOKIE, state, max_age=600, httponly=True, samesite="lax",
                        secure=is_production(cfg))
        return resp

    @app.get("/auth/github/callback")
    def auth_callback(request: Request, code: str = "", state: str = ""):
        if not state or state != request.cookies.get(STATE_COOKIE):
            print(">> OAuth callback: state mismatch", flush=True)
            return RedirectResponse("/login?error=Login+expired,+please+try+again", status_code=302)
        gh = cfg["github"]
        try:
            token = exchange_code(cfg, code)
            with closing(GitHubClient(token, api_url=gh["api_url"], timeout=gh["timeout"])) as client:
                user = build_user(client, token)
        except (OAuthError, GitHubError) as e:
            print(f">> OAuth callback failed: {e}", flush=True)
            return RedirectResponse("/login?error=GitHub+login+failed", status_code=302)

        sid = new_state()
        with closing(db.init_db(cfg["sessions"]["db_path"])) as con:
            db.save_session(con, sid, user, cfg["sessions"]["ttl_seconds"])
        print(f">> Logged in: {user['username']}", flush=True)

        resp = RedirectResponse(f"/success?user={user['username']}", status_code=302)
        resp.set_cookie(SESSION_COOKIE, sid, max_age=cfg["sessions"]["ttl_seconds"], httponly=True,
                        samesite="lax", secure=is_production(cfg))
        resp.delete_cookie(STATE_COOKIE)
        return resp

    @app.get("/auth/logout")
    def logout(request: Request):
        sid = request.cookies.get(SESSION_COOKIE)
        if sid:
            with closing(db.init_db(cfg["sessions"]["db_path"])) as con:
                db.delete_session(con, sid)
        resp = RedirectResponse("/", status_code=302)
        resp.delete_cookie(SESSION_COOKIE)
        return resp

    @app.get("/extension", response_class=HTMLResponse)
    def extension_page(request: Request):
        return render_template("extension.html", {
            "title": f"{cfg['app_name']} Extension",
            "card_width": "600px",
            "app_name": cfg["app_name"],
            "browsers": BROWSERS,
            "server_url": str(request.base_url).rstrip("/"),
        })

    @app.get("/extension/download")
    def extension_download():
        ext = cfg["extension"]
        try:
            data = build_zip(ensure_extension_files(ext))
        except (OSError, RuntimeError) as e:
            print(f">> Error preparing extension ZIP: {e}", flush=True)
            return PlainTextResponse("Error preparing extension for download", status_code=500)
        return Response(
            content=data,
            media_type="application/zip",
            headers={"Content-Disposition": f"attachment; filename={ext['zip_name']}"},
        )

    return app


app = create_app()

if __name__ == "__main__":
    cfg = app.state.cfg
    print(f">> {cfg['app_name']} starting on port {cfg['server']['port']}", flush=True)
    uvicorn.run(app, host=cfg["server"]["host"], port=cfg["server"]["port"])
