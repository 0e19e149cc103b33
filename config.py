import copy, os, yaml
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE = Path(__file__).resolve().parent

DEFAULTS = {
    "app_name": "ChatGPT GitHub Integration",
    "env": "development",
    "server": {"host": "0.0.0.0", "port": 3000},
    "cors": {"origins": ["https://chat.openai.com"]},
    "github": {
        "api_url": "https://api.github.com",
        "oauth_url": "https://github.com/login/oauth",
        "client_id": "",
        "client_secret": "",
        "callback_url": "",
        "scope": ["repo", "user", "workflow"],
        "timeout": 20,
        "blob_workers": 1,
    },
    "sessions": {"db_path": str(BASE / "data" / "sessions.db"), "ttl_seconds": 24 * 60 * 60},
    "extension": {
        "dir": str(BASE / "extension"),
        "source_dir": str(BASE),
        "zip_name": "chatgpt-github-integration.zip",
        "files": ["manifest.json", "popup.html", "popup.js", "background.js", "content.js", "styles.css"],
        "icons": {
            "icon16.png": "https://raw.githubusercontent.com/JJP123/simpleicons/master/icons/github/github-16.png",
            "icon48.png": "https://raw.githubusercontent.com/JJP123/simpleicons/master/icons/github/github-48.png",
            "icon128.png": "https://raw.githubusercontent.com/JJP123/simpleicons/master/icons/github/github-128.png",
        },
    },
}

# env var -> (section, key, cast)
ENV_OVERRIDES = {
    "GITHUB_CLIENT_ID": ("github", "client_id", str),
    "GITHUB_CLIENT_SECRET": ("github", "client_secret", str),
    "GITHUB_CALLBACK_URL": ("github", "callback_url", str),
    "GITHUB_API_URL": ("github", "api_url", str),
    "PORT": ("server", "port", int),
    "SESSION_DB": ("sessions", "db_path", str),
}


def _merge(base: dict, over: dict) -> dict:
    for k, v in over.items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _merge(base[k], v)
        else:
            base[k] = v
    return base


def _expand(v):
    if isinstance(v, str):
        return os.path.expandvars(v)
    if isinstance(v, list):
        return [_expand(x) for x in v]
    if isinstance(v, dict):
        return {k: _expand(x) for k, x in v.items()}
    return v


def load_config(path: str | Path | None = None) -> dict:
    """DEFAULTS <- config.yaml <- environment."""
    cfg = copy.deepcopy(DEFAULTS)
    path = Path(path or os.getenv("RELAY_CONFIG", BASE / "config.yaml"))
    if path.exists():
        print(f">> Loading {path.name} …", flush=True)
        _merge(cfg, _expand(yaml.safe_load(path.read_text(encoding="utf-8")) or {}))

    for var, (section, key, cast) in ENV_OVERRIDES.items():
        val = os.getenv(var)
        if val:
            cfg[section][key] = cast(val)
    if os.getenv("CLIENT_ORIGIN"):
        cfg["cors"]["origins"] = [o.strip() for o in os.environ["CLIENT_ORIGIN"].split(",") if o.strip()]
    if os.getenv("RELAY_ENV"):
        cfg["env"] = os.environ["RELAY_ENV"]

    # relative paths are relative to the project, not the CWD
    for section, key in (("sessions", "db_path"), ("extension", "dir"), ("extension", "source_dir")):
        cfg[section][key] = str(BASE / cfg[section][key])
    return cfg


def is_production(cfg: dict) -> bool:
    return cfg.get("env") == "production"
