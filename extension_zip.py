import shutil, zipfile, requests
from io import BytesIO
from pathlib import Path

def download_icons(images_dir: Path, icons: dict[str, str], timeout: int = 20):
    images_dir.mkdir(parents=True, exist_ok=True)
    for filename, url in icons.items():
        r = requests.get(url, timeout=timeout)
        if r.status_code != 200:
            raise RuntimeError(f"Failed to download {url}: {r.status_code}")
        (images_dir / filename).write_bytes(r.content)
    print(f">> Downloaded {len(icons)} extension icon(s)", flush=True)

def ensure_extension_files(ext_cfg: dict) -> Path:
    """Assemble the extension folder from the project sources the first time it is needed."""
    ext_dir = Path(ext_cfg["dir"])
    if ext_dir.exists():
        return ext_dir

    print(">> Creating extension files…", flush=True)
    src = Path(ext_cfg["source_dir"])
    ext_dir.mkdir(parents=True, exist_ok=True)
    for name in ext_cfg.get("files", []):
        if (src / name).exists():
            shutil.copyfile(src / name, ext_dir / name)
        else:
            print(f">> Warning: source file {name} not found", flush=True)

    styles = ext_dir / "styles.css"
    if not styles.exists() and (src / "browser-extension-styles.css").exists():
        shutil.copyfile(src / "browser-extension-styles.css", styles)

    try:
        download_icons(ext_dir / "images", ext_cfg.get("icons", {}))
    except (requests.RequestException, RuntimeError):
        # half-built folder would be served as-is next time
        shutil.rmtree(ext_dir, ignore_errors=True)
        raise
    return ext_dir

def build_zip(ext_dir: Path) -> bytes:
    buf = BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
        for p in sorted(ext_dir.rglob("*")):
            if p.is_file():
                zf.write(p, p.relative_to(ext_dir).as_posix())
    data = buf.getvalue()
    print(f">> Extension ZIP built: {len(data)} total bytes", flush=True)
    return data
