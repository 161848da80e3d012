from urllib.parse import quote

from fastapi import Request

from cdnrelay.services.uploads import public_path


def _first_hop(value: str) -> str:
    # Proxies append to these headers; the client-facing hop is the first entry.
    return value.split(",", 1)[0].strip()


def _parse_forwarded(value: str) -> tuple[str | None, str | None]:
    proto = host = None
    for part in _first_hop(value).split(";"):
        if "=" in part:
            k, v = part.split("=", 1)
            k = k.strip().lower()
            v = v.strip().strip('"')
            if k == "proto":
                proto = v
            elif k == "host":
                host = v
    return proto, host


def external_base_url(request: Request) -> str:
    configured = request.app.state.settings.PUBLIC_BASE_URL
    if configured:
        return configured.rstrip("/")

    fwd = request.headers.get("forwarded")
    if fwd:
        proto, host = _parse_forwarded(fwd)
        if proto and host:
            return f"{proto}://{host}"

    proto = request.headers.get("x-forwarded-proto")
    host = request.headers.get("x-forwarded-host") or request.headers.get("host")
    if proto and host:
        return f"{_first_hop(proto)}://{_first_hop(host)}"

    return str(request.base_url).rstrip("/")


def build_external_url(request: Request, path: str) -> str:
    if not path.startswith("/"):
        path = "/" + path
    return external_base_url(request) + quote(path, safe="/")


def public_file_url(request: Request, short_name: str) -> str:
    """Absolute URL under which ``short_name`` is served."""
    return build_external_url(request, public_path(short_name))
