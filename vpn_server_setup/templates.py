"""
Text templates for the generated nginx, fail2ban and placeholder-page files.

Every function here is pure: it only formats strings. Writing them to disk is
the job of the nginx and fail2ban modules.
"""

from pathlib import Path
from typing import Union

from vpn_server_setup.config import Config, SetupState

PathLike = Union[str, Path]


def render_nginx_main(nginx_user: str) -> str:
    """Main nginx.conf: worker and TLS protocol settings, then an include of conf.d/*.conf."""
    return f"""user {nginx_user};
worker_processes auto;
pid /run/nginx.pid;

include /etc/nginx/modules-enabled/*.conf;

events {{
    worker_connections 2048;
    multi_accept on;
}}

http {{
    include       mime.types;
    default_type  application/octet-stream;

    sendfile on;
    tcp_nopush on;
    tcp_nodelay on;
    keepalive_timeout 65;
    types_hash_max_size 4096;
    client_max_body_size 16M;

    server_tokens off;
    access_log off;
    error_log /var/log/nginx/error.log warn;

    ssl_protocols TLSv1.2 TLSv1.3;
    ssl_prefer_server_ciphers off;

    include /etc/nginx/conf.d/*.conf;
}}
"""


def render_decoy_site(webroot: PathLike) -> str:
    """HTTP-only static site, used when there is no certificate."""
    return f"""server {{
    listen 80;
    server_name _;
    root {webroot};
    index index.html;
}}
"""


def render_proxy_site(
    domain: str,
    webroot: PathLike,
    fullchain: PathLike,
    privkey: PathLike,
    xray_path: str,
    xray_port: int,
) -> str:
    """
    HTTPS site: port 80 redirects, port 443 serves the decoy page and hands
    WebSocket upgrades on xray_path to the local Xray inbound. Plain requests
    to xray_path get a 404 so the endpoint looks like any missing page.
    """
    return f"""server {{
    listen 80;
    listen [::]:80;
    server_name {domain};
    return 301 https://$host$request_uri;
}}

server {{
    listen 443 ssl http2;
    listen [::]:443 ssl http2;
    server_name {domain};

    root {webroot};
    index index.html;

    ssl_certificate {fullchain};
    ssl_certificate_key {privkey};

    ssl_session_timeout 1d;
    ssl_session_cache shared:SSL:10m;
    ssl_session_tickets off;

    add_header Strict-Transport-Security "max-age=63072000; includeSubDomains; preload" always;
    add_header X-Content-Type-Options "nosniff" always;
    add_header X-Frame-Options "DENY" always;

    location / {{
        try_files $uri $uri/ =404;
    }}

    location {xray_path} {{
        if ($http_upgrade != "websocket") {{ return 404; }}
        proxy_pass http://127.0.0.1:{xray_port};
        proxy_redirect off;
        proxy_http_version 1.1;
        proxy_set_header Upgrade $http_upgrade;
        proxy_set_header Connection "upgrade";
        proxy_set_header Host $host;
        proxy_set_header X-Real-IP $remote_addr;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
    }}
}}
"""


def render_site(state: SetupState, config: Config) -> str:
    """Pick the proxy site when HTTPS is enabled, the plain decoy otherwise."""
    if not state.https_enabled:
        return render_decoy_site(config.WEBROOT)
    fullchain, privkey = config.certificate_paths(state.domain)
    return render_proxy_site(
        state.domain,
        config.WEBROOT,
        fullchain,
        privkey,
        config.XRAY_PATH,
        config.XRAY_INTERNAL_PORT,
    )


def render_jail() -> str:
    """jail.local enabling the aggressive sshd jail."""
    return """[DEFAULT]
bantime = 1d
findtime = 1d
maxretry = 5
ignoreip = 127.0.0.1/8 ::1

[sshd]
enabled = true
mode = aggressive
port = ssh
"""


def render_index(domain: str) -> str:
    """Decoy landing page."""
    return f"<h1>System Operational</h1><p>Verified: {domain}</p>\n"
