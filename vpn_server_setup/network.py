import ipaddress
import re
import urllib.parse
from typing import Iterable, Optional

import requests
from rich.prompt import Prompt

from vpn_server_setup.logger import get_logger
from vpn_server_setup.ui import NordColors, console, print_error

_LABEL_RE = re.compile(r"^(?!-)[a-z0-9-]{1,63}(?<!-)$")


def get_public_ip(urls: Iterable[str], timeout: int = 10) -> Optional[str]:
    """Return the first valid address reported by the lookup services, or None."""
    logger = get_logger()
    for url in urls:
        try:
            response = requests.get(url, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.debug(f"Public IP lookup via {url} failed: {e}")
            continue

        candidate = response.text.strip()
        try:
            return str(ipaddress.ip_address(candidate))
        except ValueError:
            logger.debug(f"Invalid address from {url}: {candidate!r}")

    logger.warning("Could not determine the public IP address.")
    return None


def normalize_domain(raw: Optional[str]) -> str:
    """
    Reduce user input to a bare lowercase hostname.

    Strips scheme, path, port and a trailing dot, so "https://VPN.example.com:443/x"
    becomes "vpn.example.com". Blank input returns "".
    """
    value = (raw or "").strip().lower()
    if not value:
        return ""
    if "://" not in value:
        value = f"http://{value}"
    try:
        host = urllib.parse.urlparse(value).hostname or ""
    except ValueError:
        # Malformed input such as an unbalanced "[" is left for validation to reject
        return raw.strip().lower()
    return host.rstrip(".")


def is_valid_domain(name: str) -> bool:
    if not name or len(name) > 253:
        return False
    labels = name.split(".")
    if len(labels) < 2:
        return False
    if not all(_LABEL_RE.match(label) for label in labels):
        return False
    return labels[-1].isalpha() or labels[-1].startswith("xn--")


def prompt_domain() -> str:
    """Ask for the domain until it is blank or a valid hostname."""
    console.print(
        f"[{NordColors.YELLOW}]Enter your Domain Name (e.g., vpn.example.com). "
        f"Leave blank to SKIP SSL setup.[/]"
    )
    while True:
        raw = Prompt.ask("Domain", default="", show_default=False, console=console)
        domain = normalize_domain(raw)
        if not domain or is_valid_domain(domain):
            return domain
        print_error(f"'{raw.strip()}' is not a valid domain name.")
