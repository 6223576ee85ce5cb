"""
VPN Server Setup

Provisions a VPN front end: nginx decoy site with a WebSocket reverse proxy,
a Let's Encrypt certificate, a fail2ban SSH jail and the 3x-ui panel.
"""

APP_NAME: str = "VPN Server Setup"
VERSION: str = "1.0.0"
