"""Cloud-init boot scripts for new servers."""

import re

INSTALL_LOG = "/var/log/cloudlaunch-install.log"
COOLIFY_INSTALL_URL = "https://cdn.coollabs.io/coolify/install.sh"


def _safe_name(server_name):
    return re.sub(r"[^a-z0-9-]", "", server_name)


def _preamble(server_name, title):
    return f"""#!/bin/bash
set +e
touch {INSTALL_LOG}
chmod 600 {INSTALL_LOG}
exec > >(tee {INSTALL_LOG}) 2>&1

echo "=================================="
echo "{title}"
echo "Server: {_safe_name(server_name)}"
echo "=================================="
"""


def coolify_cloud_init(server_name) -> str:
    """Boot script that waits for network, installs Coolify and opens its ports."""
    return _preamble(server_name, "cloudlaunch Coolify installer") + f"""
# Wait for network connectivity (cloud-init may start before the network is ready)
MAX_ATTEMPTS=30
ATTEMPTS=0
while [ $ATTEMPTS -lt $MAX_ATTEMPTS ]; do
  if curl -s --max-time 5 https://cdn.coollabs.io > /dev/null 2>&1; then
    echo "Network is ready!"
    break
  fi
  ATTEMPTS=$((ATTEMPTS + 1))
  echo "Network not ready (attempt $ATTEMPTS/$MAX_ATTEMPTS)..."
  sleep 2
done

apt-get update -y

echo "Installing Coolify..."
curl -fsSL {COOLIFY_INSTALL_URL} | bash

sleep 30

echo "Configuring firewall..."
if command -v ufw &> /dev/null; then
  ufw allow 22/tcp
  ufw allow 80/tcp
  ufw allow 443/tcp
  ufw allow 8000/tcp
  ufw allow 6001/tcp
  ufw allow 6002/tcp
  echo "y" | ufw enable || true
else
  iptables -A INPUT -p tcp --dport 8000 -j ACCEPT
  iptables -A INPUT -p tcp --dport 22 -j ACCEPT
  iptables -A INPUT -p tcp --dport 80 -j ACCEPT
  iptables -A INPUT -p tcp --dport 443 -j ACCEPT
  iptables -A INPUT -m state --state ESTABLISHED,RELATED -j ACCEPT
  mkdir -p /etc/iptables
  iptables-save > /etc/iptables/rules.v4 || true
  DEBIAN_FRONTEND=noninteractive apt-get install -y iptables-persistent || true
fi

echo "Coolify installation completed. Access it at http://YOUR_SERVER_IP:8000"
"""


def bare_cloud_init(server_name) -> str:
    """Boot script for bare servers: system updates and fail2ban only."""
    return _preamble(server_name, "cloudlaunch bare server setup") + """
apt-get update -y
DEBIAN_FRONTEND=noninteractive apt-get upgrade -y
DEBIAN_FRONTEND=noninteractive apt-get install -y fail2ban ufw
systemctl enable --now fail2ban

echo "Bare server setup completed."
"""


def cloud_init_for_mode(server_name, mode) -> str:
    if mode == "bare":
        return bare_cloud_init(server_name)
    return coolify_cloud_init(server_name)
