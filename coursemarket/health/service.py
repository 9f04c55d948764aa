from typing import Any, Dict
from urllib.parse import urlparse
import socket

from coursemarket.config import SUPABASE_URL

TABLES = ("courses", "carts", "cart_items", "payments", "enrollments")


def _check_table(client, name: str) -> Dict[str, Any]:
    try:
        res = client.table(name).select("id").limit(1).execute()
        return {"ok": True, "rows": len(res.data or [])}
    except Exception as e:
        return {"ok": False, "error": str(e)}


def health_supabase_info(container) -> Dict[str, Any]:
    """
    Diagnostic Supabase: résolution DNS de l'hôte puis lecture d'une ligne par table.
    En stockage mémoire, seul le mode est renvoyé.
    """
    info: Dict[str, Any] = {"storage": container.storage, "connect_ok": False, "error": None, "tables": {}}
    if container.storage != "supabase":
        info["connect_ok"] = None
        return info

    hostname = urlparse(SUPABASE_URL).hostname if SUPABASE_URL else None
    info["hostname"] = hostname
    if hostname:
        try:
            socket.getaddrinfo(hostname, 443)
            info["dns_ok"] = True
        except Exception as e:
            info["dns_ok"] = False
            info["dns_error"] = str(e)

    client = container.catalog.client
    for t in TABLES:
        info["tables"][t] = _check_table(client, t)
    info["connect_ok"] = all(t["ok"] for t in info["tables"].values())
    return info
