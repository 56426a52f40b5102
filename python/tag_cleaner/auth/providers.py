"""
Credential provider implementations.

Reads Docker Hub credentials from a Kubernetes secret of type
kubernetes.io/dockerconfigjson.
"""

import base64
import json
import logging
from typing import Any, Dict, Optional, Tuple

# Keys Docker clients use for Docker Hub in .dockerconfigjson "auths"
DOCKER_HUB_HOSTS = ("index.docker.io", "docker.io", "registry-1.docker.io", "hub.docker.com")

Credentials = Tuple[Optional[str], Optional[str]]


def _load_kubernetes_config():
    """Helper function to load Kubernetes configuration.

    Tries in-cluster config first, then falls back to local kubeconfig.

    Raises:
        Exception if both methods fail
    """
    try:
        from kubernetes.config import load_incluster_config

        load_incluster_config()
    except Exception:
        from kubernetes.config import load_kube_config

        load_kube_config()


def _get_kubernetes_core_client():
    """Helper function to get Kubernetes CoreV1Api client.

    Returns:
        CoreV1Api instance

    Raises:
        ImportError if kubernetes package is not available
    """
    from kubernetes import client as k8s_client

    _load_kubernetes_config()
    return k8s_client.CoreV1Api()


def _host_of(url: str) -> str:
    host = url.split("://", 1)[-1]
    return host.split("/")[0].split(":")[0].lower()


def is_docker_hub_entry(auth_url: str) -> bool:
    """True if a .dockerconfigjson auths key refers to Docker Hub."""
    host = _host_of(auth_url)
    return host in DOCKER_HUB_HOSTS




def _read_dockerconfig(core_v1, secret_name: str, namespace: str) -> Dict[str, Any]:
    """Decoded .dockerconfigjson of a secret; empty when the secret has none."""
    secret = core_v1.read_namespaced_secret(name=secret_name, namespace=namespace)
    encoded = (secret.data or {}).get(".dockerconfigjson")
    if not encoded:
        return {}
    return json.loads(base64.b64decode(encoded))


def _entry_credentials(entry: Dict[str, Any]) -> Credentials:
    """username/password of one "auths" entry; the base64 "auth" field fills gaps."""
    username, password = entry.get("username"), entry.get("password")
    if (not username or not password) and entry.get("auth"):
        user, sep, secret = base64.b64decode(entry["auth"]).decode("utf-8").partition(":")
        if sep:
            username, password = username or user, password or secret
    return username, password


def get_credentials_from_k8s_secret(secret_name: str, namespace: str) -> Credentials:
    """Docker Hub (username, password) from a kubernetes.io/dockerconfigjson secret.

    Returns (None, None) when the cluster or secret cannot be read or the
    secret has no Docker Hub entry. Missing credentials are then reported
    by config validation.
    """
    from kubernetes.client.rest import ApiException

    source = f"{namespace}/{secret_name}"
    try:
        dockerconfig = _read_dockerconfig(_get_kubernetes_core_client(), secret_name, namespace)
        for auth_url, entry in (dockerconfig.get("auths") or {}).items():
            if not is_docker_hub_entry(auth_url):
                continue
            username, password = _entry_credentials(entry)
            if username or password:
                logging.info(f"Using Docker Hub credentials from secret {source}")
                return username, password
    except ApiException as e:
        logging.warning(f"Cannot read secret {source}: HTTP {e.status}")
        return None, None
    except Exception as e:
        logging.warning(f"Could not read credentials from Kubernetes secret {source}: {e}")
        return None, None

    logging.debug(f"Secret {source} has no Docker Hub credentials")
    return None, None
