"""
Credential providers for Docker Hub.

Credentials normally come from DOCKER_USERNAME/DOCKER_PASSWORD. When the
cleaner runs as a Kubernetes CronJob they can instead be read from an image
pull secret (.dockerconfigjson).
"""

from tag_cleaner.auth.providers import get_credentials_from_k8s_secret

__all__ = [
    "get_credentials_from_k8s_secret",
]
