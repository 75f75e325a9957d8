"""Kubernetes client bootstrap helpers."""

import logging

from kubernetes import client, config
from kubernetes.client.rest import ApiException

logger = logging.getLogger(__name__)

HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409
HTTP_GONE = 410


def create_core_api(kubeconfig_path: str | None = None) -> client.CoreV1Api:
    """Load cluster credentials and return a CoreV1 API client.

    Tries in-cluster configuration first and falls back to the local kubeconfig.
    """
    if kubeconfig_path:
        config.load_kube_config(config_file=kubeconfig_path)
        logger.info(f"Loaded kubeconfig from {kubeconfig_path}")
    else:
        try:
            config.load_incluster_config()
            logger.info("Loaded in-cluster Kubernetes configuration")
        except config.ConfigException:
            config.load_kube_config()
            logger.info("Loaded default kubeconfig")

    return client.CoreV1Api()


def api_status(error: ApiException) -> int | None:
    return getattr(error, "status", None)
