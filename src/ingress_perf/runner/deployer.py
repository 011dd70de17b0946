"""Creation of the benchmark assets."""

import logging

from kubernetes.client.rest import ApiException

from ingress_perf.cluster.assets import ROUTE_GROUP, ROUTE_PLURAL, ROUTE_VERSION, ResourceSpecs
from ingress_perf.cluster.session import ClusterSession

logger = logging.getLogger(__name__)

ALREADY_EXISTS = 409


def deploy_assets(session: ClusterSession, specs: ResourceSpecs) -> bool:
    """Create every benchmark object, tolerating the ones that already exist.

    Returns:
        True when the namespace existed before this call.

    Raises:
        ApiException: any creation failure other than "already exists".
    """
    logger.info(f"Deploying benchmark assets in namespace {specs.namespace}")
    namespace_existed = False
    try:
        session.core.create_namespace(body=specs.namespace_object())
    except ApiException as e:
        if e.status != ALREADY_EXISTS:
            raise
        logger.info(f"Namespace {specs.namespace} already exists")
        namespace_existed = True

    _create(session.apps.create_namespaced_deployment, namespace=specs.namespace, body=specs.server_deployment())
    _create(session.rbac.create_cluster_role_binding, body=specs.cluster_role_binding())
    _create(session.apps.create_namespaced_deployment, namespace=specs.namespace, body=specs.client_deployment())
    _create(session.core.create_namespaced_service, namespace=specs.namespace, body=specs.service())
    for route in specs.routes():
        _create(
            session.custom.create_namespaced_custom_object,
            group=ROUTE_GROUP,
            version=ROUTE_VERSION,
            namespace=specs.namespace,
            plural=ROUTE_PLURAL,
            body=route,
        )
    return namespace_existed


def _create(create, **kwargs) -> None:
    try:
        create(**kwargs)
    except ApiException as e:
        if e.status != ALREADY_EXISTS:
            raise
