"""Templates of the objects deployed for a benchmark run."""

from typing import Any, Dict, List

from kubernetes import client

from ingress_perf.models import Termination

SERVER_NAME = "nginx"
SERVER_IMAGE = "quay.io/cloud-bulldozer/nginx:latest"
SERVER_HTTP_PORT = 8080
SERVER_HTTPS_PORT = 8443

CLIENT_NAME = "ingress-perf-client"
CLIENT_IMAGE = "quay.io/cloud-bulldozer/ingress-netperf:latest"
CLIENT_CLUSTER_ROLE = "system:openshift:scc:hostnetwork"

ROUTE_GROUP = "route.openshift.io"
ROUTE_VERSION = "v1"
ROUTE_PLURAL = "routes"

WORKER_SELECTOR = {"node-role.kubernetes.io/worker": ""}


def route_name(termination: str) -> str:
    """Route serving the given termination."""
    return f"{SERVER_NAME}-{Termination(termination).value}"


class ResourceSpecs:
    """Desired state of every object in the benchmark namespace."""

    def __init__(self, namespace: str):
        self.namespace = namespace

    @property
    def crb_name(self) -> str:
        return f"{CLIENT_NAME}-{self.namespace}"

    def namespace_object(self) -> client.V1Namespace:
        return client.V1Namespace(
            metadata=client.V1ObjectMeta(
                name=self.namespace,
                labels={"kubernetes.io/metadata.name": self.namespace},
            )
        )

    def server_deployment(self) -> client.V1Deployment:
        labels = {"app": SERVER_NAME}
        container = client.V1Container(
            name=SERVER_NAME,
            image=SERVER_IMAGE,
            image_pull_policy="Always",
            ports=[
                client.V1ContainerPort(name="http", container_port=SERVER_HTTP_PORT),
                client.V1ContainerPort(name="https", container_port=SERVER_HTTPS_PORT),
            ],
            readiness_probe=client.V1Probe(
                http_get=client.V1HTTPGetAction(path="/", port=SERVER_HTTP_PORT),
                period_seconds=2,
            ),
        )
        return client.V1Deployment(
            metadata=client.V1ObjectMeta(name=SERVER_NAME, namespace=self.namespace),
            spec=client.V1DeploymentSpec(
                replicas=0,
                selector=client.V1LabelSelector(match_labels=labels),
                template=client.V1PodTemplateSpec(
                    metadata=client.V1ObjectMeta(labels=labels),
                    spec=client.V1PodSpec(
                        containers=[container],
                        node_selector=dict(WORKER_SELECTOR),
                    ),
                ),
            ),
        )

    def client_deployment(self) -> client.V1Deployment:
        labels = {"app": CLIENT_NAME}
        # Keep load generators away from the nodes serving the requests
        anti_affinity = client.V1PodAntiAffinity(
            required_during_scheduling_ignored_during_execution=[
                client.V1PodAffinityTerm(
                    label_selector=client.V1LabelSelector(match_labels={"app": SERVER_NAME}),
                    topology_key="kubernetes.io/hostname",
                )
            ]
        )
        container = client.V1Container(
            name=CLIENT_NAME,
            image=CLIENT_IMAGE,
            image_pull_policy="Always",
            command=["sleep", "inf"],
        )
        return client.V1Deployment(
            metadata=client.V1ObjectMeta(name=CLIENT_NAME, namespace=self.namespace),
            spec=client.V1DeploymentSpec(
                replicas=0,
                selector=client.V1LabelSelector(match_labels=labels),
                template=client.V1PodTemplateSpec(
                    metadata=client.V1ObjectMeta(labels=labels),
                    spec=client.V1PodSpec(
                        containers=[container],
                        host_network=True,
                        node_selector=dict(WORKER_SELECTOR),
                        affinity=client.V1Affinity(pod_anti_affinity=anti_affinity),
                    ),
                ),
            ),
        )

    def service(self) -> client.V1Service:
        return client.V1Service(
            metadata=client.V1ObjectMeta(name=SERVER_NAME, namespace=self.namespace),
            spec=client.V1ServiceSpec(
                selector={"app": SERVER_NAME},
                ports=[
                    client.V1ServicePort(name="http", port=SERVER_HTTP_PORT, target_port=SERVER_HTTP_PORT),
                    client.V1ServicePort(name="https", port=SERVER_HTTPS_PORT, target_port=SERVER_HTTPS_PORT),
                ],
            ),
        )

    def routes(self) -> List[Dict[str, Any]]:
        """One route per termination variant."""
        routes = []
        for termination in Termination:
            spec: Dict[str, Any] = {
                "to": {"kind": "Service", "name": SERVER_NAME},
                "port": {"targetPort": "http"},
            }
            if termination in (Termination.PASSTHROUGH, Termination.REENCRYPT):
                spec["port"] = {"targetPort": "https"}
            if termination != Termination.HTTP:
                spec["tls"] = {"termination": termination.value}
            routes.append(
                {
                    "apiVersion": f"{ROUTE_GROUP}/{ROUTE_VERSION}",
                    "kind": "Route",
                    "metadata": {"name": route_name(termination), "namespace": self.namespace},
                    "spec": spec,
                }
            )
        return routes

    def cluster_role_binding(self) -> client.V1ClusterRoleBinding:
        return client.V1ClusterRoleBinding(
            metadata=client.V1ObjectMeta(name=self.crb_name),
            role_ref=client.V1RoleRef(
                api_group="rbac.authorization.k8s.io",
                kind="ClusterRole",
                name=CLIENT_CLUSTER_ROLE,
            ),
            subjects=[
                client.RbacV1Subject(
                    kind="ServiceAccount",
                    name="default",
                    namespace=self.namespace,
                )
            ],
        )
