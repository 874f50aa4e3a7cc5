"""Extraction of the concrete resources a command touches."""

from __future__ import annotations

import shlex
from collections.abc import Callable

from opsbot_safety.domain.plans import AffectedResource

KUBERNETES_RESOURCE_TYPES: frozenset[str] = frozenset(
    {
        "pod",
        "deployment",
        "service",
        "configmap",
        "secret",
        "ingress",
        "statefulset",
        "daemonset",
        "job",
        "cronjob",
        "namespace",
        "node",
    }
)

_DOCKER_CONTAINER_VERBS = frozenset(
    {"stop", "start", "restart", "kill", "rm", "exec", "logs", "inspect"}
)
_DOCKER_IMAGE_VERBS = frozenset({"rmi", "push", "pull"})
_DEFAULT_NAMESPACE = "default"
_NAMESPACE_FLAGS = ("-n", "--namespace")


def _tokenize(command: str) -> list[str]:
    try:
        return shlex.split(command)
    except ValueError:
        return command.split()


def _next_positional(tokens: list[str], start: int) -> str | None:
    for token in tokens[start:]:
        if not token.startswith("-"):
            return token
    return None


def _flag_value(tokens: list[str], names: tuple[str, ...]) -> str | None:
    for index, token in enumerate(tokens):
        if token in names and index + 1 < len(tokens):
            return tokens[index + 1]
        for name in names:
            if name.startswith("--") and token.startswith(f"{name}="):
                return token.split("=", 1)[1]
    return None


def parse_kubernetes_resources(tokens: list[str]) -> list[AffectedResource]:
    namespace = _flag_value(tokens, _NAMESPACE_FLAGS) or _DEFAULT_NAMESPACE
    flag_values = {
        index + 1 for index, token in enumerate(tokens) if token in _NAMESPACE_FLAGS
    }

    for index, token in enumerate(tokens[1:], start=1):
        if token.startswith("-") or index in flag_values:
            continue
        kind, sep, name = token.partition("/")
        kind = kind.lower()
        if kind not in KUBERNETES_RESOURCE_TYPES:
            continue
        if not sep:
            if index + 1 >= len(tokens) or tokens[index + 1].startswith("-"):
                continue
            name = tokens[index + 1]
        if not name:
            continue
        return [
            AffectedResource(type=kind, name=name, namespace=namespace, provider="kubernetes")
        ]
    return []


def parse_docker_resources(tokens: list[str]) -> list[AffectedResource]:
    resources: list[AffectedResource] = []

    container = _first_argument_after(tokens, _DOCKER_CONTAINER_VERBS)
    if container:
        resources.append(AffectedResource(type="container", name=container, provider="docker"))

    image = _first_argument_after(tokens, _DOCKER_IMAGE_VERBS)
    if image is None and "build" in tokens:
        image = _flag_value(tokens, ("-t", "--tag"))
    if image:
        resources.append(AffectedResource(type="image", name=image, provider="docker"))

    return resources


def _first_argument_after(tokens: list[str], verbs: frozenset[str]) -> str | None:
    for index, token in enumerate(tokens):
        if token in verbs:
            argument = _next_positional(tokens, index + 1)
            if argument is not None:
                return argument
    return None


def parse_terraform_resources(tokens: list[str]) -> list[AffectedResource]:
    resources: list[AffectedResource] = []
    for index, token in enumerate(tokens):
        if token.startswith("-target="):
            target = token.split("=", 1)[1]
        elif token == "-target" and index + 1 < len(tokens):
            target = tokens[index + 1]
        else:
            continue
        if target:
            resources.append(
                AffectedResource(type="terraform_resource", name=target, provider="terraform")
            )
    return resources


ResourceParser = Callable[[list[str]], list[AffectedResource]]

RESOURCE_PARSERS: dict[str, ResourceParser] = {
    "kubectl": parse_kubernetes_resources,
    "docker": parse_docker_resources,
    "terraform": parse_terraform_resources,
}


def extract_resources(command: str) -> list[AffectedResource]:
    """Return the resources named in ``command``, dispatched on its leading tool."""
    tokens = _tokenize(command.strip())
    if not tokens:
        return []
    tool = tokens[0].rsplit("/", 1)[-1].lower()
    parser = RESOURCE_PARSERS.get(tool)
    if parser is None:
        return []
    return parser(tokens)
