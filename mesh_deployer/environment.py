"""
Environment composition for module and sidecar containers.

Every function appends KEY=VALUE entries to a copy of the given list and
returns it. Nothing is deduplicated: if a key appears twice, the container
runtime keeps the last occurrence.
"""

import logging
from typing import Any, List, Mapping, Optional

from mesh_deployer.models.module import ModuleSpec, RegistryModuleMetadata

logger = logging.getLogger(__name__)


class EnvironmentComposer:
    """Builds ordered env lists for module and sidecar containers."""

    def __init__(self, config):
        self.config = config

    @property
    def domain(self) -> str:
        return self.config.network.mesh_domain

    def vault_env(self, env: List[str], vault_root_token: str) -> List[str]:
        return env + [
            "SECRET_STORE_TYPE=VAULT",
            f"SECRET_STORE_VAULT_TOKEN={vault_root_token}",
            f"SECRET_STORE_VAULT_ADDRESS={self.config.vault.address}",
        ]

    def okapi_env(self, env: List[str], sidecar_name: str, private_port: int) -> List[str]:
        """Point a module at its sidecar as the service-discovery endpoint."""
        host = f"{sidecar_name}.{self.domain}"
        url = f"http://{host}:{private_port}"
        return env + [
            f"OKAPI_HOST={host}",
            f"OKAPI_PORT={private_port}",
            f"OKAPI_SERVICE_HOST={host}",
            f"OKAPI_SERVICE_URL={url}",
            f"OKAPI_URL={url}",
        ]

    def disabled_system_user_env(self, env: List[str], module_name: str) -> List[str]:
        return env + [
            "FOLIO_SYSTEM_USER_ENABLED=false",
            "SYSTEM_USER_CREATE=false",
            "SYSTEM_USER_ENABLED=false",
            f"SYSTEM_USER_NAME={module_name}",
            f"SYSTEM_USER_USERNAME={module_name}",
        ]

    def keycloak_env(self, env: List[str]) -> List[str]:
        keycloak = self.config.keycloak
        return env + [
            f"KC_URL={keycloak.url}",
            f"KC_ADMIN_CLIENT_ID={keycloak.admin_client_id}",
            f"KC_SERVICE_CLIENT_ID={keycloak.service_client_id}",
            f"KC_LOGIN_CLIENT_SUFFIX={keycloak.login_client_suffix}",
        ]

    def module_env(self, env: List[str], extra: Mapping[str, Any]) -> List[str]:
        """Append free-form entries. Keys are upper-cased, blank keys skipped."""
        result = list(env)
        for key, value in extra.items():
            if not key or not str(key).strip():
                continue
            result.append(f"{str(key).upper()}={value}")
        return result

    def sidecar_env(
        self,
        env: List[str],
        module: RegistryModuleMetadata,
        private_port: int,
        module_url: Optional[str] = None,
        sidecar_url: Optional[str] = None,
    ) -> List[str]:
        """
        Append the identity a sidecar needs to front its module.

        Args:
            env: Entries to extend
            module: Registry identity of the module
            private_port: In-container server port of the pair
            module_url: Override for MODULE_URL
            sidecar_url: Override for SIDECAR_URL

        Returns:
            New env list
        """
        if module_url is None:
            module_url = f"http://{module.name}.{self.domain}:{private_port}"
        if sidecar_url is None:
            sidecar_url = f"http://{module.sidecar_name}.{self.domain}:{private_port}"

        result = env + [
            f"MODULE_NAME={module.name}",
            f"MODULE_VERSION={module.version or ''}",
            f"MODULE_URL={module_url}",
            f"SIDECAR_NAME={module.sidecar_name}",
            f"SIDECAR_URL={sidecar_url}",
        ]
        # Sidecar framework listens on the default port unless told otherwise
        if private_port != self.config.ports.private_server_port:
            result.append(f"QUARKUS_HTTP_PORT={private_port}")
        return result

    def compose_module(
        self,
        spec: ModuleSpec,
        module: RegistryModuleMetadata,
        global_env: List[str],
        vault_root_token: str = "",
    ) -> List[str]:
        """Full module env: global template, vault, okapi, system user, module entries."""
        env = list(global_env)
        if spec.use_vault:
            env = self.vault_env(env, vault_root_token)
        if spec.use_okapi_url:
            env = self.okapi_env(env, module.sidecar_name, spec.private_port)
        if spec.disable_system_user:
            env = self.disabled_system_user_env(env, module.name)
        return self.module_env(env, spec.env)

    def compose_sidecar(
        self,
        spec: ModuleSpec,
        module: RegistryModuleMetadata,
        sidecar_template: List[str],
        vault_root_token: str = "",
        module_url: Optional[str] = None,
        sidecar_url: Optional[str] = None,
    ) -> List[str]:
        """Full sidecar env: sidecar template, vault, keycloak, sidecar identity."""
        env = list(sidecar_template)
        env = self.vault_env(env, vault_root_token)
        env = self.keycloak_env(env)
        return self.sidecar_env(env, module, spec.private_port, module_url, sidecar_url)
