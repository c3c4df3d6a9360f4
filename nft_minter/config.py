"""
Network configuration and configuration resolution.

The environment is only read here, at the process boundary. The mint workflow
receives a fully resolved MinterConfig.
"""
import json
import logging
import os
import importlib.resources
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from dotenv import find_dotenv, load_dotenv
from pydantic import ValidationError

from .artifacts import (
    DEFAULT_ARTIFACT_PATH,
    DEFAULT_DEPLOYMENT_KEY,
    DEFAULT_DEPLOYMENTS_DIR,
    load_abi,
    load_deployed_address,
)
from .exceptions import ConfigurationError
from .models import ContractHandle, MinterConfig, NetworkSettings

logger = logging.getLogger(__name__)

# Environment variable names, first match wins
RPC_URL_VARS = ("RPC_URL", "MANTLE_SEPOLIA_URL")
CHAIN_ID_VARS = ("CHAIN_ID",)
PRIVATE_KEY_VARS = ("PRIVATE_KEY", "SECRET_KEY")
CONTRACT_ADDRESS_VARS = ("CONTRACT_ADDRESS",)
ARTIFACT_VARS = ("CONTRACT_ARTIFACT",)
NETWORK_VARS = ("NFT_NETWORK",)


class NetworkConfig:
    """Named network defaults shipped with the package."""

    _networks_cache: Optional[Dict[str, Dict[str, Any]]] = None

    @classmethod
    def load_networks(cls) -> Dict[str, Dict[str, Any]]:
        """
        Load the network table from the packaged networks.json.

        Returns:
            Mapping of network name to its settings
        """
        if cls._networks_cache is not None:
            return cls._networks_cache

        text = importlib.resources.files("nft_minter").joinpath("networks.json").read_text()
        cls._networks_cache = json.loads(text)
        return cls._networks_cache

    @classmethod
    def get_network(cls, network: str) -> Dict[str, Any]:
        """
        Get the settings for a named network.

        Raises:
            ValueError: If the network is not known
        """
        networks = cls.load_networks()
        if network not in networks:
            available = ", ".join(sorted(networks.keys()))
            raise ValueError(f"Network '{network}' not found. Available networks: {available}")
        return networks[network]

    @classmethod
    def get_rpc_url(
        cls,
        network: str,
        override: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> str:
        """
        Get the RPC URL for a network.

        Precedence: explicit override, then ``<NETWORK>_RPC_URL`` from the
        environment, then the packaged default.
        """
        if override:
            return override

        env = os.environ if environ is None else environ
        env_var = f"{network.upper().replace('-', '_')}_RPC_URL"
        if env.get(env_var):
            return env[env_var]

        return cls.get_network(network)["rpc"]

    @classmethod
    def get_chain_id(cls, network: str) -> int:
        return int(cls.get_network(network)["chainId"])

    @classmethod
    def get_explorer_url(cls, network: str) -> Optional[str]:
        return cls.get_network(network).get("explorer")

    @classmethod
    def settings(
        cls,
        network: str,
        rpc_override: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> NetworkSettings:
        return NetworkSettings(
            rpc_url=cls.get_rpc_url(network, override=rpc_override, environ=environ),
            chain_id=cls.get_chain_id(network),
            name=network,
            explorer_url=cls.get_explorer_url(network),
        )


def _first(env: Mapping[str, str], names) -> Optional[str]:
    for name in names:
        value = env.get(name)
        if value is not None and value.strip():
            return value.strip()
    return None


def _missing(field: str, names) -> ConfigurationError:
    return ConfigurationError(
        f"Missing required configuration: {field} (set {' or '.join(names)})",
        field=field,
    )


def resolve_config(
    environ: Optional[Mapping[str, str]] = None,
    *,
    network: Optional[str] = None,
    artifact_path: Optional[Union[str, Path]] = None,
    deployments_dir: Union[str, Path] = DEFAULT_DEPLOYMENTS_DIR,
    load_env_file: bool = True,
) -> MinterConfig:
    """
    Resolve network, signer and contract settings.

    Args:
        environ: Mapping to read instead of ``os.environ``
        network: Named network supplying RPC URL and chain ID defaults
        artifact_path: Path to the Hardhat artifact holding the contract ABI
        deployments_dir: Ignition deployments directory, consulted when no
            contract address is configured
        load_env_file: Load a ``.env`` file into ``os.environ`` first

    Returns:
        Fully populated MinterConfig

    Raises:
        ConfigurationError: If any required value is missing or invalid
    """
    if environ is None:
        if load_env_file:
            load_dotenv(find_dotenv(usecwd=True), override=False)
        environ = os.environ

    network = network or _first(environ, NETWORK_VARS)
    defaults: Dict[str, Any] = {}
    if network:
        try:
            defaults = NetworkConfig.get_network(network)
        except ValueError as e:
            raise ConfigurationError(str(e), field="network")

    rpc_url = _first(environ, RPC_URL_VARS)
    if not rpc_url and network:
        rpc_url = NetworkConfig.get_rpc_url(network, environ=environ)
    if not rpc_url:
        raise _missing("rpcUrl", RPC_URL_VARS)

    raw_chain_id = _first(environ, CHAIN_ID_VARS) or defaults.get("chainId")
    if raw_chain_id is None or raw_chain_id == "":
        raise _missing("chainId", CHAIN_ID_VARS)
    try:
        text = str(raw_chain_id).strip()
        chain_id = int(text, 16) if text.lower().startswith("0x") else int(text)
    except ValueError:
        raise ConfigurationError(f"chainId must be an integer, got {raw_chain_id!r}", field="chainId")

    private_key = _first(environ, PRIVATE_KEY_VARS)
    if not private_key:
        raise _missing("privateKey", PRIVATE_KEY_VARS)

    abi = load_abi(artifact_path or _first(environ, ARTIFACT_VARS) or DEFAULT_ARTIFACT_PATH)

    contract_address = _first(environ, CONTRACT_ADDRESS_VARS)
    if not contract_address:
        key = environ.get("CONTRACT_DEPLOYMENT_KEY") or DEFAULT_DEPLOYMENT_KEY
        contract_address = load_deployed_address(chain_id, key=key, deployments_dir=deployments_dir)
    if not contract_address:
        raise _missing("contractAddress", CONTRACT_ADDRESS_VARS)

    try:
        config = MinterConfig(
            network=NetworkSettings(
                rpc_url=rpc_url,
                chain_id=chain_id,
                name=network,
                explorer_url=defaults.get("explorer"),
            ),
            private_key=private_key,
            contract=ContractHandle(address=contract_address, abi=abi),
        )
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(part) for part in err.get("loc", ())) or None
        raise ConfigurationError(f"Invalid configuration: {err.get('msg')}", field=field)

    logger.debug(
        f"Resolved configuration: rpc={config.network.rpc_url} chain_id={chain_id} "
        f"contract={config.contract.address}"
    )
    return config
