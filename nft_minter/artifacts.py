"""
Readers for contract build artifacts.

Hardhat writes the compiled contract to
``artifacts/contracts/<Name>.sol/<Name>.json`` and Ignition records deployed
addresses in ``ignition/deployments/chain-<id>/deployed_addresses.json``.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_ARTIFACT_PATH = "artifacts/contracts/MyNFT.sol/MyNFT.json"
DEFAULT_DEPLOYMENTS_DIR = "ignition/deployments"
DEFAULT_DEPLOYMENT_KEY = "MyNFTModule#MyNFT"


def _read_json(path: Path, field: str) -> Any:
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"{field}: file not found: {path}", field=field)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"{field}: cannot read {path}: {e}", field=field)


def load_abi(path: Union[str, Path] = DEFAULT_ARTIFACT_PATH) -> List[Dict[str, Any]]:
    """
    Load a contract ABI from a Hardhat artifact.

    Accepts either a full artifact (``{"abi": [...], "bytecode": ...}``) or a
    bare ABI list.

    Raises:
        ConfigurationError: If the file is missing, unreadable or has no ABI
    """
    path = Path(path)
    data = _read_json(path, "abi")
    abi = data.get("abi") if isinstance(data, dict) else data
    if not isinstance(abi, list) or not abi:
        raise ConfigurationError(f"abi: no ABI found in {path}", field="abi")
    logger.debug(f"Loaded ABI with {len(abi)} entries from {path}")
    return abi


def load_deployed_address(
    chain_id: int,
    key: str = DEFAULT_DEPLOYMENT_KEY,
    deployments_dir: Union[str, Path] = DEFAULT_DEPLOYMENTS_DIR,
) -> Optional[str]:
    """
    Look up a contract address recorded by an Ignition deployment.

    Returns:
        The address, or None when no deployment record exists for the chain
    """
    path = Path(deployments_dir) / f"chain-{chain_id}" / "deployed_addresses.json"
    if not path.exists():
        return None
    data = _read_json(path, "contractAddress")
    if not isinstance(data, dict):
        raise ConfigurationError(f"contractAddress: malformed deployment record {path}", field="contractAddress")
    address = data.get(key)
    if address:
        logger.debug(f"Using {key} deployed at {address} from {path}")
    return address or None
